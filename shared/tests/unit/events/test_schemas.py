"""
Unit tests for event payload schemas.
"""

import json

import pytest
from pydantic import ValidationError

from shared.events import (
    OrderFailedEvent,
    OrderLineItem,
    OrderPlacedEvent,
    PermanentMessageError,
    dead_letter_topic,
    parse_event,
)


class TestEventSchemas:
    def test_placement_event_parses_wire_format(self):
        payload = json.dumps(
            {
                "order_id": 5,
                "user_id": 1,
                "items": [{"product_id": 1, "quantity": 2}],
                "total_amount": "20.00",
                "timestamp": "2024-01-01T12:00:00Z",
            }
        ).encode()

        event = parse_event(payload, OrderPlacedEvent)

        assert event.order_id == 5
        assert event.items == [OrderLineItem(product_id=1, quantity=2)]
        assert str(event.total_amount) == "20.00"

    def test_placement_event_requires_items(self):
        with pytest.raises(ValidationError):
            OrderPlacedEvent(order_id=1, user_id=1, items=[], total_amount="0")

    def test_line_item_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            OrderLineItem(product_id=1, quantity=0)

    def test_events_are_immutable(self):
        event = OrderFailedEvent(order_id=1, user_id=1, user_email="a@b.c", reason="x")
        with pytest.raises(ValidationError):
            event.reason = "y"

    @pytest.mark.parametrize(
        "payload",
        [b"not json", b"{}", b'{"order_id": 1, "user_id": 1, "items": [], "total_amount": "1"}'],
    )
    def test_malformed_payload_is_permanent(self, payload):
        with pytest.raises(PermanentMessageError):
            parse_event(payload, OrderPlacedEvent)

    def test_dead_letter_topic_name(self):
        assert dead_letter_topic("order_placed") == "order_placed.dead_letter"
