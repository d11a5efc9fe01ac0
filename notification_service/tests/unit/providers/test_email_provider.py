"""
Unit tests for the SendGrid email provider.
"""

from unittest.mock import Mock, patch

import pytest

from notification_service.app.providers.email_provider import (
    EmailProvider,
    NotificationDeliveryError,
)

SENDGRID_CLIENT = "notification_service.app.providers.email_provider.SendGridAPIClient"


@pytest.fixture
def provider():
    return EmailProvider(
        api_key="SG.test", from_email="orders@example.com", from_name="Shop"
    )


def sendgrid_response(status_code: int) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.headers = {"X-Message-Id": "sg-123"}
    return response


class TestEmailProvider:
    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="SENDGRID_API_KEY"):
            EmailProvider(api_key="", from_email="orders@example.com")

    def test_requires_sender(self):
        with pytest.raises(ValueError, match="FROM_EMAIL"):
            EmailProvider(api_key="SG.test", from_email="")

    @pytest.mark.asyncio
    async def test_send_email_success(self, provider):
        with patch(SENDGRID_CLIENT) as client_cls:
            client_cls.return_value.send.return_value = sendgrid_response(202)

            result = await provider.send_email(
                to_email="ada@example.com", subject="Hello", content="Body"
            )

        assert result["success"] is True
        assert result["message_id"] == "sg-123"
        assert result["status_code"] == 202
        client_cls.assert_called_once_with(api_key="SG.test")

        mail = client_cls.return_value.send.call_args.args[0].get()
        assert mail["subject"] == "Hello"
        assert mail["from"]["email"] == "orders@example.com"
        assert mail["personalizations"][0]["to"][0]["email"] == "ada@example.com"
        assert mail["content"] == [{"type": "text/plain", "value": "Body"}]

    @pytest.mark.asyncio
    async def test_html_email_has_plain_text_alternative(self, provider):
        with patch(SENDGRID_CLIENT) as client_cls:
            client_cls.return_value.send.return_value = sendgrid_response(202)

            await provider.send_email(
                to_email="ada@example.com",
                subject="Hello",
                content="<p>Your   order</p>",
                is_html=True,
            )

        mail = client_cls.return_value.send.call_args.args[0].get()
        assert mail["content"][0] == {"type": "text/plain", "value": "Your order"}
        assert mail["content"][1]["type"] == "text/html"

    @pytest.mark.asyncio
    async def test_rejected_status_raises(self, provider):
        with patch(SENDGRID_CLIENT) as client_cls:
            client_cls.return_value.send.return_value = sendgrid_response(401)

            with pytest.raises(NotificationDeliveryError, match="401"):
                await provider.send_email(
                    to_email="ada@example.com", subject="Hello", content="Body"
                )

    @pytest.mark.asyncio
    async def test_network_error_raises(self, provider):
        with patch(SENDGRID_CLIENT) as client_cls:
            client_cls.return_value.send.side_effect = ConnectionError("reset")

            with pytest.raises(NotificationDeliveryError) as exc_info:
                await provider.send_email(
                    to_email="ada@example.com", subject="Hello", content="Body"
                )

        assert isinstance(exc_info.value.__cause__, ConnectionError)
