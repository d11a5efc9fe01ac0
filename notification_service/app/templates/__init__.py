"""
Email templates for order outcome notifications, keyed by name for a
Jinja2 DictLoader. Each kind has a ``.subject`` and a ``.txt`` body.
"""

ORDER_TEMPLATES = {
    "order_confirmed.subject": "Order #{{ order_id }} Confirmed! 🎉",
    "order_confirmed.txt": """Dear Customer,

Your order #{{ order_id }} has been confirmed successfully!
Total Amount: {{ total_amount }}

We will process your order shortly and keep you updated.

Thank you for shopping with us!

Order Date: {{ order_date }}
""",
    "order_failed.subject": "Order #{{ order_id }} Cancelled ❌",
    "order_failed.txt": """Dear Customer,

Unfortunately, your order #{{ order_id }} could not be processed.
Reason: {{ reason }}

We apologize for the inconvenience. Please try placing your order again
or contact our customer service for assistance.

Order Date: {{ order_date }}
""",
}
