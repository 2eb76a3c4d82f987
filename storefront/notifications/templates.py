"""HTML email bodies, rendered with Jinja2 (autoescaped)."""
from typing import Any, Dict

from jinja2 import DictLoader, Environment, select_autoescape

_BASE = """<!DOCTYPE html>
<html>
<head>
  <style>
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: {% block accent %}#4F46E5{% endblock %}; color: white; padding: 20px; text-align: center; }
    .box { background: white; padding: 20px; margin: 20px 0; border-radius: 5px; }
    table { width: 100%; border-collapse: collapse; }
    th { background: #f3f4f6; padding: 10px; text-align: left; }
    td { padding: 10px; border-bottom: 1px solid #eee; }
    .button { display: inline-block; background: #4F46E5; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header"><h1>{% block title %}{% endblock %}</h1></div>
    {% block content %}{% endblock %}
    <p style="text-align: center; color: #6b7280;">&copy; {{ year }} {{ store_name }}</p>
  </div>
</body>
</html>
"""

_ITEMS = """<table>
  <thead><tr><th>Item</th><th>Qty</th><th>Price</th><th>Total</th></tr></thead>
  <tbody>
  {% for line in order.order_items %}
    <tr>
      <td>{{ line.product_name }}{% if line.selected_size %} ({{ line.selected_size }}){% endif %}{% if line.selected_color %} {{ line.selected_color }}{% endif %}</td>
      <td>{{ line.quantity }}</td>
      <td>${{ line.price }}</td>
      <td>${{ line.line_total }}</td>
    </tr>
  {% endfor %}
    <tr><td colspan="3"><strong>Total Amount</strong></td><td><strong>${{ order.total_amount }}</strong></td></tr>
  </tbody>
</table>
"""

_ADDRESS = """<p>
  {% if order.shipping_address.full_name %}{{ order.shipping_address.full_name }}<br>{% endif %}
  {{ order.shipping_address.street }}<br>
  {{ order.shipping_address.city }}, {{ order.shipping_address.state }} {{ order.shipping_address.zip_code }}<br>
  {{ order.shipping_address.country }}
</p>
"""

_ORDER_CONFIRMATION = """{% extends "base.html" %}
{% block title %}Order Confirmed!{% endblock %}
{% block content %}
  <h2>Thank you for your order!</h2>
  <p>Hi {{ customer_name }},</p>
  <p>Your order has been placed and is being processed. We'll email you again when it ships.</p>
  <div class="box">
    <p><strong>Order Number:</strong> {{ order.order_number }}</p>
    <p><strong>Status:</strong> {{ order.status|title }}</p>
  </div>
  <div class="box">{% include "items.html" %}</div>
  <div class="box"><h3>Shipping Address</h3>{% include "address.html" %}</div>
  <p style="text-align: center;"><a class="button" href="{{ track_url }}">Track Your Order</a></p>
{% endblock %}
"""

_NEW_ORDER = """{% extends "base.html" %}
{% block accent %}#1f2937{% endblock %}
{% block title %}New Order Received{% endblock %}
{% block content %}
  <div class="box">
    <p><strong>Order Number:</strong> {{ order.order_number }}</p>
    <p><strong>Total Amount:</strong> ${{ order.total_amount }}</p>
    <p><strong>Payment:</strong> {{ order.payment_method }} ({{ order.payment_status }})</p>
  </div>
  <div class="box">
    <h3>Customer</h3>
    <p><strong>Name:</strong> {{ customer_name }}</p>
    <p><strong>Email:</strong> {{ customer_email }}</p>
    <p><strong>Phone:</strong> {{ order.shipping_address.phone_code }} {{ order.shipping_address.phone }}</p>
    {% include "address.html" %}
  </div>
  <div class="box"><h3>Order Items ({{ order.order_items|length }})</h3>{% include "items.html" %}</div>
  <p style="text-align: center;"><a class="button" href="{{ manage_url }}">Manage Order</a></p>
{% endblock %}
"""

_STATUS_UPDATE = """{% extends "base.html" %}
{% block title %}Order Status Update{% endblock %}
{% block content %}
  <p>Hello {{ customer_name }},</p>
  <p>Your order <strong>{{ order.order_number }}</strong> status has been updated to: <strong>{{ status|upper }}</strong></p>
  {% if tracking_number %}<p>Tracking Number: <strong>{{ tracking_number }}</strong></p>{% endif %}
  {% if comment %}<p>Note: {{ comment }}</p>{% endif %}
  <p>Order Total: ${{ order.total_amount }}</p>
  <p style="text-align: center;"><a class="button" href="{{ track_url }}">Track Your Order</a></p>
{% endblock %}
"""


_SUPPORT_REQUEST = """{% extends "base.html" %}
{% block accent %}#1f2937{% endblock %}
{% block title %}New Support Request{% endblock %}
{% block content %}
  <div class="box">
    <p><strong>From:</strong> {{ name }}</p>
    <p><strong>Email:</strong> {{ email }}</p>
    <p><strong>Subject:</strong> {{ subject }}</p>
  </div>
  <div class="box"><h3>Message</h3><p>{{ message }}</p></div>
  <p style="color: #6b7280;">Reply to {{ email }} to respond to {{ name }}.</p>
{% endblock %}
"""

_SUPPORT_ACK = """{% extends "base.html" %}
{% block title %}Thank You for Contacting Us{% endblock %}
{% block content %}
  <p>Hello {{ name }},</p>
  <p>We have received your message and our team will get back to you as soon as possible,
     usually within 24-48 hours on business days.</p>
  <div class="box"><p><strong>Your message:</strong></p><p>{{ message }}</p></div>
  <p style="text-align: center;"><a class="button" href="{{ support_url }}">Visit our support page</a></p>
{% endblock %}
"""


env = Environment(
    loader=DictLoader(
        {
            "base.html": _BASE,
            "items.html": _ITEMS,
            "address.html": _ADDRESS,
            "order_confirmation.html": _ORDER_CONFIRMATION,
            "new_order.html": _NEW_ORDER,
            "status_update.html": _STATUS_UPDATE,
            "support_request.html": _SUPPORT_REQUEST,
            "support_ack.html": _SUPPORT_ACK,
        }
    ),
    autoescape=select_autoescape(default=True, default_for_string=True),
)


def render(template_name: str, context: Dict[str, Any]) -> str:
    return env.get_template(template_name).render(**context)
