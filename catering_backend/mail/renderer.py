"""Rendering helpers for invoice emails."""
from __future__ import annotations

import html
import re
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence, Tuple

_PLACEHOLDER_PATTERN = re.compile(r"{{\s*(\w+)\s*}}")

_INVOICE_SUBJECT = "Invoice for Order {{ order_number }} - Payment Required"

_INVOICE_TEXT = """\
Hello {{ client_name }},

Your invoice for order {{ order_number }} is ready.
{{ delivery_line }}
{{ items_text }}
Total due: {{ total }}

Pay online: {{ payment_url }}
{{ message }}
Thank you,
{{ company_name }}
"""

_INVOICE_HTML = """\
<html>
  <body>
    <p>Hello {{ client_name }},</p>
    <p>Your invoice for order <strong>{{ order_number }}</strong> is ready.</p>
    {{ delivery_line }}
    {{ items_html }}
    <p>Total due: <strong>{{ total }}</strong></p>
    <p><a href="{{ payment_url }}">Pay invoice online</a></p>
    {{ message }}
    <p>Thank you,<br>{{ company_name }}</p>
  </body>
</html>
"""


def _render_template(source: str, context: Dict[str, Any]) -> str:
    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        value = context.get(key, "")
        return "" if value is None else str(value)

    return _PLACEHOLDER_PATTERN.sub(_replace, source)


def _format_amount(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def render_invoice_email(
    *,
    order_number: str,
    client_name: str,
    total: Decimal,
    payment_url: str,
    company_name: str,
    delivery_date: Optional[str] = None,
    items: Sequence[Tuple[str, Decimal]] = (),
    message: Optional[str] = None,
) -> Tuple[str, str, str]:
    """Return ``(subject, text_body, html_body)`` for a payment-link email."""

    text_items = "".join(f"  - {name}: {_format_amount(price)}\n" for name, price in items)
    html_items = ""
    if items:
        rows = "".join(
            f"<li>{html.escape(name)}: {_format_amount(price)}</li>" for name, price in items
        )
        html_items = f"<ul>{rows}</ul>"

    text_context = {
        "order_number": order_number,
        "client_name": client_name,
        "total": _format_amount(total),
        "payment_url": payment_url,
        "company_name": company_name,
        "delivery_line": f"Delivery date: {delivery_date}" if delivery_date else "",
        "items_text": text_items,
        "message": f"\n{message}\n" if message else "",
    }
    html_context = {
        "order_number": html.escape(order_number),
        "client_name": html.escape(client_name),
        "total": _format_amount(total),
        "payment_url": html.escape(payment_url, quote=True),
        "company_name": html.escape(company_name),
        "delivery_line": f"<p>Delivery date: {html.escape(delivery_date)}</p>" if delivery_date else "",
        "items_html": html_items,
        "message": f"<p>{html.escape(message)}</p>" if message else "",
    }

    subject = _render_template(_INVOICE_SUBJECT, text_context)
    text_body = _render_template(_INVOICE_TEXT, text_context)
    html_body = _render_template(_INVOICE_HTML, html_context)
    return subject.strip(), text_body.strip(), html_body.strip()


__all__ = ["render_invoice_email"]
