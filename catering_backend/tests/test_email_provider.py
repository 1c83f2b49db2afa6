import smtplib
from decimal import Decimal

import pytest

from catering_backend.mail import (
    DevPrintProvider,
    SMTPProvider,
    create_email_provider,
    load_email_config,
    render_invoice_email,
)
from catering_backend.mail import providers as providers_module


def test_default_provider_is_dev_print():
    config = load_email_config(env={})
    provider = create_email_provider(config)
    assert isinstance(provider, DevPrintProvider)
    assert provider.from_email == "billing@example.com"
    assert config.company_name == "Inflight Catering"


def test_unknown_provider_falls_back_to_dev():
    provider = create_email_provider(load_email_config(env={"EMAIL_PROVIDER": "carrier-pigeon"}))
    assert isinstance(provider, DevPrintProvider)


def test_smtp_provider_configuration():
    config = load_email_config(
        env={
            "EMAIL_PROVIDER": "smtp",
            "SMTP_HOST": "mail.example.com",
            "SMTP_PORT": "2525",
            "SMTP_USER": "mailer",
            "SMTP_PASS": "secret",
            "FROM_EMAIL": "invoices@example.com",
        }
    )
    provider = create_email_provider(config)
    assert isinstance(provider, SMTPProvider)
    assert provider.host == "mail.example.com"
    assert provider.port == 2525
    assert provider.username == "mailer"
    assert provider.from_email == "invoices@example.com"


def test_smtp_retries_then_succeeds(monkeypatch):
    provider = SMTPProvider(
        from_email="invoices@example.com",
        host="localhost",
        port=25,
        username=None,
        password=None,
        use_tls=False,
        max_attempts=3,
        backoff_seconds=0.5,
    )
    attempts = []
    delays = []

    def _flaky_deliver(to, payload):
        attempts.append(to)
        if len(attempts) < 3:
            raise smtplib.SMTPServerDisconnected("gone")

    monkeypatch.setattr(provider, "_deliver", _flaky_deliver)
    monkeypatch.setattr(providers_module.time, "sleep", delays.append)

    provider.send_email("ops@example.com", "Subject", "<p>hi</p>", "hi")

    assert len(attempts) == 3
    assert delays == [0.5, 1.0]


def test_smtp_gives_up_after_max_attempts(monkeypatch):
    provider = SMTPProvider(
        from_email="invoices@example.com",
        host="localhost",
        port=25,
        username=None,
        password=None,
        use_tls=False,
        max_attempts=2,
        backoff_seconds=0.0,
    )

    def _always_fails(to, payload):
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr(provider, "_deliver", _always_fails)
    monkeypatch.setattr(providers_module.time, "sleep", lambda _: None)

    with pytest.raises(ConnectionRefusedError):
        provider.send_email("ops@example.com", "Subject", "<p>hi</p>", "hi")


def test_render_invoice_email_escapes_html():
    subject, text_body, html_body = render_invoice_email(
        order_number="KA000007",
        client_name="Ava <Pilot>",
        total=Decimal("1234.50"),
        payment_url="https://billing.local/pay/inv_1",
        company_name="Inflight Catering",
        delivery_date="2026-10-20",
        items=[("Fruit Platter", Decimal("125.00"))],
    )

    assert subject == "Invoice for Order KA000007 - Payment Required"
    assert "Total due: $1,234.50" in text_body
    assert "Fruit Platter: $125.00" in text_body
    assert "Delivery date: 2026-10-20" in text_body
    assert "Ava &lt;Pilot&gt;" in html_body
    assert 'href="https://billing.local/pay/inv_1"' in html_body
