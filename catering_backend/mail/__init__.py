"""Email provider configuration utilities."""

from .config import EmailConfig, load_email_config
from .providers import (
    DevPrintProvider,
    EmailProvider,
    SMTPProvider,
    create_email_provider,
)
from .renderer import render_invoice_email

__all__ = [
    "DevPrintProvider",
    "EmailProvider",
    "EmailConfig",
    "SMTPProvider",
    "load_email_config",
    "create_email_provider",
    "render_invoice_email",
]
