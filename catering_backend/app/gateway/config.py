"""Square gateway configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ...settings import _to_bool, _to_float, _to_int

SQUARE_PRODUCTION_URL = "https://connect.squareup.com"
SQUARE_SANDBOX_URL = "https://connect.squareupsandbox.com"


@dataclass(frozen=True)
class GatewayConfig:
    """Credentials, retry policy and invoice defaults for the Square gateway."""

    access_token: Optional[str]
    location_id: Optional[str]
    environment: str
    api_version: str
    timeout_seconds: float
    max_attempts: int
    backoff_seconds: float
    currency: str
    invoice_due_days: int
    invoice_schedule_offset_seconds: int
    webhook_signature_key: Optional[str]
    webhook_subscription_id: Optional[str]
    webhook_require_signature: bool
    webhook_dedupe_events: bool

    @property
    def base_url(self) -> str:
        if self.environment == "production":
            return SQUARE_PRODUCTION_URL
        return SQUARE_SANDBOX_URL

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token)


def load_gateway_config(env: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    """Load :class:`GatewayConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    environment = (env_mapping.get("SQUARE_ENVIRONMENT") or "sandbox").strip().lower()
    if environment not in {"production", "sandbox"}:
        raise ValueError("SQUARE_ENVIRONMENT must be 'production' or 'sandbox'")

    return GatewayConfig(
        access_token=env_mapping.get("SQUARE_ACCESS_TOKEN") or None,
        location_id=env_mapping.get("SQUARE_LOCATION_ID") or None,
        environment=environment,
        api_version=env_mapping.get("SQUARE_API_VERSION", "2024-10-17"),
        timeout_seconds=max(1.0, _to_float(env_mapping.get("SQUARE_TIMEOUT_SECONDS"), default=15.0)),
        max_attempts=max(1, _to_int(env_mapping.get("SQUARE_MAX_ATTEMPTS"), default=3)),
        backoff_seconds=max(0.0, _to_float(env_mapping.get("SQUARE_RETRY_BACKOFF"), default=0.5)),
        currency=(env_mapping.get("INVOICE_CURRENCY") or "USD").upper(),
        invoice_due_days=max(0, _to_int(env_mapping.get("INVOICE_DUE_DAYS"), default=30)),
        invoice_schedule_offset_seconds=max(
            0, _to_int(env_mapping.get("INVOICE_SCHEDULE_OFFSET_SECONDS"), default=120)
        ),
        webhook_signature_key=env_mapping.get("SQUARE_WEBHOOK_SIGNATURE_KEY") or None,
        webhook_subscription_id=env_mapping.get("SQUARE_WEBHOOK_SUBSCRIPTION_ID") or None,
        webhook_require_signature=_to_bool(
            env_mapping.get("SQUARE_WEBHOOK_REQUIRE_SIGNATURE"), default=False
        ),
        webhook_dedupe_events=_to_bool(env_mapping.get("SQUARE_WEBHOOK_DEDUPE_EVENTS"), default=False),
    )


__all__ = ["GatewayConfig", "SQUARE_PRODUCTION_URL", "SQUARE_SANDBOX_URL", "load_gateway_config"]
