# app/providers/factory.py
from __future__ import annotations

from settings import Settings, settings as default_settings


def get_provider(name: str | None = None, cfg: Settings | None = None):
    cfg = cfg or default_settings
    key = (name or cfg.PAYMENT_PROVIDER or "").strip().lower()
    if not key:
        return None

    key = key.replace("-", "_").replace(" ", "_")

    if key == "midtrans":
        from app.providers.config import midtrans_config
        from app.providers.midtrans import MidtransProvider
        return MidtransProvider(config=midtrans_config(cfg))

    if key == "mock":
        from app.providers.mock import MockProvider
        return MockProvider()

    return None
