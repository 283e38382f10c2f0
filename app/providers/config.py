# app/providers/config.py
from __future__ import annotations

from dataclasses import dataclass

from settings import Settings, settings as default_settings


SNAP_URLS = {
    "sandbox": "https://app.sandbox.midtrans.com/snap/v1/transactions",
    "production": "https://app.midtrans.com/snap/v1/transactions",
}

API_BASE_URLS = {
    "sandbox": "https://api.sandbox.midtrans.com",
    "production": "https://api.midtrans.com",
}


class ProviderConfigError(RuntimeError):
    pass


def provider_mode(cfg: Settings | None = None) -> str:
    cfg = cfg or default_settings
    return (cfg.MIDTRANS_MODE or "sandbox").strip().lower()


@dataclass(frozen=True)
class MidtransConfig:
    mode: str  # "sandbox" | "production"
    snap_url: str
    api_base_url: str
    server_key: str
    client_key: str
    merchant_id: str
    timeout_s: float


def midtrans_config(cfg: Settings | None = None) -> MidtransConfig:
    cfg = cfg or default_settings
    mode = provider_mode(cfg)
    if mode not in SNAP_URLS:
        mode = "sandbox"
    return MidtransConfig(
        mode=mode,
        snap_url=(cfg.MIDTRANS_SNAP_URL or SNAP_URLS[mode]).strip(),
        api_base_url=(cfg.MIDTRANS_API_BASE_URL or API_BASE_URLS[mode]).strip().rstrip("/"),
        server_key=(cfg.MIDTRANS_SERVER_KEY or "").strip(),
        client_key=(cfg.MIDTRANS_CLIENT_KEY or "").strip(),
        merchant_id=(cfg.MIDTRANS_MERCHANT_ID or "").strip(),
        timeout_s=float(cfg.MIDTRANS_HTTP_TIMEOUT_S),
    )


def missing_midtrans_config(config: MidtransConfig) -> list[str]:
    missing: list[str] = []
    if not config.server_key:
        missing.append("MIDTRANS_SERVER_KEY")
    if not config.client_key:
        missing.append("MIDTRANS_CLIENT_KEY")
    if not config.merchant_id:
        missing.append("MIDTRANS_MERCHANT_ID")
    return missing


def validate_provider_config(cfg: Settings | None = None) -> list[str]:
    """
    Returns the missing keys for the configured provider. With strict startup
    validation on, a midtrans deployment with missing keys refuses to start.
    """
    cfg = cfg or default_settings
    if cfg.PAYMENT_PROVIDER != "midtrans":
        return []
    missing = missing_midtrans_config(midtrans_config(cfg))
    if missing and cfg.MIDTRANS_STRICT_STARTUP_VALIDATION:
        raise ProviderConfigError(f"Missing required Midtrans configuration: {', '.join(missing)}")
    return missing
