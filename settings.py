# settings.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal



class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -----------------------
    # Runtime
    # -----------------------
    ENV: Literal["dev", "staging", "production"] = "dev"
    LOG_LEVEL: str = "INFO"

    # -----------------------
    # Store
    # -----------------------
    STORE_BACKEND: Literal["memory", "postgres"] = "memory"
    DATABASE_URL: str = Field(default="")

    # -----------------------
    # JWT (identity verifier)
    # -----------------------
    JWT_SECRET: str = Field(default="dev-secret-change-me", min_length=16)
    JWT_ALG: str = Field(default="HS256")
    JWT_ACCESS_MINUTES: int = Field(default=60)

    # -----------------------
    # Payment provider (Mode Switch)
    # -----------------------
    PAYMENT_PROVIDER: Literal["mock", "midtrans"] = "mock"
    MIDTRANS_MODE: Literal["sandbox", "production"] = "sandbox"
    MIDTRANS_STRICT_STARTUP_VALIDATION: bool = False

    MIDTRANS_SERVER_KEY: str = ""
    MIDTRANS_CLIENT_KEY: str = ""
    MIDTRANS_MERCHANT_ID: str = ""

    # Optional URL overrides (empty => derived from MIDTRANS_MODE)
    MIDTRANS_SNAP_URL: str = ""
    MIDTRANS_API_BASE_URL: str = ""

    # HTTP timeouts
    MIDTRANS_HTTP_TIMEOUT_S: float = 20.0

    # -----------------------
    # Webhook
    # -----------------------
    WEBHOOK_VERIFY_SIGNATURE: bool = True

    # -----------------------
    # Status check (poll path)
    # -----------------------
    STATUS_CHECK_LIMIT: int = 1
    STATUS_CHECK_WINDOW_S: int = 1

    # -----------------------
    # Checkout
    # -----------------------
    ITEM_NAME: str = "Medical Consultation"



settings = Settings()
