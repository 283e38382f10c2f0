# app/providers/midtrans.py
from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from app.providers.base import SnapResult, StatusResult
from app.providers.config import MidtransConfig, midtrans_config, missing_midtrans_config
from app.providers.http import HttpClient, HttpResponse, is_retryable_http


logger = logging.getLogger("klinikpay.midtrans")

JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class MidtransProvider:
    """
    Snap API for creating transactions, Core API for status lookups.
    Both authenticate with HTTP basic auth: server key as user, empty password.
    """

    name = "midtrans"

    def __init__(self, config: MidtransConfig | None = None, http: HttpClient | None = None) -> None:
        self.config = config or midtrans_config()
        self.http = http or HttpClient(timeout_s=self.config.timeout_s)

    @property
    def _auth(self) -> tuple[str, str]:
        return (self.config.server_key, "")

    def create_transaction(self, payload: dict[str, Any]) -> SnapResult:
        missing = missing_midtrans_config(self.config)
        if "MIDTRANS_SERVER_KEY" in missing:
            return SnapResult(ok=False, error="MIDTRANS_CONFIG_MISSING", response={"missing": missing}, retryable=False)

        order_id = (payload.get("transaction_details") or {}).get("order_id")
        try:
            resp = self.http.post(self.config.snap_url, headers=JSON_HEADERS, json_body=payload, auth=self._auth)
        except httpx.HTTPError as exc:
            logger.warning("midtrans snap create error order_id=%s err=%s", order_id, exc)
            return SnapResult(ok=False, error=str(exc) or type(exc).__name__, response={"stage": "create"}, retryable=True)

        logger.info("midtrans snap create status=%s order_id=%s", resp.status_code, order_id)
        body = resp.json or {}

        if resp.status_code in (200, 201):
            return SnapResult(
                ok=True,
                token=body.get("token"),
                redirect_url=body.get("redirect_url"),
                response=_response_payload(resp, stage="create"),
                http_status=resp.status_code,
            )

        return SnapResult(
            ok=False,
            response=_response_payload(resp, stage="create"),
            error=_error_message(body) or f"HTTP {resp.status_code}",
            http_status=resp.status_code,
            retryable=is_retryable_http(resp.status_code),
        )

    def get_status(self, order_id: str) -> StatusResult:
        missing = missing_midtrans_config(self.config)
        if "MIDTRANS_SERVER_KEY" in missing:
            return StatusResult(found=False, order_id=order_id, error="MIDTRANS_CONFIG_MISSING", retryable=False)

        url = f"{self.config.api_base_url}/v2/{quote(order_id, safe='')}/status"
        try:
            resp = self.http.get(url, headers=JSON_HEADERS, auth=self._auth)
        except httpx.HTTPError as exc:
            logger.warning("midtrans status error order_id=%s err=%s", order_id, exc)
            return StatusResult(found=False, order_id=order_id, error=str(exc) or type(exc).__name__, retryable=True)

        logger.info("midtrans status status=%s order_id=%s", resp.status_code, order_id)
        body = resp.json or {}
        # Core API reports "not found" either as HTTP 404 or as status_code "404" in a 200 body
        body_code = str(body.get("status_code") or "")

        if resp.status_code == 404 or body_code == "404":
            return StatusResult(found=False, order_id=order_id, raw=body or None, http_status=404)

        if resp.status_code == 200 and body.get("transaction_status"):
            return StatusResult(
                found=True,
                order_id=order_id,
                transaction_status=str(body.get("transaction_status")),
                fraud_status=body.get("fraud_status"),
                token=body.get("token") or body.get("snap_token"),
                redirect_url=body.get("redirect_url"),
                raw=body,
                http_status=resp.status_code,
            )

        return StatusResult(
            found=False,
            order_id=order_id,
            raw=body or None,
            error=_error_message(body) or f"HTTP {resp.status_code}",
            http_status=resp.status_code,
            retryable=is_retryable_http(resp.status_code),
        )


def _response_payload(resp: HttpResponse, *, stage: str) -> dict[str, Any]:
    return {
        "stage": stage,
        "http_status": resp.status_code,
        "body": resp.json,
    }


def _error_message(body: dict[str, Any]) -> Optional[str]:
    messages = body.get("error_messages")
    if isinstance(messages, list) and messages:
        return "; ".join(str(m) for m in messages)
    msg = body.get("status_message") or body.get("message")
    return str(msg) if msg else None
