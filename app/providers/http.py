# app/providers/http.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx


logger = logging.getLogger("klinikpay.http_client")


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[dict[str, Any]]
    text: str


class HttpClient:
    def __init__(self, timeout_s: float = 20.0, follow_redirects: bool = True, transport: httpx.BaseTransport | None = None):
        self._client = httpx.Client(timeout=timeout_s, follow_redirects=follow_redirects, transport=transport)

    def post(
        self,
        url: str,
        *,
        headers: dict[str, str],
        json_body: dict[str, Any] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> HttpResponse:
        r = self._client.post(url, headers=headers, json=json_body, auth=auth)
        self._debug_dump("POST", url, r)
        return self._wrap(r)

    def get(
        self,
        url: str,
        *,
        headers: dict[str, str],
        auth: tuple[str, str] | None = None,
    ) -> HttpResponse:
        r = self._client.get(url, headers=headers, auth=auth)
        self._debug_dump("GET", url, r)
        return self._wrap(r)

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _wrap(r: httpx.Response) -> HttpResponse:
        try:
            payload = r.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = None
        return HttpResponse(status_code=r.status_code, json=payload, text=r.text)

    @staticmethod
    def _debug_dump(method: str, url: str, r: httpx.Response) -> None:
        # never log headers: they carry the server key
        if not logger.isEnabledFor(logging.DEBUG):
            return
        logger.debug("provider_http method=%s url=%s status=%s text=%s", method, url, r.status_code, r.text[:300])


def is_retryable_http(code: int) -> bool:
    # Retry transient / throttling / gateway issues
    return code in (408, 425, 429, 500, 502, 503, 504)
