"""
End-to-end smoke run against a local API (start it with `python main.py`,
which serves main:app on uvicorn, PORT default 8001):
booking -> checkout -> simulated settlement notification -> status check.

Env:
  API_BASE_URL          default http://127.0.0.1:8001
  MIDTRANS_SERVER_KEY   must match the API's key (used to sign the notification)
  JWT_SECRET            must match the API's secret (used to mint a user token)
"""
import os
import sys
import time
import uuid
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.payments.ingest import notification_signature  # noqa: E402
from security import create_access_token  # noqa: E402


def die(message, code=1):
    print(message)
    sys.exit(code)


def step(message):
    print("\n==> " + message)


def request(method, url, headers=None, json_body=None, allow_failure=False):
    try:
        resp = httpx.request(method, url, headers=headers, json=json_body, timeout=20.0)
    except httpx.HTTPError as exc:
        die("Request failed: %s" % exc)
    if resp.status_code < 200 or resp.status_code >= 300:
        if not allow_failure:
            print("HTTP %s %s" % (resp.status_code, resp.reason_phrase))
            print(resp.text)
            sys.exit(1)
    return resp


def auth_headers(token):
    return {"Authorization": "Bearer %s" % token}


def main():
    base_url = (os.getenv("API_BASE_URL") or "http://127.0.0.1:8001").rstrip("/")
    server_key = os.getenv("MIDTRANS_SERVER_KEY") or ""
    if not server_key:
        die("MIDTRANS_SERVER_KEY is required to sign the simulated notification")

    user_id = "smoke-" + uuid.uuid4().hex[:8]
    headers = auth_headers(create_access_token(user_id))

    step("Health")
    print(request("GET", base_url + "/health").json())

    step("Create booking")
    booking = request(
        "POST",
        base_url + "/v1/bookings",
        headers=headers,
        json_body={
            "doctor_id": "DOC-SMOKE",
            "appointment_date": time.strftime("%Y-%m-%d"),
            "appointment_time": "09:00",
            "service_type": "general",
        },
    ).json()["data"]
    print("booking_id=%s" % booking["booking_id"])

    step("Checkout")
    order_id = "ORD-SMOKE-" + uuid.uuid4().hex[:10]
    amount = 150000
    checkout = request(
        "POST",
        base_url + "/v1/transactions",
        headers=headers,
        json_body={
            "order_id": order_id,
            "booking_id": booking["booking_id"],
            "amount": amount,
            "customer_details": {"name": "Smoke Test", "email": "smoke@example.com"},
        },
    ).json()["data"]
    print("redirect_url=%s" % checkout["transaction"].get("redirect_url"))

    step("Simulated settlement notification")
    gross_amount = "%d.00" % amount
    notification = {
        "order_id": order_id,
        "status_code": "200",
        "gross_amount": gross_amount,
        "transaction_status": "settlement",
        "fraud_status": "accept",
        "signature_key": notification_signature(order_id, "200", gross_amount, server_key),
    }
    print(request("POST", base_url + "/v1/notifications", json_body=notification).json())

    step("Status check")
    status = request("GET", base_url + "/v1/transactions/%s/status" % order_id, headers=headers).json()["data"]
    print(status["transaction"])
    if status["booking"]["status"] != "confirmed":
        die("booking not confirmed: %s" % status["booking"])

    print("\nOK")


if __name__ == "__main__":
    main()
