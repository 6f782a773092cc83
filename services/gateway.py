# services/gateway.py
"""
Payment Gateway Client.

Talks to the card/ACH processor (CyberSource-style REST API): tokenization,
authorize-and-capture, refunds, transaction lookup and webhook signature
checks. Every call is signed with HMAC-SHA256 and bounded by a timeout.

Methods never raise for gateway-side problems. A decline, an HTTP error,
a timeout or a dropped connection all come back as
GatewayResult(success=False, error={...}); the settlement engine decides
what to persist and what to surface.
"""
import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import (
     GATEWAY_API_KEY,
     GATEWAY_BASE_URL,
     GATEWAY_MERCHANT_ID,
     GATEWAY_SECRET_KEY,
     GATEWAY_TIMEOUT_SECONDS,
     PAYMENT_CURRENCY,
)

logger = logging.getLogger(__name__)


@dataclass
class GatewayResult:
     """Outcome of one gateway call."""
     success: bool
     status: Optional[str] = None
     transaction_id: Optional[str] = None
     authorization_code: Optional[str] = None
     response_code: Optional[str] = None
     refund_id: Optional[str] = None
     token: Optional[str] = None
     card_brand: Optional[str] = None
     last_four: Optional[str] = None
     error: Optional[dict] = None
     raw: dict = field(default_factory=dict)

     @property
     def error_message(self) -> str:
          if not self.error:
               return "Payment processing failed"
          return str(self.error.get("message") or self.error.get("reason") or self.error)


class PaymentGatewayClient:
     """
     Signed JSON client for the payment processor.

     Only idempotent reads (GET) are retried; a charge or refund POST is
     sent exactly once, since a retried POST could charge twice.
     """

     def __init__(
          self,
          base_url: str = GATEWAY_BASE_URL,
          merchant_id: Optional[str] = GATEWAY_MERCHANT_ID,
          api_key: Optional[str] = GATEWAY_API_KEY,
          secret_key: str = GATEWAY_SECRET_KEY,
          timeout: float = GATEWAY_TIMEOUT_SECONDS,
          currency: str = PAYMENT_CURRENCY,
          session: Optional[requests.Session] = None,
     ):
          self.base_url = base_url.rstrip("/")
          self.merchant_id = merchant_id
          self.api_key = api_key
          self.secret_key = secret_key or ""
          self.timeout = timeout
          self.currency = currency
          self.session = session or self._create_session()

     def _create_session(self) -> requests.Session:
          session = requests.Session()
          retry = Retry(
               total=3,
               backoff_factor=0.5,
               status_forcelist=[429, 500, 502, 503, 504],
               allowed_methods=["GET"],
          )
          adapter = HTTPAdapter(max_retries=retry)
          session.mount("http://", adapter)
          session.mount("https://", adapter)
          return session

     # ------------------------------------------------------------------
     # Signing / transport
     # ------------------------------------------------------------------

     def _sign(self, body: str, timestamp: str) -> str:
          digest = hmac.new(
               self.secret_key.encode("utf-8"),
               f"{timestamp}{body}".encode("utf-8"),
               hashlib.sha256,
          ).digest()
          return base64.b64encode(digest).decode("ascii")

     def _headers(self, body: str) -> dict:
          timestamp = str(int(time.time() * 1000))
          return {
               "Content-Type": "application/json",
               "v-c-merchant-id": self.merchant_id or "",
               "v-c-date": timestamp,
               "v-c-signature": self._sign(body, timestamp),
               "v-c-api-key": self.api_key or "",
          }

     def _request(self, method: str, endpoint: str, payload: Optional[dict] = None) -> tuple[bool, dict]:
          """
          Returns (ok, data). On failure `data` is the error payload, always
          carrying a "reason" of declined, http_error, timeout or network_error.
          """
          body = json.dumps(payload or {}, separators=(",", ":"), default=str)
          url = f"{self.base_url}{endpoint}"
          try:
               response = self.session.request(
                    method,
                    url,
                    data=body if method != "GET" else None,
                    headers=self._headers(body),
                    timeout=self.timeout,
               )
          except requests.Timeout:
               logger.error("Gateway %s %s timed out after %ss", method, endpoint, self.timeout)
               return False, {"message": "Payment gateway timed out", "reason": "timeout"}
          except requests.RequestException as e:
               logger.error("Gateway %s %s failed: %s", method, endpoint, e)
               return False, {"message": f"Payment gateway unreachable: {e}", "reason": "network_error"}

          try:
               data = response.json()
          except ValueError:
               data = {"message": response.text}

          if response.status_code not in (200, 201):
               logger.error("Gateway %s %s returned %s: %s", method, endpoint, response.status_code, data)
               error = dict(data) if isinstance(data, dict) else {"message": str(data)}
               error.setdefault("reason", "http_error")
               error.setdefault("http_status", response.status_code)
               return False, error
          return True, data if isinstance(data, dict) else {"data": data}

     # ------------------------------------------------------------------
     # Operations
     # ------------------------------------------------------------------

     def tokenize_instrument(self, payment_type: str, instrument: dict, billing_info: dict) -> GatewayResult:
          """
          Exchange raw card/bank details for a reusable token. The raw
          instrument is sent to the gateway only and never stored.
          """
          payload: dict[str, Any] = {
               "clientReferenceInformation": {"code": f"token_{int(time.time() * 1000)}"},
               "orderInformation": {"billTo": self._bill_to(billing_info)},
          }
          if payment_type == "card":
               payload["paymentInformation"] = {
                    "card": {
                         "number": instrument.get("number"),
                         "expirationMonth": instrument.get("expiry_month"),
                         "expirationYear": instrument.get("expiry_year"),
                         "securityCode": instrument.get("cvv"),
                    }
               }
          else:
               payload["paymentInformation"] = {
                    "bank": {
                         "account": {
                              "number": instrument.get("account_number"),
                              "type": instrument.get("account_type"),
                         },
                         "routingNumber": instrument.get("routing_number"),
                    }
               }

          ok, data = self._request("POST", "/tms/v2/tokens", payload)
          if not ok:
               return GatewayResult(success=False, status="failed", error=data)

          info = data.get("paymentInformation", {})
          return GatewayResult(
               success=True,
               status="active",
               token=data.get("id"),
               card_brand=info.get("card", {}).get("type"),
               last_four=(
                    info.get("card", {}).get("suffix")
                    or info.get("bank", {}).get("account", {}).get("suffix")
               ),
               raw=data,
          )

     def authorize_and_capture(
          self,
          token: str,
          amount: Decimal,
          currency: Optional[str],
          order_reference: str,
          billing_info: dict,
          description: Optional[str] = None,
     ) -> GatewayResult:
          currency = currency or self.currency
          payload: dict[str, Any] = {
               "clientReferenceInformation": {"code": order_reference},
               "processingInformation": {"capture": True, "commerceIndicator": "internet"},
               "paymentInformation": {"customer": {"customerId": token}},
               "orderInformation": {
                    "amountDetails": {"totalAmount": str(amount), "currency": currency},
                    "billTo": self._bill_to(billing_info),
               },
          }
          if description:
               payload["orderInformation"]["lineItems"] = [
                    {"productName": description, "quantity": 1, "unitPrice": str(amount)}
               ]

          ok, data = self._request("POST", "/pts/v2/payments", payload)
          if ok and data.get("status") == "AUTHORIZED":
               processor = data.get("processorInformation", {})
               return GatewayResult(
                    success=True,
                    status="completed",
                    transaction_id=data.get("id"),
                    authorization_code=processor.get("approvalCode"),
                    response_code=processor.get("responseCode"),
                    raw=data,
               )

          if ok:
               # 201 with a non-authorized status is a decline
               error = data.get("errorInformation") or {"message": "Payment authorization failed"}
               error = dict(error)
               error.setdefault("reason", "declined")
               error.setdefault("status", data.get("status"))
               return GatewayResult(success=False, status="failed", transaction_id=data.get("id"), error=error, raw=data)
          return GatewayResult(success=False, status="failed", error=data)

     def refund(self, transaction_id: str, amount: Decimal, reason: Optional[str], currency: Optional[str] = None) -> GatewayResult:
          payload = {
               "orderInformation": {
                    "amountDetails": {"totalAmount": str(amount), "currency": currency or self.currency}
               },
               "clientReferenceInformation": {
                    "code": f"refund_{int(time.time() * 1000)}",
                    "comments": reason,
               },
          }
          ok, data = self._request("POST", f"/pts/v2/captures/{transaction_id}/refunds", payload)
          if not ok:
               return GatewayResult(success=False, status="failed", error=data)
          return GatewayResult(success=True, status="refunded", refund_id=data.get("id"), raw=data)

     def get_transaction_status(self, transaction_id: str) -> GatewayResult:
          ok, data = self._request("GET", f"/tss/v2/transactions/{transaction_id}")
          if not ok:
               return GatewayResult(success=False, error=data)
          status = data.get("applicationInformation", {}).get("status") or data.get("status")
          return GatewayResult(success=True, status=status, transaction_id=transaction_id, raw=data)

     def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
          if not signature or not self.secret_key:
               return False
          expected = base64.b64encode(
               hmac.new(self.secret_key.encode("utf-8"), body, hashlib.sha256).digest()
          ).decode("ascii")
          return hmac.compare_digest(expected, signature)

     @staticmethod
     def _bill_to(billing_info: Optional[dict]) -> dict:
          billing_info = billing_info or {}
          address = billing_info.get("address") or {}
          return {
               "firstName": billing_info.get("first_name"),
               "lastName": billing_info.get("last_name"),
               "email": billing_info.get("email"),
               "address1": address.get("line1"),
               "address2": address.get("line2"),
               "locality": address.get("city"),
               "administrativeArea": address.get("state"),
               "postalCode": address.get("zip_code"),
               "country": address.get("country") or "US",
          }
