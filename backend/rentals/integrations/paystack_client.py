"""Minimal Paystack API client for booking checkout."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, cast
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)


class PaystackError(RuntimeError):
    """Raised when Paystack is unreachable or responds with an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_body = error_body


class PaystackClient:
    """Thin client for the Paystack transaction API."""

    def __init__(
        self,
        *,
        secret_key: str | SecretStr,
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = (
            secret_key.get_secret_value() if isinstance(secret_key, SecretStr) else secret_key
        )
        if not secret_value:
            raise ValueError("Paystack secret key must be provided")

        self._secret_key = secret_value
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def initialize_transaction(
        self,
        *,
        email: str,
        amount_minor: int,
        reference: str,
        callback_url: str,
        currency: str | None = None,
    ) -> Dict[str, Any]:
        """
        Open a transaction and return Paystack's ``data`` object
        (``authorization_url``, ``access_code``, ``reference``).
        """

        body: Dict[str, Any] = {
            "email": email,
            "amount": amount_minor,
            "reference": reference,
            "callback_url": callback_url,
        }
        if currency:
            body["currency"] = currency
        payload = self.request("POST", "/transaction/initialize", json_body=body)
        data = payload.get("data")
        if not isinstance(data, dict) or not data.get("authorization_url"):
            raise PaystackError("Paystack initialize response missing authorization_url")
        return cast(Dict[str, Any], data)

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Look up a transaction by reference and return Paystack's ``data`` object."""

        if not reference:
            raise ValueError("reference must be provided")
        payload = self.request("GET", f"/transaction/verify/{reference}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise PaystackError("Paystack verify response missing data")
        return cast(Dict[str, Any], data)

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw Paystack request and return the parsed JSON payload."""

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._secret_key}",
                "Accept": "application/json",
            },
        ) as client:
            logger.debug(
                "PaystackClient request",
                extra={"evt": "paystack_request", "method": method, "path": path},
            )
            try:
                response = client.request(method, url, json=json_body)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                error_payload: Any | None = None
                try:
                    error_payload = exc.response.json()
                except json.JSONDecodeError:
                    error_payload = exc.response.text

                logger.error(
                    "Paystack API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise PaystackError(
                    message=f"Paystack API responded with status {status}",
                    status_code=status,
                    error_body=error_payload,
                ) from exc
            except httpx.TimeoutException as exc:
                logger.error("Paystack request timed out for %s %s", method, path)
                raise PaystackError("Timed out waiting for Paystack") from exc
            except httpx.RequestError as exc:
                logger.error("Paystack request failure for %s %s: %s", method, path, str(exc))
                raise PaystackError("Failed to reach Paystack API") from exc

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from Paystack for %s %s: %s", method, path, response.text)
            raise PaystackError("Received malformed JSON from Paystack") from exc

        if not isinstance(payload, dict) or not payload.get("status"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise PaystackError(
                message or "Paystack reported an unsuccessful request",
                status_code=response.status_code,
                error_body=payload,
            )
        return cast(Dict[str, Any], payload)


def _with_query(url: str, **params: str) -> str:
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query))
    query.update(params)
    return urlunsplit(parts._replace(query=urlencode(query)))


class FakePaystackClient(PaystackClient):
    """In-memory stub that completes every payment without contacting Paystack."""

    def __init__(self) -> None:
        super().__init__(secret_key="sk_test_fake", base_url="https://api.paystack.co")
        self._logger = logging.getLogger(self.__class__.__name__)

    def initialize_transaction(
        self,
        *,
        email: str,
        amount_minor: int,
        reference: str,
        callback_url: str,
        currency: str | None = None,
    ) -> Dict[str, Any]:
        # Sends the resident straight back to the callback with the mock success marker.
        authorization_url = _with_query(callback_url, reference=reference, status="success")
        self._logger.debug(
            "Fake transaction initialized",
            extra={"reference": reference, "amount_minor": amount_minor},
        )
        return {
            "authorization_url": authorization_url,
            "access_code": f"mock-{reference}",
            "reference": reference,
        }

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        return {"reference": reference, "status": "success", "gateway_response": "Mock"}
