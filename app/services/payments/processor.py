"""
Payment processor client (LencoPay backend).

initiate() sends the charge request and returns the processor reference.
get_status() returns the normalized status of a reference.
Transport calls go through a pybreaker circuit breaker; business rejections
(success=false) do not count as breaker failures.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
import pybreaker

from app.core.config import settings
from app.core.errors import InitiationError
from app.services.payments.models import InitiationRequest, PaymentPurpose, ProcessorStatus

logger = logging.getLogger(__name__)

COMPLETED_STATUSES = frozenset({"completed", "successful", "success", "paid"})
FAILED_STATUSES = frozenset({"failed", "declined", "cancelled", "canceled", "rejected", "expired"})


def normalize_status(raw: str | None) -> str:
    value = (raw or "").strip().lower()
    if value in COMPLETED_STATUSES:
        return "completed"
    if value in FAILED_STATUSES:
        return "failed"
    return "pending"


class ProcessorError(Exception):
    """Status query could not be answered (transport, breaker open, malformed body)."""


class PaymentProcessor(ABC):
    """Base class for payment processors."""

    @abstractmethod
    def initiate(self, request: InitiationRequest) -> str:
        """Send the charge request. Returns the reference. Raises InitiationError."""

    @abstractmethod
    def get_status(self, reference: str) -> ProcessorStatus:
        """Query settlement status. Raises ProcessorError when it cannot tell."""


class LencoPayProcessor(PaymentProcessor):
    INITIATE_PATHS = {
        PaymentPurpose.SUBSCRIPTION: "/subscription/initiate",
        PaymentPurpose.CONTACT_UNLOCK: "/contact-unlock/initiate",
        PaymentPurpose.REFERRAL_ACCESS: "/referral-access/initiate",
    }

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self.base_url = (base_url or settings.payment_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_client_timeout
        self._client = client
        if breaker is None:
            from app.services.circuit_breaker import PAYMENT_PROCESSOR, get_circuit_breaker

            breaker = get_circuit_breaker(PAYMENT_PROCESSOR)
        self.breaker = breaker

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def _build_body(self, request: InitiationRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "phone": request.phone,
            "operator": request.operator.value,
            "amount": request.amount,
        }
        if request.email:
            body["email"] = request.email
        if request.purpose == PaymentPurpose.CONTACT_UNLOCK:
            body["clientId"] = request.client_id
            body["providerId"] = request.provider_id
        else:
            body["userId"] = request.client_id
            if request.purpose == PaymentPurpose.SUBSCRIPTION:
                body["plan"] = settings.subscription_plan
        return body

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        resp = self.client.post(f"{self.base_url}{path}", json=body)
        if resp.status_code >= 500:
            resp.raise_for_status()
        return resp.json()

    def _get(self, path: str) -> dict[str, Any]:
        resp = self.client.get(f"{self.base_url}{path}")
        resp.raise_for_status()
        return resp.json()

    def initiate(self, request: InitiationRequest) -> str:
        path = self.INITIATE_PATHS[request.purpose]
        try:
            data = self.breaker.call(self._post, path, self._build_body(request))
        except pybreaker.CircuitBreakerError as e:
            raise InitiationError("Payments are temporarily unavailable. Please try again shortly.") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "payment_initiate_transport_error",
                extra={"purpose": request.purpose.value, "error": str(e)},
            )
            raise InitiationError("Failed to initiate payment. Please try again.") from e

        if not isinstance(data, dict) or not isinstance(data.get("data") or {}, dict):
            logger.warning(
                "payment_initiate_malformed_response",
                extra={"purpose": request.purpose.value, "body": repr(data)[:200]},
            )
            raise InitiationError("Failed to initiate payment. Please try again.")

        payload = data.get("data") or {}
        reference = payload.get("reference")
        if not data.get("success") or not reference or not isinstance(reference, str):
            message = _error_message(data) or "Payment could not be initiated"
            logger.warning(
                "payment_initiate_rejected",
                extra={"purpose": request.purpose.value, "error": message},
            )
            raise InitiationError(message, detail=data)
        return reference

    def get_status(self, reference: str) -> ProcessorStatus:
        try:
            data = self.breaker.call(self._get, f"/{reference}")
        except (pybreaker.CircuitBreakerError, httpx.HTTPError, ValueError) as e:
            raise ProcessorError(str(e)) from e

        if not isinstance(data, dict):
            raise ProcessorError(f"malformed status body: {repr(data)[:200]}")
        if not data.get("success") or not data.get("data"):
            raise ProcessorError(_error_message(data) or "status unavailable")

        payload = data["data"]
        if not isinstance(payload, dict):
            raise ProcessorError(f"malformed status payload: {repr(payload)[:200]}")
        message = payload.get("message") or payload.get("failure_reason")
        raw_status = payload.get("status")
        return ProcessorStatus(
            status=normalize_status(raw_status if isinstance(raw_status, str) else None),
            message=message if isinstance(message, str) else None,
        )


def _error_message(data: dict[str, Any]) -> str | None:
    error = data.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return None
