"""Payment-link providers for UPI orders.

A UPI order is only stored once a payment link exists for it. Providers
raise ``PaymentLinkError`` on any failure; callers treat it as transient.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import httpx

from tableorder.core.config import settings
from tableorder.core.errors import PaymentLinkError
from tableorder.services.billing import build_upi_url, qr_image_url, round2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentLink:
    upi_url: str
    qr_url: str


class PaymentLinkProvider(ABC):
    @abstractmethod
    def create_link(
        self,
        *,
        tenant_id: str,
        order_id: str,
        amount: Decimal,
        merchant_upi_id: Optional[str],
        payee_name: Optional[str] = None,
    ) -> PaymentLink:
        ...


def _validate(order_id: str, amount: Decimal) -> None:
    if not order_id or amount is None or amount <= 0:
        raise PaymentLinkError("Invalid order id or amount for payment link")


class UpiPaymentLinkProvider(PaymentLinkProvider):
    """Builds the UPI deep link and its QR image URL locally."""

    def create_link(self, *, tenant_id, order_id, amount, merchant_upi_id, payee_name=None):
        _validate(order_id, amount)
        if not merchant_upi_id:
            logger.error(f"Tenant {tenant_id} has no merchant UPI id configured")
            raise PaymentLinkError("UPI payments are not configured for this restaurant")
        upi_url = build_upi_url(merchant_upi_id, amount, order_id, payee_name)
        return PaymentLink(upi_url=upi_url, qr_url=qr_image_url(upi_url))


class RemotePaymentLinkProvider(PaymentLinkProvider):
    """Delegates to an HTTP payment-link function.

    POSTs ``{"order_id", "amount", "tenant_id"}`` and expects
    ``{"upi_url", "qr_url"}`` back.
    """

    def __init__(self, url: str, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def create_link(self, *, tenant_id, order_id, amount, merchant_upi_id=None, payee_name=None):
        _validate(order_id, amount)
        payload = {"order_id": order_id, "amount": float(round2(amount)), "tenant_id": tenant_id}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Payment link request for order {order_id} failed: "
                f"{e.response.status_code} {e.response.text[:200]}"
            )
            raise PaymentLinkError("Payment service is unavailable, please try again") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Payment link request for order {order_id} failed: {e}")
            raise PaymentLinkError("Payment service is unavailable, please try again") from e

        if not isinstance(data, dict):
            logger.warning(f"Payment link response for order {order_id} is not an object: {str(data)[:200]}")
            raise PaymentLinkError("Payment service returned an invalid response")
        if not data.get("upi_url") or not data.get("qr_url"):
            logger.warning(f"Payment link response for order {order_id} is missing fields: {data}")
            raise PaymentLinkError("Payment service returned an incomplete response")
        return PaymentLink(upi_url=data["upi_url"], qr_url=data["qr_url"])


def get_payment_link_provider() -> PaymentLinkProvider:
    """FastAPI dependency: remote provider when configured, local UPI otherwise."""
    if settings.payment_link_url:
        return RemotePaymentLinkProvider(settings.payment_link_url, settings.payment_link_timeout)
    return UpiPaymentLinkProvider()
