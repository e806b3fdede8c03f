"""Payment-link providers."""

import json
from decimal import Decimal
from urllib.parse import unquote

import httpx
import pytest

from tableorder.core.config import settings
from tableorder.core.errors import PaymentLinkError
from tableorder.services.billing import qr_image_url
from tableorder.services.payment_link import RemotePaymentLinkProvider, UpiPaymentLinkProvider

FUNCTION_URL = "https://payments.example/functions/v1/generate-upi-link"


def remote(handler):
    return RemotePaymentLinkProvider(FUNCTION_URL, transport=httpx.MockTransport(handler))


class TestUpiProvider:
    def test_builds_link(self):
        link = UpiPaymentLinkProvider().create_link(
            tenant_id="t-1", order_id="ORD-0001", amount=Decimal("262.50"),
            merchant_upi_id="cafe@upi", payee_name="Cafe Blue",
        )
        assert link.upi_url.startswith("upi://pay?pa=cafe@upi")
        assert "am=262.50" in link.upi_url
        assert link.qr_url.startswith(settings.qr_image_api)
        assert link.qr_url == qr_image_url(link.upi_url)
        assert "ORD-0001" in unquote(link.qr_url)

    def test_requires_merchant_id(self):
        with pytest.raises(PaymentLinkError, match="not configured"):
            UpiPaymentLinkProvider().create_link(
                tenant_id="t-1", order_id="ORD-0001", amount=Decimal("10"), merchant_upi_id=None,
            )

    @pytest.mark.parametrize("order_id,amount", [("", Decimal("10")), ("ORD-0001", Decimal("0"))])
    def test_invalid_input(self, order_id, amount):
        with pytest.raises(PaymentLinkError):
            UpiPaymentLinkProvider().create_link(
                tenant_id="t-1", order_id=order_id, amount=amount, merchant_upi_id="cafe@upi",
            )


class TestRemoteProvider:
    def test_success(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"upi_url": "upi://pay?pa=x@upi", "qr_url": "https://qr/x"})

        link = remote(handler).create_link(tenant_id="t-1", order_id="ORD-0009", amount=Decimal("99.999"))
        assert link.upi_url == "upi://pay?pa=x@upi"
        assert link.qr_url == "https://qr/x"
        assert seen["url"] == FUNCTION_URL
        assert seen["body"] == {"order_id": "ORD-0009", "amount": 100.0, "tenant_id": "t-1"}

    def test_http_error(self):
        provider = remote(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(PaymentLinkError, match="unavailable"):
            provider.create_link(tenant_id="t-1", order_id="ORD-0009", amount=Decimal("10"))

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(PaymentLinkError):
            remote(handler).create_link(tenant_id="t-1", order_id="ORD-0009", amount=Decimal("10"))

    def test_non_json_response(self):
        provider = remote(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(PaymentLinkError):
            provider.create_link(tenant_id="t-1", order_id="ORD-0009", amount=Decimal("10"))

    def test_json_that_is_not_an_object(self):
        provider = remote(lambda request: httpx.Response(200, json=["upi://pay?pa=x@upi"]))
        with pytest.raises(PaymentLinkError, match="invalid response"):
            provider.create_link(tenant_id="t-1", order_id="ORD-0009", amount=Decimal("10"))

    def test_missing_fields(self):
        provider = remote(lambda request: httpx.Response(200, json={"upi_url": "upi://pay?pa=x@upi"}))
        with pytest.raises(PaymentLinkError, match="incomplete"):
            provider.create_link(tenant_id="t-1", order_id="ORD-0009", amount=Decimal("10"))
