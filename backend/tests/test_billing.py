"""Bill arithmetic, UPI links and the printable bill."""

from decimal import Decimal
from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest

from tableorder.services.billing import (
    build_upi_url,
    calculate_bill,
    format_percentage,
    line_total,
    qr_image_url,
    render_bill_pdf,
    round2,
)


class TestCalculateBill:
    def test_reference_bill(self):
        bill = calculate_bill([(100, 2), (50, 1)], 5)
        assert bill.subtotal == Decimal("250.00")
        assert bill.service_charge_amount == Decimal("12.50")
        assert bill.total == Decimal("262.50")

    def test_zero_service_charge(self):
        bill = calculate_bill([(99.99, 3)], 0)
        assert bill.subtotal == Decimal("299.97")
        assert bill.service_charge_amount == Decimal("0.00")
        assert bill.total == Decimal("299.97")

    def test_half_up_rounding(self):
        # 10.10 * 5% = 0.505
        bill = calculate_bill([("10.10", 1)], 5)
        assert bill.service_charge_amount == Decimal("0.51")
        assert bill.total == Decimal("10.61")

    def test_no_float_noise(self):
        bill = calculate_bill([(0.1, 3)], 0)
        assert bill.subtotal == Decimal("0.30")

    def test_accepts_dicts_and_objects(self):
        lines = [
            {"price": "45.50", "quantity": 2},
            SimpleNamespace(price=Decimal("100"), quantity=1),
        ]
        assert calculate_bill(lines, 10).total == Decimal("210.10")

    def test_empty_cart(self):
        bill = calculate_bill([], 5)
        assert bill.total == Decimal("0.00")

    def test_total_is_subtotal_plus_charge(self):
        for pct in (0, 2.5, 5, 12.5, 18, 100):
            bill = calculate_bill([("123.45", 3), ("7.99", 7)], pct)
            assert bill.total == bill.subtotal + bill.service_charge_amount
            assert bill.service_charge_amount == round2(bill.subtotal * Decimal(str(pct)) / 100)

    @pytest.mark.parametrize("pct", [-1, 100.01, 250])
    def test_invalid_percentage(self, pct):
        with pytest.raises(ValueError):
            calculate_bill([(100, 1)], pct)

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValueError):
            calculate_bill([(100, 0)], 5)

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            calculate_bill([(-5, 1)], 5)

    def test_as_dict_uses_strings(self):
        assert calculate_bill([(100, 2), (50, 1)], 5).as_dict() == {
            "subtotal": "250.00",
            "service_charge": "5.00",
            "service_charge_amount": "12.50",
            "total": "262.50",
        }


class TestHelpers:
    def test_line_total(self):
        assert line_total("45.50", 3) == Decimal("136.50")

    def test_format_percentage(self):
        assert format_percentage(Decimal("5.00")) == "5"
        assert format_percentage(Decimal("12.50")) == "12.5"
        assert format_percentage(10) == "10"


class TestUpiUrl:
    def test_fields(self):
        url = build_upi_url("cafe@upi", Decimal("262.5"), "ORD-0007", "Cafe Blue")
        assert url.startswith("upi://pay?pa=cafe@upi&")
        params = parse_qs(urlparse(url).query)
        assert params["pn"] == ["Cafe Blue"]
        assert params["am"] == ["262.50"]
        assert params["tn"] == ["Order ORD-0007"]
        assert params["cu"] == ["INR"]

    def test_without_order_id(self):
        url = build_upi_url("cafe@upi", 10)
        assert "tn=" not in url

    def test_qr_image_url_encodes_data(self):
        url = qr_image_url("upi://pay?pa=cafe@upi&am=10.00", size=200)
        assert "size=200x200" in url
        assert "upi%3A%2F%2Fpay%3Fpa%3Dcafe%40upi%26am%3D10.00" in url


class TestBillPdf:
    def _order(self, **overrides):
        data = dict(
            order_id="ORD-0003",
            table_id="4",
            items=[
                {"name": "Paneer Tikka", "price": "100.00", "quantity": 2, "line_total": "200.00"},
                {"name": "Dal Makhani", "price": "50.00", "quantity": 1, "line_total": "50.00"},
            ],
            subtotal=Decimal("250.00"),
            service_charge=Decimal("5.00"),
            service_charge_amount=Decimal("12.50"),
            total=Decimal("262.50"),
            status=SimpleNamespace(value="completed"),
            payment_status=SimpleNamespace(value="paid"),
            payment_mode=SimpleNamespace(value="upi"),
            customer_name="Asha",
            created_at=None,
        )
        data.update(overrides)
        return SimpleNamespace(**data)

    def _settings(self, merchant_upi_id="cafe@upi"):
        return SimpleNamespace(
            restaurant_name="Cafe Blue",
            restaurant_address="12 MG Road",
            merchant_upi_id=merchant_upi_id,
        )

    def test_renders_pdf(self):
        pdf = render_bill_pdf(self._order(), self._settings())
        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 1000

    def test_renders_without_upi_or_settings(self):
        assert render_bill_pdf(self._order(), self._settings(merchant_upi_id=None)).startswith(b"%PDF")
        assert render_bill_pdf(self._order(), None).startswith(b"%PDF")
