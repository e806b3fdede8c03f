"""Billing: bill arithmetic, UPI payment links and the printable bill.

All money is handled as ``Decimal`` and rounded half-up to two places.
``calculate_bill`` is pure; the same function prices the cart preview, the
persisted order and the PDF bill, so the three always agree.
"""

import io
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional
from urllib.parse import quote, quote_plus, urlencode

from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from tableorder.core.config import settings

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert ints, strings and floats to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Any) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BillSummary:
    subtotal: Decimal
    service_charge_percentage: Decimal
    service_charge_amount: Decimal
    total: Decimal

    def as_dict(self) -> dict[str, str]:
        return {
            "subtotal": str(self.subtotal),
            "service_charge": str(self.service_charge_percentage),
            "service_charge_amount": str(self.service_charge_amount),
            "total": str(self.total),
        }


def _price_and_quantity(line: Any) -> tuple[Decimal, int]:
    if isinstance(line, dict):
        return to_decimal(line["price"]), int(line["quantity"])
    if isinstance(line, (tuple, list)):
        price, quantity = line
        return to_decimal(price), int(quantity)
    return to_decimal(line.price), int(line.quantity)


def format_percentage(value: Any) -> str:
    """``Decimal("5.00")`` -> ``"5"``, ``Decimal("12.50")`` -> ``"12.5"``."""
    text = f"{round2(value):f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def line_total(price: Any, quantity: int) -> Decimal:
    return round2(to_decimal(price) * quantity)


def calculate_bill(lines: Iterable[Any], service_charge_percentage: Any = 0) -> BillSummary:
    """Price a set of lines.

    ``lines`` may be ``(price, quantity)`` pairs, dicts or objects exposing
    ``price`` and ``quantity``.

        subtotal = sum(price * quantity)
        service_charge_amount = round2(subtotal * pct / 100)
        total = round2(subtotal + service_charge_amount)
    """
    pct = to_decimal(service_charge_percentage or 0)
    if pct < 0 or pct > 100:
        raise ValueError(f"service charge must be between 0 and 100, got {pct}")

    subtotal = Decimal("0")
    for line in lines:
        price, quantity = _price_and_quantity(line)
        if quantity < 1:
            raise ValueError(f"quantity must be at least 1, got {quantity}")
        if price < 0:
            raise ValueError(f"price cannot be negative, got {price}")
        subtotal += price * quantity
    subtotal = round2(subtotal)

    service_charge_amount = round2(subtotal * pct / 100)
    return BillSummary(
        subtotal=subtotal,
        service_charge_percentage=round2(pct),
        service_charge_amount=service_charge_amount,
        total=round2(subtotal + service_charge_amount),
    )


# ---------------------------------------------------------------------------
# UPI
# ---------------------------------------------------------------------------

def build_upi_url(
    merchant_upi_id: str,
    amount: Any,
    order_id: Optional[str] = None,
    payee_name: Optional[str] = None,
) -> str:
    """UPI deep link understood by every UPI app.

    ``upi://pay?pa=<vpa>&pn=<name>&am=<amount>&tn=Order+<id>&cu=INR``
    """
    params = {
        "pa": merchant_upi_id,
        "pn": payee_name or settings.upi_payee_name,
        "am": f"{round2(amount):.2f}",
    }
    if order_id:
        params["tn"] = f"Order {order_id}"
    params["cu"] = settings.currency
    return "upi://pay?" + urlencode(params, quote_via=quote_plus, safe="@")


def qr_image_url(data: str, size: Optional[int] = None) -> str:
    """External QR image URL encoding ``data``."""
    size = size or settings.qr_image_size
    return f"{settings.qr_image_api}?size={size}x{size}&data={quote(data, safe='')}"


# ---------------------------------------------------------------------------
# Printable bill
# ---------------------------------------------------------------------------

def _upi_qr_drawing(upi_url: str, size: float = 4 * cm) -> Drawing:
    widget = QrCodeWidget(upi_url)
    x1, y1, x2, y2 = widget.getBounds()
    width, height = x2 - x1, y2 - y1
    drawing = Drawing(size, size, transform=[size / width, 0, 0, size / height, 0, 0])
    drawing.add(widget)
    return drawing


def render_bill_pdf(order, tenant_settings) -> bytes:
    """Render the customer's bill as a PDF.

    ``order`` is an ``Order`` row; ``tenant_settings`` a ``TenantSettings``
    row (or None). A UPI QR code is printed when the tenant has a merchant
    UPI id.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=2 * cm, bottomMargin=2 * cm)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("BillTitle", parent=styles["Heading1"], fontSize=18, spaceAfter=6)
    center_style = ParagraphStyle("BillCenter", parent=styles["Normal"], alignment=1)

    restaurant_name = tenant_settings.restaurant_name if tenant_settings else "Restaurant"
    elements = [Paragraph(restaurant_name, title_style)]
    if tenant_settings and tenant_settings.restaurant_address:
        elements.append(Paragraph(tenant_settings.restaurant_address, styles["Normal"]))
    elements.append(Spacer(1, 0.4 * cm))
    elements.append(Paragraph("<b>TAX INVOICE</b>", center_style))
    elements.append(Spacer(1, 0.4 * cm))

    created = order.created_at.strftime("%d %b %Y, %H:%M") if order.created_at else ""
    info = [
        f"<b>Order ID:</b> {order.order_id}",
        f"<b>Table:</b> {order.table_id}",
        f"<b>Date:</b> {created}",
    ]
    if order.customer_name:
        info.append(f"<b>Customer:</b> {order.customer_name}")
    info.append(f"<b>Payment Mode:</b> {order.payment_mode.value.upper()}")
    info.append(f"<b>Payment Status:</b> {order.payment_status.value.upper()}")
    for line in info:
        elements.append(Paragraph(line, styles["Normal"]))
    elements.append(Spacer(1, 0.6 * cm))

    table_data = [["Item", "Qty", "Price", "Amount"]]
    for item in order.items:
        table_data.append([
            item["name"][:40],
            str(item["quantity"]),
            f"{to_decimal(item['price']):.2f}",
            f"{line_total(item['price'], item['quantity']):.2f}",
        ])
    table_data.append(["", "", "Subtotal", f"{order.subtotal:.2f}"])
    if order.service_charge and to_decimal(order.service_charge) > 0:
        table_data.append([
            "", "", f"Service Charge ({format_percentage(order.service_charge)}%)",
            f"{order.service_charge_amount:.2f}",
        ])
    table_data.append(["", "", "GRAND TOTAL", f"{settings.currency} {order.total:.2f}"])

    summary_rows = len(table_data) - len(order.items) - 1
    table = Table(table_data, colWidths=[8 * cm, 2 * cm, 4 * cm, 3.5 * cm])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("LINEBELOW", (0, 0), (-1, 0), 1, colors.black),
        ("LINEABOVE", (0, -summary_rows), (-1, -summary_rows), 0.5, colors.black),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
    ]))
    elements.append(table)

    merchant_upi_id = tenant_settings.merchant_upi_id if tenant_settings else None
    if merchant_upi_id:
        upi_url = build_upi_url(merchant_upi_id, order.total, order.order_id, restaurant_name)
        elements.append(Spacer(1, 0.8 * cm))
        elements.append(Paragraph("Scan to pay with any UPI app", center_style))
        qr_table = Table([[_upi_qr_drawing(upi_url)]], colWidths=[17.5 * cm])
        qr_table.setStyle(TableStyle([("ALIGN", (0, 0), (-1, -1), "CENTER")]))
        elements.append(qr_table)

    elements.append(Spacer(1, 0.8 * cm))
    elements.append(Paragraph("Thank you for dining with us!", center_style))

    doc.build(elements)
    logger.debug(f"Rendered bill for order {order.order_id}")
    return buffer.getvalue()
