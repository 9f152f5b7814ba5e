"""
PDF receipts for committed orders.

A receipt is a read-only projection of an order: it never touches stock or the
stores, so it can be rendered at any time after the order was committed.

The ticket is a narrow 220 x 600 pt page set in Courier, so every row is laid
out as fixed-width text first (see receipt_rows) and then drawn as-is.
"""
import logging
import re
from pathlib import Path
from typing import List, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from app.config import get_settings
from app.models.order import Order

logger = logging.getLogger(__name__)

PAGE_SIZE = (220, 600)
MARGIN = 10
# Courier 9pt is 5.4pt per character: 36 characters fill the 200pt text width
RECEIPT_WIDTH = 36

# Row kinds understood by render_receipt
TEXT, CENTER, RULE, HEADING, TOTAL = "text", "center", "rule", "heading", "total"


def _money(value) -> str:
    return f"${value:.2f}"


def _fit(text: str, width: int) -> str:
    return text if len(text) <= width else text[:max(width - 1, 0)] + "~"


def _contact_rows(order: Order, width: int) -> List[Tuple[str, str]]:
    contact = order.contact or {}
    if not contact:
        return []

    rows = []
    name = " ".join(filter(None, (contact.get("first_name"), contact.get("last_name"))))
    if name:
        rows.append((TEXT, _fit(f"Name: {name}", width)))
    if contact.get("phone"):
        rows.append((TEXT, _fit(f"Phone: {contact['phone']}", width)))
    if contact.get("email"):
        rows.append((TEXT, _fit(f"Email: {contact['email']}", width)))
    return rows


def receipt_rows(order: Order, width: int = RECEIPT_WIDTH) -> List[Tuple[str, str]]:
    """
    Lay out an order as (kind, text) rows no wider than width.

    Each line reads "<qty> x <name>" with the subtotal right-aligned,
    followed by a rule and the centered order total.
    """
    created = order.created_at.strftime("%Y-%m-%d %H:%M") if order.created_at else ""

    rows = [
        (CENTER, _fit(f"Order #{order.id}", width)),
        (TEXT, _fit(f"Customer: {order.customer}", width)),
    ]
    if order.account_id:
        rows.append((TEXT, _fit(f"Account: {order.account_id}", width)))
    rows += _contact_rows(order, width)
    rows += [
        (CENTER, f"Date: {created}"),
        (RULE, ""),
        (HEADING, "ORDER"),
    ]

    for line in order.lines:
        amount = _money(line.subtotal)
        room = width - len(amount) - 1
        label = _fit(f"{line.quantity} x {line.product_name}", room)
        rows.append((TEXT, f"{label.ljust(room)} {amount}"))

    rows += [
        (RULE, ""),
        (TOTAL, f"TOTAL: {_money(order.total)}"),
    ]
    return rows


def render_receipt(order: Order) -> bytes:
    """Render the receipt of an order as a PDF document."""
    pdf = FPDF(unit="pt", format=PAGE_SIZE)
    pdf.set_margins(MARGIN, MARGIN, MARGIN)
    pdf.set_auto_page_break(auto=True, margin=MARGIN)
    pdf.set_title(f"Order #{order.id}")
    pdf.add_page()

    for kind, text in receipt_rows(order):
        if kind == RULE:
            pdf.ln(4)
            pdf.line(MARGIN, pdf.get_y(), PAGE_SIZE[0] - MARGIN, pdf.get_y())
            pdf.ln(4)
            continue

        if kind == HEADING:
            pdf.set_font("Courier", "BU", 10)
        elif kind == TOTAL:
            pdf.set_font("Courier", "B", 14)
        else:
            pdf.set_font("Courier", "", 9)

        # Core fonts only cover Latin-1
        text = text.encode("latin-1", "replace").decode("latin-1")
        align = "L" if kind == TEXT else "C"
        pdf.cell(0, pdf.font_size * 1.3, text, align=align, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    return bytes(pdf.output())


def receipt_path(order: Order, directory: str = None) -> Path:
    """Receipt file location: <RECEIPT_DIR>/<customer>-<order id>.pdf."""
    directory = Path(directory or get_settings().RECEIPT_DIR)
    safe_customer = re.sub(r"[^A-Za-z0-9_.-]+", "_", order.customer) or "guest"
    return directory / f"{safe_customer}-{order.id}.pdf"


def write_receipt(order: Order, directory: str = None) -> Path:
    """Render the receipt of an order and write it to disk."""
    path = receipt_path(order, directory)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(render_receipt(order))
    logger.info(f"Receipt for Order #{order.id} written to {path}")
    return path
