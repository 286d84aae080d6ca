"""Receipt, invoice and quotation layout on a fixed A4 page."""

from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from typing import Optional

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

# ─── PALETTE ───
PRIMARY = HexColor("#1B2A4A")
ACCENT = HexColor("#0D7377")
IMPACT_FILL = HexColor("#E6F4F1")
IMPACT_TEXT = HexColor("#166534")
ROW_SHADE = HexColor("#F1F5F9")
RULE = HexColor("#94A3B8")
TEXT = HexColor("#2D3748")
MUTED = HexColor("#64748B")
WHITE = HexColor("#FFFFFF")

W, H = A4
MARGIN = 45
CONTENT_W = W - 2 * MARGIN
ROW_HEIGHT = 18
FOOTER_Y = 60

ITEM_DESCRIPTION_LIMIT = 40
NOTES_LIMIT = 80
ELLIPSIS = ".."

TITLES = {"receipt": "RECEIPT", "invoice": "INVOICE", "quotation": "QUOTATION"}


def truncate(text: Optional[str], limit: int) -> str:
    """Cut `text` to at most `limit` characters, ending in a two-dot marker when cut."""
    text = text or ""
    if len(text) <= limit:
        return text
    if limit <= len(ELLIPSIS):
        return text[:limit]
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def format_money(amount) -> str:
    return f"K{float(amount or 0):,.2f}"


def format_quantity(quantity) -> str:
    quantity = quantity or 0
    if float(quantity).is_integer():
        return str(int(quantity))
    return f"{quantity:g}"


@dataclass
class LineItem:
    description: str
    quantity: float
    unit_price: float
    amount: float


@dataclass
class Branding:
    company_name: str = "Company"
    address: str = ""
    phone: str = ""
    email: str = ""
    impact_enabled: bool = False
    impact_unit_label: str = "Liters of Clean Water"


@dataclass
class DocumentContent:
    document_type: str
    document_number: str
    client_name: str
    issued_at: Optional[datetime]
    total: float
    items: list[LineItem] = field(default_factory=list)
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    impact_units: float = 0


def shows_impact_banner(content: DocumentContent, branding: Branding) -> bool:
    return bool(branding.impact_enabled) and (content.impact_units or 0) > 0


class DocumentRenderer:
    """Draws one document onto a single A4 canvas."""

    def __init__(self, content: DocumentContent, branding: Branding):
        self.content = content
        self.branding = branding
        self.buffer = BytesIO()
        self.c = canvas.Canvas(self.buffer, pagesize=A4)
        self.c.setTitle(f"{TITLES.get(content.document_type, 'DOCUMENT')} {content.document_number}")
        self.c.setAuthor(branding.company_name)
        self.y = H - MARGIN

    # ─── DRAWING PRIMITIVES ───

    def draw_text(self, text, x, y, font="Helvetica", size=10, color=TEXT, align="left"):
        self.c.saveState()
        self.c.setFont(font, size)
        self.c.setFillColor(color)
        if align == "right":
            self.c.drawRightString(x, y, text)
        elif align == "center":
            self.c.drawCentredString(x, y, text)
        else:
            self.c.drawString(x, y, text)
        self.c.restoreState()

    def draw_rect(self, x, y, w, h, fill):
        self.c.saveState()
        self.c.setFillColor(fill)
        self.c.rect(x, y, w, h, fill=1, stroke=0)
        self.c.restoreState()

    def draw_rule(self, y, color=RULE, width=0.5):
        self.c.saveState()
        self.c.setStrokeColor(color)
        self.c.setLineWidth(width)
        self.c.line(MARGIN, y, W - MARGIN, y)
        self.c.restoreState()

    # ─── SECTIONS ───

    def draw_header(self):
        self.draw_rect(0, H - 110, W, 110, PRIMARY)
        self.draw_text(self.branding.company_name.upper(), MARGIN, H - 50, font="Helvetica-Bold", size=18, color=WHITE)
        contact = [self.branding.address]
        if self.branding.phone:
            contact.append(f"Tel: {self.branding.phone}")
        if self.branding.email:
            contact.append(f"Email: {self.branding.email}")
        self.draw_text("  |  ".join(part for part in contact if part), MARGIN, H - 72, size=9, color=WHITE)

        title = TITLES.get(self.content.document_type, "DOCUMENT")
        self.draw_text(title, W - MARGIN, H - 50, font="Helvetica-Bold", size=20, color=WHITE, align="right")
        self.draw_text(self.content.document_number, W - MARGIN, H - 72, size=10, color=WHITE, align="right")
        self.y = H - 140

    def draw_meta(self):
        issued = self.content.issued_at.strftime("%d %b %Y") if self.content.issued_at else ""
        self.draw_text("BILL TO", MARGIN, self.y, font="Helvetica-Bold", size=8, color=MUTED)
        self.draw_text("DATE", W - MARGIN, self.y, font="Helvetica-Bold", size=8, color=MUTED, align="right")
        self.y -= 14
        self.draw_text(self.content.client_name, MARGIN, self.y, font="Helvetica-Bold", size=11)
        self.draw_text(issued, W - MARGIN, self.y, size=10, align="right")
        if self.content.status:
            self.y -= 14
            self.draw_text(f"Status: {self.content.status}", W - MARGIN, self.y, size=9, color=MUTED, align="right")
        self.y -= 30

    def draw_items(self):
        col_desc = MARGIN + 8
        col_qty = MARGIN + 300
        col_price = MARGIN + 400
        col_amount = W - MARGIN - 8

        self.draw_rect(MARGIN, self.y - 6, CONTENT_W, ROW_HEIGHT, ACCENT)
        self.draw_text("DESCRIPTION", col_desc, self.y, font="Helvetica-Bold", size=9, color=WHITE)
        self.draw_text("QTY", col_qty, self.y, font="Helvetica-Bold", size=9, color=WHITE, align="right")
        self.draw_text("UNIT PRICE", col_price, self.y, font="Helvetica-Bold", size=9, color=WHITE, align="right")
        self.draw_text("AMOUNT", col_amount, self.y, font="Helvetica-Bold", size=9, color=WHITE, align="right")
        self.y -= ROW_HEIGHT

        for index, item in enumerate(self.content.items):
            if self.y < FOOTER_Y + 140:
                self.draw_text(f"+ {len(self.content.items) - index} more item(s)", col_desc, self.y, size=9, color=MUTED)
                self.y -= ROW_HEIGHT
                break
            if index % 2 == 1:
                self.draw_rect(MARGIN, self.y - 6, CONTENT_W, ROW_HEIGHT, ROW_SHADE)
            self.draw_text(truncate(item.description, ITEM_DESCRIPTION_LIMIT), col_desc, self.y, size=9)
            self.draw_text(format_quantity(item.quantity), col_qty, self.y, size=9, align="right")
            self.draw_text(format_money(item.unit_price), col_price, self.y, size=9, align="right")
            self.draw_text(format_money(item.amount), col_amount, self.y, size=9, align="right")
            self.y -= ROW_HEIGHT

        self.draw_rule(self.y + 6)
        self.y -= 10

    def draw_totals(self):
        self.draw_text("TOTAL", W - MARGIN - 150, self.y, font="Helvetica-Bold", size=12, align="right")
        self.draw_text(format_money(self.content.total), W - MARGIN - 8, self.y, font="Helvetica-Bold", size=12, color=PRIMARY, align="right")
        self.y -= 24
        if self.content.document_type == "receipt":
            self.draw_text("Payment received with thanks.", MARGIN, self.y, size=10)
            self.y -= 14
            if self.content.payment_method:
                self.draw_text(f"Payment Method: {self.content.payment_method}", MARGIN, self.y, size=10)
                self.y -= 14
        self.y -= 6

    def draw_impact_banner(self):
        units = format_quantity(self.content.impact_units)
        self.draw_rect(MARGIN, self.y - 34, CONTENT_W, 44, IMPACT_FILL)
        self.draw_text("YOUR IMPACT", MARGIN + 12, self.y - 6, font="Helvetica-Bold", size=9, color=IMPACT_TEXT)
        self.draw_text(
            f"This purchase provides {units} {self.branding.impact_unit_label}",
            MARGIN + 12,
            self.y - 22,
            size=11,
            color=IMPACT_TEXT,
        )
        self.y -= 54

    def draw_notes(self):
        self.draw_text("Notes:", MARGIN, self.y, font="Helvetica-Bold", size=9, color=MUTED)
        self.draw_text(truncate(self.content.notes, NOTES_LIMIT), MARGIN + 36, self.y, size=9)
        self.y -= 20

    def draw_footer(self):
        self.draw_rule(FOOTER_Y + 14)
        self.draw_text(f"Generated: {datetime.now().strftime('%d %b %Y %H:%M')}", MARGIN, FOOTER_Y, size=8, color=MUTED)
        self.draw_text("Thank you for your business", W - MARGIN, FOOTER_Y, size=8, color=MUTED, align="right")

    def render(self) -> bytes:
        self.draw_header()
        self.draw_meta()
        self.draw_items()
        self.draw_totals()
        if shows_impact_banner(self.content, self.branding):
            self.draw_impact_banner()
        if self.content.notes:
            self.draw_notes()
        self.draw_footer()
        self.c.showPage()
        self.c.save()
        return self.buffer.getvalue()


def render_document(content: DocumentContent, branding: Branding) -> bytes:
    return DocumentRenderer(content, branding).render()
