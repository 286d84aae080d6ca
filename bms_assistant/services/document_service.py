import time
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from bms_assistant.config import Settings
from bms_assistant.logging_config import get_logger
from bms_assistant.models import (
    BusinessProfile,
    Invoice,
    InvoiceItem,
    PaymentReceipt,
    Quotation,
    QuotationItem,
    SalesTransaction,
)
from bms_assistant.services.pdf_renderer import Branding, DocumentContent, LineItem, render_document
from bms_assistant.services.storage import DocumentStorage

logger = get_logger("document_service")

DOCUMENT_TYPES = ("receipt", "invoice", "quotation")
WALK_IN_CUSTOMER = "Walk-in Customer"


class InvalidDocumentRequestError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DocumentNotFoundError(Exception):
    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)


@dataclass
class DocumentRequest:
    document_type: str
    tenant_id: Optional[str]
    document_id: Optional[str] = None
    document_number: Optional[str] = None


@dataclass
class DocumentArtifact:
    document_type: str
    document_number: str
    filename: str
    url: str
    content: bytes


def _parse_uuid(value, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise InvalidDocumentRequestError(f"{field_name} must be a valid UUID")


def _sales_line(tx: SalesTransaction) -> LineItem:
    return LineItem(
        description=tx.product_name,
        quantity=tx.quantity or 1,
        unit_price=tx.unit_price_zmw or 0,
        amount=tx.total_amount_zmw or 0,
    )


def _document_line(item) -> LineItem:
    return LineItem(
        description=item.description or "Item",
        quantity=item.quantity or 1,
        unit_price=item.unit_price or 0,
        amount=item.amount or 0,
    )


class DocumentGenerator:
    """Resolve a business document, render it to PDF and publish it.

    Every call produces a new file, even for a document generated before.
    """

    def __init__(self, settings: Settings, storage: DocumentStorage):
        self.settings = settings
        self.storage = storage

    def generate(self, db: Session, request: DocumentRequest) -> DocumentArtifact:
        if not request.document_type or not request.tenant_id:
            raise InvalidDocumentRequestError("document_type and tenant_id are required")
        if request.document_type not in DOCUMENT_TYPES:
            raise InvalidDocumentRequestError("Invalid document_type")

        tenant_id = _parse_uuid(request.tenant_id, "tenant_id")
        logger.info(
            "Generating document",
            extra={
                "context": {
                    "document_type": request.document_type,
                    "document_id": request.document_id,
                    "document_number": request.document_number,
                    "tenant_id": str(tenant_id),
                }
            },
        )

        if request.document_type == "receipt":
            content = self.resolve_receipt(db, tenant_id, request)
        elif request.document_type == "invoice":
            content = self.resolve_invoice(db, tenant_id, request)
        else:
            content = self.resolve_quotation(db, tenant_id, request)

        branding = self.load_branding(db, tenant_id)
        pdf = render_document(content, branding)

        filename = f"{content.document_type}-{content.document_number}-{int(time.time() * 1000)}.pdf"
        url = self.storage.upload(filename, pdf)

        logger.info(
            "Document generated",
            extra={"context": {"filename": filename, "items": len(content.items)}},
        )
        return DocumentArtifact(
            document_type=content.document_type,
            document_number=content.document_number,
            filename=filename,
            url=url,
            content=pdf,
        )

    def load_branding(self, db: Session, tenant_id: uuid.UUID) -> Branding:
        profile = db.query(BusinessProfile).filter(BusinessProfile.tenant_id == tenant_id).first()
        if not profile:
            return Branding()
        branding = Branding(
            company_name=profile.company_name or "Company",
            address=profile.company_address or "",
            phone=profile.company_phone or "",
            email=profile.company_email or "",
            impact_enabled=bool(profile.impact_enabled),
        )
        if profile.impact_unit_label:
            branding.impact_unit_label = profile.impact_unit_label
        return branding

    # ─── RECEIPTS ───

    def resolve_receipt(self, db: Session, tenant_id: uuid.UUID, request: DocumentRequest) -> DocumentContent:
        query = db.query(PaymentReceipt).filter(PaymentReceipt.tenant_id == tenant_id)
        if request.document_id:
            query = query.filter(PaymentReceipt.id == _parse_uuid(request.document_id, "document_id"))
        elif request.document_number:
            query = query.filter(PaymentReceipt.receipt_number == request.document_number)
        else:
            query = query.order_by(PaymentReceipt.created_at.desc())
        receipt = query.first()

        if receipt:
            return self._receipt_from_payment(db, tenant_id, receipt)

        logger.info("Receipt not in payment_receipts, falling back to sales_transactions")
        transactions = self._find_receipt_transactions(db, tenant_id, request)
        if not transactions:
            raise DocumentNotFoundError(
                "Receipt not found", "No matching receipt in payment_receipts or sales_transactions"
            )
        return self._receipt_from_transactions(transactions)

    def _sales_rows(self, db: Session, tenant_id: uuid.UUID, receipt_number: str) -> list[SalesTransaction]:
        return (
            db.query(SalesTransaction)
            .filter(SalesTransaction.tenant_id == tenant_id, SalesTransaction.receipt_number == receipt_number)
            .order_by(SalesTransaction.created_at)
            .all()
        )

    def _receipt_from_payment(self, db: Session, tenant_id: uuid.UUID, receipt: PaymentReceipt) -> DocumentContent:
        sales_rows = self._sales_rows(db, tenant_id, receipt.receipt_number)
        if receipt.invoice_id:
            invoice_items = db.query(InvoiceItem).filter(InvoiceItem.invoice_id == receipt.invoice_id).all()
            items = [_document_line(item) for item in invoice_items]
        else:
            items = [_sales_line(tx) for tx in sales_rows]

        return DocumentContent(
            document_type="receipt",
            document_number=receipt.receipt_number,
            client_name=receipt.client_name,
            issued_at=receipt.payment_date,
            total=receipt.amount_paid or 0,
            items=items,
            payment_method=receipt.payment_method,
            notes=receipt.notes,
            impact_units=sum(tx.liters_impact or 0 for tx in sales_rows),
        )

    def _find_receipt_transactions(
        self, db: Session, tenant_id: uuid.UUID, request: DocumentRequest
    ) -> list[SalesTransaction]:
        if request.document_number:
            return self._sales_rows(db, tenant_id, request.document_number)

        query = db.query(SalesTransaction).filter(SalesTransaction.tenant_id == tenant_id)
        if request.document_id:
            query = query.filter(SalesTransaction.id == _parse_uuid(request.document_id, "document_id"))
        else:
            query = query.order_by(SalesTransaction.created_at.desc())
        anchor = query.first()
        if not anchor:
            return []
        if not anchor.receipt_number:
            return [anchor]
        return self._sales_rows(db, tenant_id, anchor.receipt_number)

    def _receipt_from_transactions(self, transactions: list[SalesTransaction]) -> DocumentContent:
        """Synthesize one receipt from the raw sale rows that share a receipt number."""
        first = transactions[0]
        return DocumentContent(
            document_type="receipt",
            document_number=first.receipt_number or f"TX-{str(first.id)[:8]}",
            client_name=first.customer_name or WALK_IN_CUSTOMER,
            issued_at=first.created_at,
            total=sum(tx.total_amount_zmw or 0 for tx in transactions),
            items=[_sales_line(tx) for tx in transactions],
            payment_method=first.payment_method,
            notes=first.notes,
            impact_units=sum(tx.liters_impact or 0 for tx in transactions),
        )

    # ─── INVOICES & QUOTATIONS ───

    def resolve_invoice(self, db: Session, tenant_id: uuid.UUID, request: DocumentRequest) -> DocumentContent:
        query = db.query(Invoice).filter(Invoice.tenant_id == tenant_id)
        if request.document_id:
            query = query.filter(Invoice.id == _parse_uuid(request.document_id, "document_id"))
        elif request.document_number:
            query = query.filter(Invoice.invoice_number.ilike(f"%{request.document_number}%"))
        invoice = query.order_by(Invoice.created_at.desc()).first()
        if not invoice:
            raise DocumentNotFoundError("Invoice not found")

        items = db.query(InvoiceItem).filter(InvoiceItem.invoice_id == invoice.id).all()
        return DocumentContent(
            document_type="invoice",
            document_number=invoice.invoice_number,
            client_name=invoice.client_name,
            issued_at=invoice.invoice_date,
            total=invoice.total_amount or 0,
            items=[_document_line(item) for item in items],
            notes=invoice.notes,
            status=invoice.status,
        )

    def resolve_quotation(self, db: Session, tenant_id: uuid.UUID, request: DocumentRequest) -> DocumentContent:
        query = db.query(Quotation).filter(Quotation.tenant_id == tenant_id)
        if request.document_id:
            query = query.filter(Quotation.id == _parse_uuid(request.document_id, "document_id"))
        elif request.document_number:
            query = query.filter(Quotation.quotation_number.ilike(f"%{request.document_number}%"))
        quotation = query.order_by(Quotation.created_at.desc()).first()
        if not quotation:
            raise DocumentNotFoundError("Quotation not found")

        items = db.query(QuotationItem).filter(QuotationItem.quotation_id == quotation.id).all()
        return DocumentContent(
            document_type="quotation",
            document_number=quotation.quotation_number,
            client_name=quotation.client_name,
            issued_at=quotation.quotation_date,
            total=quotation.total_amount or 0,
            items=[_document_line(item) for item in items],
            notes=quotation.notes,
            status=quotation.status,
        )
