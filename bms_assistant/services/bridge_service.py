"""Execution bridge: runs a confirmed intent against the business tables.

The conversation router treats the bridge as opaque. Role checks and
duplicate-mutation guards live here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from bms_assistant.logging_config import get_logger
from bms_assistant.models import Expense, InventoryItem, SalesTransaction
from bms_assistant.services.document_service import (
    DocumentGenerator,
    DocumentNotFoundError,
    DocumentRequest,
    InvalidDocumentRequestError,
)
from bms_assistant.services.intent_service import (
    DOCUMENT_INTENTS,
    PAYMENT_CASH,
    PAYMENT_CARD,
    PAYMENT_MOBILE_MONEY,
    Intent,
    coerce_number,
    is_unreadable_number,
)
from bms_assistant.services.storage import DocumentStorageError

logger = get_logger("bridge_service")

_READ_INTENTS = [Intent.CHECK_STOCK.value, Intent.LIST_PRODUCTS.value]
_ALL_INTENTS = [intent.value for intent in Intent if intent != Intent.HELP]

ROLE_PERMISSIONS: dict[str, list[str]] = {
    "admin": _ALL_INTENTS,
    "manager": _ALL_INTENTS,
    "accountant": _READ_INTENTS
    + [
        Intent.GENERATE_INVOICE.value,
        Intent.RECORD_EXPENSE.value,
        Intent.GET_SALES_SUMMARY.value,
        Intent.CHECK_CUSTOMER.value,
        Intent.SEND_RECEIPT.value,
        Intent.SEND_INVOICE.value,
        Intent.SEND_QUOTATION.value,
    ],
    "cashier": _READ_INTENTS
    + [Intent.RECORD_SALE.value, Intent.CHECK_CUSTOMER.value, Intent.SEND_RECEIPT.value],
    "viewer": _READ_INTENTS + [Intent.GET_SALES_SUMMARY.value],
}

PDF_FAILED_NOTE = "\n\n⚠️ Receipt saved. PDF failed."
WALK_IN_CUSTOMER = "Walk-in Customer"
SUMMARY_PERIOD_ALIASES = {"week": "this_week", "month": "this_month", "2day": "today"}


@dataclass
class BridgeContext:
    tenant_id: UUID
    user_id: Optional[UUID]
    role: str
    display_name: Optional[str] = None


@dataclass
class BridgeRequest:
    intent: str
    entities: dict
    context: BridgeContext
    message_id: Optional[str] = None


@dataclass
class BridgeResult:
    success: bool
    message: str
    error: Optional[str] = None
    error_code: Optional[str] = None  # forbidden, invalid_request
    media_url: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, message: str, data: Any = None, media_url: Optional[str] = None) -> "BridgeResult":
        return cls(success=True, message=message, data=data, media_url=media_url)

    @classmethod
    def fail(cls, message: str, error: Optional[str] = None, error_code: Optional[str] = None) -> "BridgeResult":
        return cls(success=False, message=message, error=error or message, error_code=error_code)


class ExecutionBridge(ABC):
    @abstractmethod
    def execute(self, request: BridgeRequest) -> BridgeResult:
        pass


def is_allowed(role: str, intent: str) -> bool:
    return intent in ROLE_PERMISSIONS.get(role, [])


def _money(amount) -> str:
    if isinstance(amount, float) and amount.is_integer():
        amount = int(amount)
    return f"{amount:,}"


def summary_window(period: str, now: datetime) -> tuple[datetime, datetime]:
    """[start, end) of a named reporting period, in UTC."""
    today_start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    if period == "yesterday":
        return today_start - timedelta(days=1), today_start
    if period == "this_week":
        # weeks start on Sunday
        return today_start - timedelta(days=(now.weekday() + 1) % 7), now
    if period == "this_month":
        return today_start.replace(day=1), now
    return today_start, now


class BusinessBridge(ExecutionBridge):
    """Bridge over the SQLAlchemy business tables."""

    def __init__(
        self,
        db: Session,
        document_generator: Optional[DocumentGenerator] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.db = db
        self.document_generator = document_generator
        self.clock = clock
        self.handlers: dict[str, Callable[[BridgeRequest], BridgeResult]] = {
            Intent.CHECK_STOCK.value: self.check_stock,
            Intent.LIST_PRODUCTS.value: self.list_products,
            Intent.RECORD_SALE.value: self.record_sale,
            Intent.GET_SALES_SUMMARY.value: self.get_sales_summary,
            Intent.CHECK_CUSTOMER.value: self.check_customer,
            Intent.RECORD_EXPENSE.value: self.record_expense,
            Intent.GENERATE_INVOICE.value: self.generate_invoice,
            Intent.SEND_RECEIPT.value: self.send_document,
            Intent.SEND_INVOICE.value: self.send_document,
            Intent.SEND_QUOTATION.value: self.send_document,
        }

    def execute(self, request: BridgeRequest) -> BridgeResult:
        ctx = request.context
        if not request.intent or not ctx or not ctx.tenant_id or not ctx.role:
            return BridgeResult.fail("Missing required parameters", error_code="invalid_request")

        if not is_allowed(ctx.role, request.intent):
            message = f"You don't have permission to {request.intent.replace('_', ' ')}. Your role: {ctx.role}"
            logger.info(
                "Bridge permission denied",
                extra={"context": {"intent": request.intent, "role": ctx.role, "tenant_id": str(ctx.tenant_id)}},
            )
            return BridgeResult.fail(message, error_code="forbidden")

        handler = self.handlers.get(request.intent)
        if handler is None:
            return BridgeResult.fail(f"Unknown intent: {request.intent}")

        result = handler(request)
        logger.info(
            "Bridge executed",
            extra={
                "context": {
                    "intent": request.intent,
                    "success": result.success,
                    "tenant_id": str(ctx.tenant_id),
                    "message_id": request.message_id,
                }
            },
        )
        return result

    # ─── STOCK ───

    def check_stock(self, request: BridgeRequest) -> BridgeResult:
        product = request.entities.get("product")
        query = self.db.query(InventoryItem).filter(InventoryItem.tenant_id == request.context.tenant_id)
        if product:
            query = query.filter(InventoryItem.name.ilike(f"%{product}%"))
        items = query.order_by(InventoryItem.name).limit(10).all()

        if not items:
            message = f'No products found matching "{product}".' if product else "No products in inventory."
            return BridgeResult.ok(message, data=[])

        lines = []
        for item in items:
            if item.current_stock <= 0:
                status = "🔴"
            elif item.current_stock < item.reorder_level:
                status = "🟡"
            else:
                status = "🟢"
            lines.append(f"{status} {item.name}: {item.current_stock} units (K{_money(item.unit_price)}/unit)")

        data = [{"id": str(i.id), "name": i.name, "current_stock": i.current_stock} for i in items]
        return BridgeResult.ok("📦 Stock Levels:\n" + "\n".join(lines), data=data)

    def list_products(self, request: BridgeRequest) -> BridgeResult:
        items = (
            self.db.query(InventoryItem)
            .filter(InventoryItem.tenant_id == request.context.tenant_id, InventoryItem.current_stock > 0)
            .order_by(InventoryItem.name)
            .limit(15)
            .all()
        )
        if not items:
            return BridgeResult.ok("No products available.", data=[])

        lines = [f"• {i.name} - K{_money(i.unit_price)} ({i.current_stock} in stock)" for i in items]
        data = [{"id": str(i.id), "name": i.name, "unit_price": i.unit_price} for i in items]
        return BridgeResult.ok("📋 Available Products:\n" + "\n".join(lines), data=data)

    # ─── SALES ───

    def _next_receipt_number(self, tenant_id: UUID, now: datetime) -> str:
        prefix = f"R{now.year}-"
        last = (
            self.db.query(SalesTransaction.receipt_number)
            .filter(SalesTransaction.tenant_id == tenant_id, SalesTransaction.receipt_number.like(f"{prefix}%"))
            # longer suffix first so R2025-10000 ranks above R2025-9999
            .order_by(func.length(SalesTransaction.receipt_number).desc(), SalesTransaction.receipt_number.desc())
            .first()
        )
        next_number = 1
        if last and last[0]:
            try:
                next_number = int(last[0].split("-")[1]) + 1
            except (IndexError, ValueError):
                next_number = 1
        return f"{prefix}{next_number:04d}"

    def _sale_message(self, sale: SalesTransaction) -> str:
        return (
            f"✅ Sale recorded!\n📝 {sale.receipt_number}\n📦 {sale.quantity}x {sale.product_name}\n"
            f"👤 {sale.customer_name}\n💰 K{_money(sale.total_amount_zmw)} ({sale.payment_method})"
        )

    def _sale_result(self, sale: SalesTransaction) -> BridgeResult:
        message = self._sale_message(sale)
        media_url = None
        if self.document_generator is not None:
            try:
                artifact = self.document_generator.generate(
                    self.db,
                    DocumentRequest(
                        document_type="receipt",
                        tenant_id=str(sale.tenant_id),
                        document_number=sale.receipt_number,
                    ),
                )
                media_url = artifact.url
            except Exception:
                logger.exception("Receipt PDF generation failed", extra={"context": {"receipt": sale.receipt_number}})
                message += PDF_FAILED_NOTE

        data = {
            "receipt_number": sale.receipt_number,
            "sale_id": str(sale.id),
            "tenant_id": str(sale.tenant_id),
        }
        return BridgeResult.ok(message, data=data, media_url=media_url)

    def record_sale(self, request: BridgeRequest) -> BridgeResult:
        entities = request.entities
        ctx = request.context
        product = entities.get("product")
        amount = coerce_number(entities.get("amount")) if entities.get("amount") is not None else None
        quantity = coerce_number(entities.get("quantity")) if entities.get("quantity") is not None else 1

        if not product or not amount or is_unreadable_number(amount):
            return BridgeResult.fail(
                'Please specify the product and amount. Example: "Sold 5 cement bags to John for K2500 cash"'
            )
        if is_unreadable_number(quantity) or quantity <= 0:
            return BridgeResult.fail("Please specify a valid quantity.")
        quantity = int(quantity)

        if request.message_id:
            existing = (
                self.db.query(SalesTransaction)
                .filter(SalesTransaction.tenant_id == ctx.tenant_id, SalesTransaction.source_message_id == request.message_id)
                .first()
            )
            if existing:
                logger.info("Duplicate sale ignored", extra={"context": {"message_id": request.message_id}})
                return self._sale_result(existing)

        item = (
            self.db.query(InventoryItem)
            .filter(InventoryItem.tenant_id == ctx.tenant_id, InventoryItem.name.ilike(f"%{product}%"))
            .first()
        )
        if not item:
            return BridgeResult.fail(f'Product "{product}" not found in inventory.')
        if item.current_stock < quantity:
            return BridgeResult.fail(f"Insufficient stock for {item.name}. Available: {item.current_stock} units.")

        now = self.clock()
        sale = SalesTransaction(
            tenant_id=ctx.tenant_id,
            receipt_number=self._next_receipt_number(ctx.tenant_id, now),
            product_id=item.id,
            product_name=item.name,
            quantity=quantity,
            unit_price_zmw=item.unit_price,
            total_amount_zmw=amount,
            liters_impact=(item.liters_per_unit or 0) * quantity,
            customer_name=entities.get("customer_name") or WALK_IN_CUSTOMER,
            payment_method=entities.get("payment_method") or PAYMENT_CASH,
            notes=entities.get("notes"),
            recorded_by=ctx.user_id,
            source_message_id=request.message_id,
            created_at=now,
        )
        self.db.add(sale)
        item.current_stock = item.current_stock - quantity
        self.db.flush()

        return self._sale_result(sale)

    def get_sales_summary(self, request: BridgeRequest) -> BridgeResult:
        period = str(request.entities.get("period") or "today").lower().replace(" ", "_")
        period = SUMMARY_PERIOD_ALIASES.get(period, period)
        start, end = summary_window(period, self.clock())

        sales = (
            self.db.query(SalesTransaction)
            .filter(
                SalesTransaction.tenant_id == request.context.tenant_id,
                SalesTransaction.created_at >= start,
                SalesTransaction.created_at <= end,
            )
            .all()
        )

        def total_for(method: Optional[str] = None) -> float:
            return sum(s.total_amount_zmw or 0 for s in sales if method is None or s.payment_method == method)

        revenue = total_for()
        message = (
            f"📊 Sales Summary ({period.replace('_', ' ')}):\n\n"
            f"📈 Total Sales: {len(sales)}\n"
            f"💰 Revenue: K{_money(revenue)}\n"
            f"💵 Cash: K{_money(total_for(PAYMENT_CASH))}\n"
            f"📱 Mobile: K{_money(total_for(PAYMENT_MOBILE_MONEY))}\n"
            f"💳 Card: K{_money(total_for(PAYMENT_CARD))}"
        )
        return BridgeResult.ok(message, data={"total_sales": len(sales), "total_revenue": revenue})

    def check_customer(self, request: BridgeRequest) -> BridgeResult:
        customer_name = request.entities.get("customer_name")
        if not customer_name:
            return BridgeResult.fail("Please specify a customer name to search.")

        sales = (
            self.db.query(SalesTransaction)
            .filter(
                SalesTransaction.tenant_id == request.context.tenant_id,
                SalesTransaction.customer_name.ilike(f"%{customer_name}%"),
            )
            .order_by(SalesTransaction.created_at.desc())
            .limit(5)
            .all()
        )
        if not sales:
            return BridgeResult.ok(f'No records found for customer "{customer_name}".', data=[])

        total_spent = sum(s.total_amount_zmw or 0 for s in sales)
        recent = "\n".join(
            f"• K{_money(s.total_amount_zmw)} on {s.created_at.strftime('%d/%m/%Y')}" for s in sales[:3]
        )
        message = f"👤 Customer: {sales[0].customer_name}\n💰 Total Spent: K{_money(total_spent)}\n📝 Recent Purchases:\n{recent}"
        return BridgeResult.ok(message, data={"customer_name": sales[0].customer_name, "total_spent": total_spent})

    # ─── EXPENSES & INVOICES ───

    def record_expense(self, request: BridgeRequest) -> BridgeResult:
        entities = request.entities
        ctx = request.context
        description = entities.get("description")
        amount = coerce_number(entities.get("amount")) if entities.get("amount") is not None else None
        category = entities.get("category") or "General"

        if not description or not amount or is_unreadable_number(amount):
            return BridgeResult.fail(
                'Please specify the expense description and amount. Example: "Paid K500 for transport"'
            )

        expense = None
        if request.message_id:
            expense = (
                self.db.query(Expense)
                .filter(Expense.tenant_id == ctx.tenant_id, Expense.source_message_id == request.message_id)
                .first()
            )
            if expense:
                logger.info("Duplicate expense ignored", extra={"context": {"message_id": request.message_id}})

        if expense is None:
            now = self.clock()
            expense = Expense(
                tenant_id=ctx.tenant_id,
                vendor_name=str(description),
                amount_zmw=amount,
                category=category,
                date_incurred=now.date(),
                recorded_by=ctx.user_id,
                source_message_id=request.message_id,
                created_at=now,
            )
            self.db.add(expense)
            self.db.flush()

        message = (
            f"✅ Expense recorded!\n📝 {expense.vendor_name}\n💰 K{_money(expense.amount_zmw)}\n"
            f"📁 Category: {expense.category}"
        )
        return BridgeResult.ok(message, data={"expense_id": str(expense.id)})

    def generate_invoice(self, request: BridgeRequest) -> BridgeResult:
        customer_name = request.entities.get("customer_name")
        if not customer_name:
            return BridgeResult.fail("Please specify the customer name for the invoice.")
        return BridgeResult.ok(
            f"📋 To generate an invoice for {customer_name}, please use the dashboard.\n\n"
            "Go to: Dashboard → Accounts → Invoices → New Invoice"
        )

    # ─── DOCUMENTS ───

    def send_document(self, request: BridgeRequest) -> BridgeResult:
        document_type = DOCUMENT_INTENTS[request.intent]
        if self.document_generator is None:
            return BridgeResult.fail(f"⚠️ Error getting {document_type}. Try again.", error="Document generator unavailable")

        try:
            artifact = self.document_generator.generate(
                self.db,
                DocumentRequest(
                    document_type=document_type,
                    tenant_id=str(request.context.tenant_id),
                    document_number=request.entities.get("document_number"),
                ),
            )
        except (DocumentNotFoundError, InvalidDocumentRequestError) as e:
            return BridgeResult.fail(f"❌ {document_type} not found. Check number?", error=e.message)
        except DocumentStorageError as e:
            logger.error(f"Document upload failed: {e.message}")
            return BridgeResult.fail(f"⚠️ Error getting {document_type}. Try again.", error=e.message)

        return BridgeResult.ok(
            f"📄 Here's {document_type} {artifact.document_number}",
            data={"document_number": artifact.document_number, "filename": artifact.filename},
            media_url=artifact.url,
        )
