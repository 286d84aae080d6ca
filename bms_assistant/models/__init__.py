from bms_assistant.models.audit_log import AuditLog
from bms_assistant.models.business_profile import BillingPlanConfig, BusinessProfile
from bms_assistant.models.conversation_draft import ConversationDraft
from bms_assistant.models.expense import Expense
from bms_assistant.models.inventory import InventoryItem
from bms_assistant.models.invoice import Invoice, InvoiceItem
from bms_assistant.models.pending_action import PendingAction
from bms_assistant.models.quotation import Quotation, QuotationItem
from bms_assistant.models.sales import PaymentReceipt, SalesTransaction
from bms_assistant.models.sender_mapping import WhatsAppUserMapping

__all__ = [
    "WhatsAppUserMapping",
    "PendingAction",
    "ConversationDraft",
    "AuditLog",
    "BusinessProfile",
    "BillingPlanConfig",
    "InventoryItem",
    "SalesTransaction",
    "PaymentReceipt",
    "Invoice",
    "InvoiceItem",
    "Quotation",
    "QuotationItem",
    "Expense",
]
