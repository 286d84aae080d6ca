import math
from enum import Enum
from typing import Any, Optional


class Intent(str, Enum):
    RECORD_SALE = "record_sale"
    CHECK_STOCK = "check_stock"
    LIST_PRODUCTS = "list_products"
    GENERATE_INVOICE = "generate_invoice"
    RECORD_EXPENSE = "record_expense"
    GET_SALES_SUMMARY = "get_sales_summary"
    CHECK_CUSTOMER = "check_customer"
    SEND_RECEIPT = "send_receipt"
    SEND_INVOICE = "send_invoice"
    SEND_QUOTATION = "send_quotation"
    HELP = "help"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PAYMENT_CASH = "Cash"
PAYMENT_MOBILE_MONEY = "Mobile Money"
PAYMENT_CARD = "Card"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_MOBILE_MONEY, PAYMENT_CARD)

MOBILE_MONEY_SUBSTRINGS = ("mobile", "momo", "airtel", "mtn")
MOBILE_MONEY_EXACT = {"mm", "m"}
CARD_SUBSTRINGS = ("card", "debit", "credit", "visa", "swipe", "pos")

NUMERIC_ENTITIES = ("amount", "quantity")

REQUIRED_FIELDS: dict[str, list[str]] = {
    Intent.RECORD_SALE.value: ["product", "amount"],
    Intent.RECORD_EXPENSE.value: ["description", "amount"],
    Intent.GENERATE_INVOICE.value: ["customer_name"],
    Intent.CHECK_CUSTOMER.value: ["customer_name"],
}

DOCUMENT_INTENTS = {
    Intent.SEND_RECEIPT.value: "receipt",
    Intent.SEND_INVOICE.value: "invoice",
    Intent.SEND_QUOTATION.value: "quotation",
}


def parse_intent_name(value: Any) -> Optional[Intent]:
    """Map a raw intent name onto the closed taxonomy, or None."""
    if not isinstance(value, str):
        return None
    try:
        return Intent(value.strip().lower())
    except ValueError:
        return None


def parse_confidence(value: Any) -> Confidence:
    if isinstance(value, str):
        try:
            return Confidence(value.strip().lower())
        except ValueError:
            pass
    return Confidence.LOW


def canonicalize_payment_method(value: Any) -> str:
    """Normalize free text to exactly one of Cash, Mobile Money or Card."""
    text = str(value).lower().strip()
    if text in MOBILE_MONEY_EXACT or any(s in text for s in MOBILE_MONEY_SUBSTRINGS):
        return PAYMENT_MOBILE_MONEY
    if any(s in text for s in CARD_SUBSTRINGS):
        return PAYMENT_CARD
    return PAYMENT_CASH


def coerce_number(value: Any) -> float:
    """Coerce a model-supplied value to a number; NaN when it is not one."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return math.nan
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return math.nan
    else:
        return math.nan
    if not math.isfinite(number):
        return math.nan
    if number.is_integer():
        return int(number)
    return number


def is_unreadable_number(value: Any) -> bool:
    return isinstance(value, float) and not math.isfinite(value)


def has_unreadable_numbers(entities: dict) -> bool:
    return any(is_unreadable_number(entities.get(key)) for key in NUMERIC_ENTITIES)


def capitalize_name(value: Any) -> str:
    name = str(value).strip()
    return name[:1].upper() + name[1:]


def normalize_entities(entities: dict) -> dict:
    """Deterministic clean-up applied to every model answer."""
    normalized = dict(entities)
    for key in NUMERIC_ENTITIES:
        if key in normalized and normalized[key] is not None:
            normalized[key] = coerce_number(normalized[key])
    if normalized.get("payment_method"):
        normalized["payment_method"] = canonicalize_payment_method(normalized["payment_method"])
    if normalized.get("customer_name"):
        normalized["customer_name"] = capitalize_name(normalized["customer_name"])
    return normalized


def get_missing_fields(intent: str, entities: dict) -> list[str]:
    required = REQUIRED_FIELDS.get(intent, [])
    return [field for field in required if entities.get(field) in (None, "")]


def merge_entities(existing: Optional[dict], new: Optional[dict]) -> dict:
    """Union two entity bags; values from the newer bag win."""
    merged = dict(existing or {})
    for key, value in (new or {}).items():
        if value is not None:
            merged[key] = value
    return merged
