"""Keyword categorization, payee inference and subscription detection."""

import re
from typing import Optional

from finflow.models import CandidateTransaction, TransactionCategory

UNKNOWN_PAYEE = "Unknown"

# Checked in order; the first category with a matching keyword wins
CATEGORY_KEYWORDS: dict[TransactionCategory, list[str]] = {
    TransactionCategory.FOOD_DINING: [
        "zomato", "swiggy", "restaurant", "cafe", "coffee", "food", "dining",
        "pizza", "burger", "dominos", "mcdonald", "kfc", "subway", "starbucks",
    ],
    TransactionCategory.TRANSPORTATION: [
        "uber", "ola", "rapido", "taxi", "fuel", "petrol", "diesel", "parking",
        "metro", "bus", "train", "irctc", "flight", "airline", "fastag",
    ],
    TransactionCategory.SHOPPING: [
        "amazon", "flipkart", "myntra", "ajio", "mall", "store", "shopping",
        "purchase", "market", "bazaar", "retail",
    ],
    TransactionCategory.UTILITIES: [
        "electricity", "water", "gas", "internet", "broadband", "wifi", "mobile",
        "phone", "recharge", "airtel", "jio", "bharti", "bill", "utility",
    ],
    TransactionCategory.ENTERTAINMENT: [
        "netflix", "spotify", "movie", "cinema", "prime", "youtube", "hotstar",
        "bookmyshow", "steam", "googleplay", "riot", "game", "concert",
    ],
    TransactionCategory.HEALTHCARE: [
        "hospital", "clinic", "doctor", "pharmacy", "medicine", "medical",
        "apollo", "health", "insurance",
    ],
    TransactionCategory.EDUCATION: [
        "school", "college", "university", "course", "education", "tuition",
        "book", "library",
    ],
    TransactionCategory.SUBSCRIPTIONS: [
        "subscription", "membership", "premium", "microsoft", "adobe", "office365",
    ],
    TransactionCategory.SALARY: ["salary", "payroll", "bonus"],
    TransactionCategory.BANKING: [
        "atm", "bank", "fee", "charge", "emi", "loan", "interest",
    ],
    TransactionCategory.TRANSFERS: [
        "transfer", "upi", "neft", "imps", "rtgs", "paytm", "phonepe",
        "googlepay", "gpay",
    ],
}

SUBSCRIPTION_KEYWORDS = [
    "netflix", "prime", "spotify", "youtube", "microsoft", "adobe",
    "subscription", "monthly", "annual", "premium", "plan",
    "google", "apple", "dropbox", "zoom", "office365", "hotstar",
]

# Merchant names that card descriptors glue to the next word (AMAZONPAY, MCDONALDS)
PREFIX_KEYWORDS = {"amazon", "flipkart", "mcdonald", "swiggy", "zomato"}


def _keyword_pattern(keywords: list[str]) -> re.Pattern:
    """Whole-word match with an optional plural; prefix keywords match word starts."""
    alternatives = []
    for keyword in keywords:
        escaped = re.escape(keyword)
        if keyword in PREFIX_KEYWORDS:
            alternatives.append(r"\b" + escaped)
        else:
            alternatives.append(r"\b" + escaped + r"(?:s|es)?\b")
    return re.compile("|".join(alternatives))


_CATEGORY_PATTERNS = [(category, _keyword_pattern(keywords)) for category, keywords in CATEGORY_KEYWORDS.items()]
_SUBSCRIPTION_PATTERN = _keyword_pattern(SUBSCRIPTION_KEYWORDS)

_CHANNEL_PREFIX_PATTERN = re.compile(
    r"^(?:(?:UPI|NEFT|RTGS|IMPS|ATM|CARD)\s*[-/:]\s*|POS\s+|UPI Payment to\s+|ECOM Purchase\s+)",
    re.IGNORECASE,
)
_DIRECTION_MARKER_PATTERN = re.compile(r"\s+(?:Dr|Cr|DEBIT|CREDIT)\.?$", re.IGNORECASE)
_BANK_SUFFIX_PATTERN = re.compile(
    r"\s+(?:AXIS BANK|YES BANK|HDFC BANK|SBI|CANARA BANK|ICICI|State Bank)\b.*$",
    re.IGNORECASE,
)
_AMOUNT_PATTERN = re.compile(r"(?:₹|\bRs\.?|\bINR)\s*[\d,]+(?:\.\d+)?", re.IGNORECASE)


def categorize_transaction(description: str) -> str:
    """Map a description to a category via the keyword table; "Other" if none match."""
    desc_lower = (description or "").lower()

    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(desc_lower):
            return category.value

    return TransactionCategory.OTHER.value


def infer_payee(description: str) -> str:
    """
    Guess the counterparty from a raw description.

    Strips transaction-channel prefixes (UPI-, NEFT-, ...), trailing
    Dr/Cr markers and bank names, and embedded rupee amounts, then keeps
    the first two words.
    """
    cleaned = " ".join((description or "").split())
    cleaned = _CHANNEL_PREFIX_PATTERN.sub("", cleaned)
    cleaned = _BANK_SUFFIX_PATTERN.sub("", cleaned)
    cleaned = _DIRECTION_MARKER_PATTERN.sub("", cleaned)
    cleaned = _AMOUNT_PATTERN.sub("", cleaned)
    cleaned = _DIRECTION_MARKER_PATTERN.sub("", cleaned.strip()).strip()

    parts = cleaned.split()
    return " ".join(parts[:2]) or UNKNOWN_PAYEE


def _is_subscription(description: str) -> bool:
    return bool(_SUBSCRIPTION_PATTERN.search(description.lower()))


def detect_subscriptions(
    transactions: list[CandidateTransaction], direction: Optional[str] = "debit"
) -> list[CandidateTransaction]:
    """Return the transactions that look like recurring subscriptions."""
    return [
        txn
        for txn in transactions
        if (direction is None or txn.direction.value == direction)
        and (_is_subscription(txn.description) or txn.category == TransactionCategory.SUBSCRIPTIONS.value)
    ]
