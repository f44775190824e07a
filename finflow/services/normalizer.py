"""Canonicalization of loosely-shaped transaction candidates."""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from finflow.config import settings
from finflow.models import CandidateTransaction, Provenance, TransactionDirection
from finflow.parsers.validation import (
    normalize_description,
    parse_amount_safe,
    parse_statement_date,
    validate_description,
)
from finflow.services.categorizer import categorize_transaction, infer_payee

logger = logging.getLogger(__name__)

CREDIT_WORDS = {"credit", "cr", "c", "deposit", "deposited", "received", "refund", "income", "in", "inflow"}
DEBIT_WORDS = {"debit", "dr", "d", "withdrawal", "withdrawn", "payment", "paid", "expense", "spent", "out", "outflow"}


@dataclass
class NormalizedBatch:
    """Normalized records plus the counters that feed parsing notes."""

    transactions: list[CandidateTransaction] = field(default_factory=list)
    dropped: int = 0
    ambiguous_direction: int = 0


def infer_direction(value: Any) -> Optional[TransactionDirection]:
    """Match a type/direction value against the credit and debit vocabulary."""
    if isinstance(value, TransactionDirection):
        return value
    if not isinstance(value, str):
        return None

    word = value.strip().strip(".").lower()
    if word in CREDIT_WORDS:
        return TransactionDirection.CREDIT
    if word in DEBIT_WORDS:
        return TransactionDirection.DEBIT
    return None


def default_confidence(provenance: Provenance) -> float:
    """Confidence used when a record carries none; lower for recovered records."""
    if provenance == Provenance.STRUCTURED:
        return settings.happy_path_confidence
    if provenance == Provenance.REPAIRED:
        return settings.repaired_confidence
    return settings.pattern_confidence


def _clamp_confidence(value: Any, provenance: Provenance) -> float:
    confidence, ok = parse_amount_safe(value)
    if not ok:
        return default_confidence(provenance)
    return max(0.0, min(1.0, confidence))


def _text(value: Any) -> str:
    return normalize_description(value) if isinstance(value, str) else ""


def _resolve_direction(raw: Mapping[str, Any]) -> tuple[Optional[TransactionDirection], bool]:
    """Return (direction, was_ambiguous) honoring the unknown-direction policy."""
    direction = infer_direction(raw.get("type", raw.get("direction")))
    if direction is not None:
        return direction, False
    if settings.unknown_direction_policy == "debit":
        return TransactionDirection.DEBIT, True
    return None, True


def normalize_transaction(
    raw: Mapping[str, Any], provenance: Provenance = Provenance.STRUCTURED
) -> Optional[CandidateTransaction]:
    """
    Turn one candidate record into a CandidateTransaction.

    Args:
        raw: Loosely-typed record (keys: date, description, amount, type,
            payee, category, confidence)
        provenance: Where the record came from; decides default confidence

    Returns:
        The normalized transaction, or None when the date, a numeric
        amount, a direction, or both description and payee are missing, or
        when the description is longer than 500 characters.
    """
    if not isinstance(raw, Mapping):
        return None

    txn_date = parse_statement_date(raw.get("date"))
    if txn_date is None:
        logger.debug(f"Dropping record with unusable date: {raw.get('date')!r}")
        return None

    amount, ok = parse_amount_safe(raw.get("amount"))
    if not ok:
        logger.debug(f"Dropping record with non-numeric amount: {raw.get('amount')!r}")
        return None

    direction, _ = _resolve_direction(raw)
    if direction is None:
        logger.debug(f"Dropping record with unrecognized type: {raw.get('type')!r}")
        return None

    description = _text(raw.get("description"))
    payee = _text(raw.get("payee"))
    if not description and not payee:
        logger.debug("Dropping record with neither description nor payee")
        return None

    description = description or payee
    if not validate_description(description):
        logger.debug(f"Dropping record with oversized description ({len(description)} chars)")
        return None
    category = _text(raw.get("category")) or categorize_transaction(description)

    return CandidateTransaction(
        date=txn_date,
        description=description,
        amount=abs(amount),
        direction=direction,
        payee=payee or infer_payee(description),
        category=category,
        confidence=_clamp_confidence(raw.get("confidence"), provenance),
    )


def normalize_transactions(
    raws: Iterable[Mapping[str, Any]], provenance: Provenance = Provenance.STRUCTURED
) -> NormalizedBatch:
    """Normalize a list of records, counting drops and ambiguous directions."""
    batch = NormalizedBatch()

    for raw in raws:
        txn = normalize_transaction(raw, provenance)
        if txn is None:
            batch.dropped += 1
            continue
        if _resolve_direction(raw)[1]:
            batch.ambiguous_direction += 1
        batch.transactions.append(txn)

    if batch.dropped:
        logger.info(f"Normalizer dropped {batch.dropped} incomplete records ({provenance.value})")

    return batch
