"""Deduplication logic for FinFlow."""

import hashlib

from finflow.models import CandidateTransaction

TransactionKey = tuple[str, float, str]


def compute_file_hash(contents: bytes) -> str:
    """Compute SHA256 hash of file contents."""
    return hashlib.sha256(contents).hexdigest()


def transaction_key(txn: CandidateTransaction) -> TransactionKey:
    """Exact-match identity used to drop duplicates across chunks."""
    return (txn.date.isoformat(), txn.amount, txn.description)


def compute_transaction_hash(txn: CandidateTransaction) -> str:
    """
    Compute a stable hash for a transaction.

    Handed to the persistence layer with each record so it can detect the
    same transaction arriving again from a later upload.
    """
    # Normalize the data for consistent hashing
    normalized = (
        f"{txn.date.isoformat()}|{txn.description.strip().lower()}|{txn.amount:.2f}|{txn.direction.value}"
    )
    return hashlib.sha256(normalized.encode()).hexdigest()
