"""Merging of per-chunk results into one ImportResult."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from finflow.models import CandidateTransaction, ImportResult, StatementMetadata
from finflow.services.dedup import transaction_key

logger = logging.getLogger(__name__)


class ChunkSource(str, Enum):
    """How a chunk's transactions were obtained."""

    STRUCTURED = "structured"
    REPAIRED = "repaired"
    PATTERN = "pattern"
    FAILED = "failed"


@dataclass
class ChunkResult:
    """Everything one chunk contributed to the import."""

    index: int
    source: ChunkSource
    transactions: list[CandidateTransaction] = field(default_factory=list)
    metadata: StatementMetadata = field(default_factory=StatementMetadata)
    filtered_from: int = 0  # Raw candidates before normalization
    ambiguous_direction: int = 0
    failure: str | None = None
    service_unavailable: bool = False
    request_rejected: bool = False


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _build_notes(results: list[ChunkResult], kept: int, duplicates: int) -> str:
    notes = []
    chunked = len(results) > 1

    if chunked:
        notes.append(f"Successfully processed {_plural(kept, 'transaction')} from {len(results)} document chunks.")
    else:
        notes.append(f"Successfully processed {_plural(kept, 'transaction')}.")

    if duplicates:
        notes.append(f"{_plural(duplicates, 'duplicate')} removed.")

    candidates = sum(r.filtered_from for r in results)
    produced = sum(len(r.transactions) for r in results)
    if candidates > produced:
        notes.append(f"Filtered from {candidates} to {produced} records due to incomplete data.")

    repaired = [r for r in results if r.source == ChunkSource.REPAIRED]
    if repaired:
        count = sum(len(r.transactions) for r in repaired)
        notes.append(f"{_plural(count, 'transaction')} recovered from malformed or truncated AI output.")

    pattern = [r for r in results if r.source == ChunkSource.PATTERN]
    if pattern:
        count = sum(len(r.transactions) for r in pattern)
        notes.append(f"{_plural(count, 'transaction')} read directly from statement lines; please review them.")

    ambiguous = sum(r.ambiguous_direction for r in results)
    if ambiguous:
        notes.append(f"{_plural(ambiguous, 'transaction')} had an unrecognized credit/debit type and were treated as debit.")

    failed = [r for r in results if r.source == ChunkSource.FAILED]
    for r in failed:
        where = f"Chunk {r.index + 1}" if chunked else "The document"
        notes.append(f"{where} could not be processed: {r.failure or 'unknown error'}.")

    unavailable = any(r.service_unavailable for r in failed)
    rejected = any(r.request_rejected for r in failed)
    if unavailable:
        notes.append(
            "AI service is currently unavailable. Please check your internet connection and try again later. "
            "If the problem persists, please contact support."
        )
    if rejected:
        notes.append(
            "The AI provider rejected the request. Please check the AI provider configuration "
            "(model name and API key), or contact support if the problem persists."
        )
    if not unavailable and not rejected and kept == 0:
        notes.append(
            "No valid transactions could be extracted. The statement format may be complex; "
            "please check the file and try again, or contact support if the problem persists."
        )

    return " ".join(notes)


def aggregate(chunk_results: list[ChunkResult]) -> ImportResult:
    """
    Merge chunk results in chunk order.

    Transactions are concatenated by chunk index and exact duplicates of
    (date, amount, description) are dropped after their first occurrence.
    Metadata merges first-wins: the earliest chunk with a value for a field
    keeps it.
    """
    ordered = sorted(chunk_results, key=lambda r: r.index)

    seen = set()
    transactions: list[CandidateTransaction] = []
    duplicates = 0
    metadata = StatementMetadata()

    for result in ordered:
        metadata = metadata.merge(result.metadata)
        for txn in result.transactions:
            key = transaction_key(txn)
            if key in seen:
                duplicates += 1
                logger.debug(f"Skipping duplicate transaction: {txn.description} on {txn.date}")
                continue
            seen.add(key)
            transactions.append(txn)

    if duplicates:
        logger.info(f"Removed {duplicates} duplicate transactions")

    return ImportResult(
        transactions=transactions,
        account_number=metadata.account_number,
        statement_period=metadata.statement_period,
        bank_name=metadata.bank_name,
        parsing_notes=_build_notes(ordered, len(transactions), duplicates),
    )
