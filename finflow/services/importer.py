"""Bank statement import pipeline.

raw text -> normalize -> statement gate -> chunk -> structure each chunk
(repairing schema failures) -> aggregate. Chunks run one at a time in
document order; a failing chunk is recorded in the parsing notes and never
aborts its siblings.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from finflow.config import settings
from finflow.models import CandidateTransaction, ImportResult, Provenance, StatementHints, StatementMetadata
from finflow.parsers.chunker import chunk_text
from finflow.parsers.document_types import Chunk, RawDocument, StructuredStatement
from finflow.parsers.llm_client import SchemaFailure, StructuredOk, TransientFailure, structure_statement
from finflow.parsers.pdf import PdfExtraction, extract_pdf_text
from finflow.parsers.repair import repair_response
from finflow.parsers.text import extract_basic_transaction_patterns, looks_like_statement, normalize_statement_text
from finflow.parsers.validation import logger as parse_logger
from finflow.services.aggregator import ChunkResult, ChunkSource, aggregate
from finflow.services.dedup import compute_transaction_hash
from finflow.services.normalizer import normalize_transactions

logger = logging.getLogger(__name__)

EMPTY_DOCUMENT_NOTE = "The document is empty; no text was found to import. Please check the file and try again."

CreateTransaction = Callable[[CandidateTransaction, str], Awaitable[object]]


@dataclass(frozen=True)
class PdfImportOutcome:
    """PDF extraction result plus the import result when extraction worked."""

    extraction: PdfExtraction
    result: Optional[ImportResult] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _response_metadata(response: StructuredStatement) -> StatementMetadata:
    return StatementMetadata(
        bank_name=_clean(response.bankName),
        account_number=_clean(response.accountNumber),
        statement_period=_clean(response.statementPeriod),
    )


def _pattern_fallback(chunk: Chunk, failure: str) -> Optional[ChunkResult]:
    records = extract_basic_transaction_patterns(chunk.text)
    if not records:
        return None

    batch = normalize_transactions(records, Provenance.PATTERN)
    if not batch.transactions:
        return None

    logger.info(f"Chunk {chunk.index + 1}: line-pattern fallback found {len(batch.transactions)} transactions")
    return ChunkResult(
        index=chunk.index,
        source=ChunkSource.PATTERN,
        transactions=batch.transactions,
        filtered_from=len(records),
        ambiguous_direction=batch.ambiguous_direction,
        failure=failure,
    )


def _repaired_chunk(chunk: Chunk, raw_text: str) -> ChunkResult:
    repaired = repair_response(raw_text)
    if repaired.transactions:
        return ChunkResult(
            index=chunk.index,
            source=ChunkSource.REPAIRED,
            transactions=repaired.transactions,
            metadata=repaired.metadata,
            filtered_from=repaired.candidates,
            ambiguous_direction=repaired.ambiguous_direction,
        )

    logger.error(f"Chunk {chunk.index + 1}: repair recovered nothing, skipping chunk")
    return ChunkResult(
        index=chunk.index,
        source=ChunkSource.FAILED,
        metadata=repaired.metadata,
        failure="AI parsing encountered validation issues and no transactions could be recovered",
    )


async def _process_chunk(chunk: Chunk, hints: Optional[StatementHints]) -> ChunkResult:
    """Structure one chunk, routing unusable output through the repair engine."""
    outcome = await structure_statement(chunk.text, hints)

    if isinstance(outcome, StructuredOk):
        raws = [txn.model_dump() for txn in outcome.response.transactions]
        batch = normalize_transactions(raws, Provenance.STRUCTURED)
        if raws and not batch.transactions:
            logger.warning(f"Chunk {chunk.index + 1}: none of {len(raws)} records were usable, attempting repair")
            return _repaired_chunk(chunk, outcome.raw_text)

        return ChunkResult(
            index=chunk.index,
            source=ChunkSource.STRUCTURED,
            transactions=batch.transactions,
            metadata=_response_metadata(outcome.response),
            filtered_from=len(raws),
            ambiguous_direction=batch.ambiguous_direction,
        )

    if isinstance(outcome, SchemaFailure):
        logger.warning(f"Chunk {chunk.index + 1}: AI output failed validation, attempting repair")
        return _repaired_chunk(chunk, outcome.raw_text)

    assert isinstance(outcome, TransientFailure)
    if outcome.retryable:
        failure = f"AI service unavailable ({outcome.message})"
    else:
        failure = f"AI service rejected the request ({outcome.message})"
    logger.error(f"Chunk {chunk.index + 1}: {failure}, skipping chunk")

    if settings.enable_pattern_fallback:
        fallback = _pattern_fallback(chunk, failure)
        if fallback is not None:
            return fallback

    return ChunkResult(
        index=chunk.index,
        source=ChunkSource.FAILED,
        failure=failure,
        service_unavailable=outcome.retryable,
        request_rejected=not outcome.retryable,
    )


async def import_statement(raw_text: str, hints: Optional[StatementHints] = None) -> ImportResult:
    """
    Turn raw statement text into an ImportResult.

    Never raises for bad input or model/service failures; every degraded
    path is explained in ``parsing_notes``.
    """
    if not raw_text or not raw_text.strip():
        logger.info("Empty document, skipping structuring")
        return ImportResult.empty(EMPTY_DOCUMENT_NOTE)

    document = RawDocument(normalize_statement_text(raw_text))
    check = looks_like_statement(document.content)
    if not check.valid:
        logger.info(f"Rejected document: {check.reason}")
        return ImportResult.empty(f"{check.reason}. Please upload a bank statement with transaction details.")

    if document.length > settings.max_chunk_size:
        chunks = chunk_text(document.content, settings.max_chunk_size)
        logger.info(f"Large document ({document.length} chars) split into {len(chunks)} chunks")
    else:
        chunks = [Chunk(index=0, text=document.content)]

    results = []
    for chunk in chunks:
        logger.info(f"Processing chunk {chunk.index + 1}/{len(chunks)} ({len(chunk)} chars)")
        results.append(await _process_chunk(chunk, hints))

    result = aggregate(results)
    parse_logger.info(
        f"Statement import: {len(result.transactions)} transactions from {len(chunks)} chunk(s) "
        f"({sum(1 for r in results if r.source == ChunkSource.FAILED)} failed)"
    )
    return result


async def import_pdf(
    contents: bytes, password: Optional[str] = None, hints: Optional[StatementHints] = None
) -> PdfImportOutcome:
    """Extract text from a PDF statement and import it."""
    extraction = extract_pdf_text(contents, password)
    if not extraction.success:
        return PdfImportOutcome(extraction=extraction)

    return PdfImportOutcome(extraction=extraction, result=await import_statement(extraction.text, hints))


async def publish_transactions(result: ImportResult, create_transaction: CreateTransaction) -> tuple[int, int]:
    """
    Hand transactions to the persistence layer one at a time.

    Each call receives the transaction and its stable hash. A failing call
    is logged and counted; it does not stop the remaining hand-offs.

    Returns:
        (created, failed) counts
    """
    created = 0
    failed = 0
    for txn in result.transactions:
        try:
            await create_transaction(txn, compute_transaction_hash(txn))
            created += 1
        except Exception as e:
            failed += 1
            logger.error(f"Failed to save transaction {txn.description} on {txn.date}: {e}")

    return created, failed
