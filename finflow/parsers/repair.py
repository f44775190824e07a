"""Recovery of transactions from truncated or malformed structuring output.

Three strategies are tried in order, and the first one whose records
survive normalization wins:

1. ``reparse_whole``: strip code fences, trim to the outermost object and
   parse it as JSON.
2. ``scan_balanced_objects``: walk the ``transactions`` array counting
   braces and parse only the objects that close before the text ends.
3. ``regex_extract``: read field values out of flat ``{...}`` spans without
   caring whether the surrounding JSON is well formed.

Statement metadata is pulled out with field regexes independently of which
strategy succeeded. Nothing in this module raises on bad input.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from finflow.models import CandidateTransaction, Provenance, StatementMetadata
from finflow.parsers.validation import parse_amount_safe
from finflow.services.normalizer import normalize_transactions

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*\n?")
_TRUNCATION_MARKER = re.compile(r"\.\.\.\s*\[?\s*\d+\s+more characters\]?")
_EMBEDDED_DATA_PATTERN = re.compile(r"Provided data:\s*(\{[\s\S]*)")
_TRANSACTIONS_ARRAY_PATTERN = re.compile(r'"transactions"\s*:\s*\[')
_FLAT_OBJECT_PATTERN = re.compile(r"\{[^{}]*\}")

_STRING_VALUE = r'"{name}"\s*:\s*"((?:[^"\\]|\\.)*)"'
_NUMBER_VALUE = r'"{name}"\s*:\s*"?(-?[\d,]+(?:\.\d+)?)"?'

METADATA_FIELDS = {
    "account_number": "accountNumber",
    "statement_period": "statementPeriod",
    "bank_name": "bankName",
}

Strategy = Callable[[str], Optional[list[dict]]]


@dataclass
class RepairResult:
    """Outcome of a repair run. An empty transaction list is a valid result."""

    transactions: list[CandidateTransaction] = field(default_factory=list)
    metadata: StatementMetadata = field(default_factory=StatementMetadata)
    strategy: str | None = None
    candidates: int = 0
    dropped: int = 0
    ambiguous_direction: int = 0
    truncated: bool = False
    notes: str = ""


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences and trim to the outermost {...} span."""
    cleaned = _FENCE_PATTERN.sub("", text or "").strip()

    start = cleaned.find("{")
    if start == -1:
        return cleaned
    end = cleaned.rfind("}")
    if end > start:
        return cleaned[start : end + 1]
    return cleaned[start:]


def extract_embedded_json(message: str) -> str | None:
    """Return the raw JSON embedded in a schema-validation error message."""
    match = _EMBEDDED_DATA_PATTERN.search(message or "")
    return match.group(1) if match else None


def is_truncated(text: str) -> bool:
    """True when the text carries an ellipsis marker or ends inside an object."""
    if _TRUNCATION_MARKER.search(text):
        return True
    cleaned = _FENCE_PATTERN.sub("", text).rstrip()
    return bool(cleaned) and cleaned.count("{") > cleaned.count("}")


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def _has_mandatory_fields(record: dict) -> bool:
    if not record.get("date") or not record.get("description"):
        return False
    _, ok = parse_amount_safe(record.get("amount"))
    return ok


def reparse_whole(raw_text: str) -> list[dict] | None:
    """Strategy 1: parse the whole response once fences are stripped."""
    data = _load_json(strip_code_fences(raw_text))

    if isinstance(data, dict) and isinstance(data.get("transactions"), list):
        records = data["transactions"]
    elif isinstance(data, list):
        records = data
    else:
        return None

    records = [record for record in records if isinstance(record, dict)]
    return records or None


def _balanced_objects(text: str, start: int) -> list[str]:
    """Collect top-level {...} spans of an array body whose braces close."""
    objects = []
    depth = 0
    in_string = False
    escaped = False
    obj_start = -1

    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            if depth == 0:
                obj_start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                objects.append(text[obj_start : i + 1])
        elif char == "]" and depth == 0:
            break

    return objects


def scan_balanced_objects(raw_text: str) -> list[dict] | None:
    """Strategy 2: keep only the transaction objects that close before the cut."""
    text = raw_text or ""
    marker = _TRUNCATION_MARKER.search(text)
    if marker:
        text = text[: marker.start()]

    array = _TRANSACTIONS_ARRAY_PATTERN.search(text)
    if not array:
        return None

    records = []
    for span in _balanced_objects(text, array.end()):
        record = _load_json(span)
        if isinstance(record, dict) and _has_mandatory_fields(record):
            records.append(record)
        else:
            logger.debug(f"Skipping unparseable transaction fragment: {span[:80]}")

    return records or None


def _string_field(span: str, name: str) -> str | None:
    match = re.search(_STRING_VALUE.format(name=name), span, re.IGNORECASE)
    if not match:
        return None
    value = _load_json(f'"{match.group(1)}"')
    return value if isinstance(value, str) else match.group(1)


def _number_field(span: str, name: str) -> str | None:
    match = re.search(_NUMBER_VALUE.format(name=name), span, re.IGNORECASE)
    return match.group(1) if match else None


def regex_extract(raw_text: str) -> list[dict] | None:
    """Strategy 3: build records field by field from flat object spans."""
    records = []
    for match in _FLAT_OBJECT_PATTERN.finditer(raw_text or ""):
        span = match.group(0)
        if '"date"' not in span:
            continue

        record: dict[str, Any] = {
            "date": _string_field(span, "date"),
            "description": _string_field(span, "description"),
            "amount": _number_field(span, "amount"),
            "type": _string_field(span, "type"),
        }
        for optional in ("payee", "category"):
            value = _string_field(span, optional)
            if value:
                record[optional] = value
        confidence = _number_field(span, "confidence")
        if confidence is not None:
            record["confidence"] = confidence

        if record["date"] and record["amount"] is not None:
            records.append(record)

    return records or None


STRATEGIES: list[tuple[str, Strategy]] = [
    ("reparse", reparse_whole),
    ("balanced-scan", scan_balanced_objects),
    ("regex", regex_extract),
]


def extract_metadata(raw_text: str) -> StatementMetadata:
    """Pull statement-level fields out of the raw text with targeted regexes."""
    values = {}
    for attr, key in METADATA_FIELDS.items():
        value = _string_field(raw_text or "", key)
        values[attr] = value.strip() if value and value.strip() else None
    return StatementMetadata(**values)


def repair_response(raw_text: str, provenance: Provenance = Provenance.REPAIRED) -> RepairResult:
    """
    Recover as many complete transactions as possible from a raw response.

    Args:
        raw_text: Text the structuring model produced
        provenance: Provenance stamped on recovered records

    Returns:
        RepairResult; its transaction list is empty when nothing could be
        recovered, in which case ``notes`` explains why.
    """
    result = RepairResult(metadata=extract_metadata(raw_text), truncated=is_truncated(raw_text or ""))

    for name, strategy in STRATEGIES:
        records = strategy(raw_text)
        if not records:
            logger.debug(f"Repair strategy '{name}' found no records")
            continue

        batch = normalize_transactions(records, provenance)
        if not batch.transactions:
            logger.debug(f"Repair strategy '{name}' found {len(records)} records but none were usable")
            continue

        result.transactions = batch.transactions
        result.strategy = name
        result.candidates = len(records)
        result.dropped = batch.dropped
        result.ambiguous_direction = batch.ambiguous_direction
        cut = " truncated" if result.truncated else ""
        result.notes = f"Recovered {len(batch.transactions)} transactions from{cut} AI response ({name} strategy)."
        logger.info(result.notes)
        return result

    result.notes = "No valid transactions could be recovered from the AI response."
    logger.warning(result.notes)
    return result
