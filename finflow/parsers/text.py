"""Cleanup and sanity checks for raw statement text before structuring."""

import re
from dataclasses import dataclass

from finflow.config import settings

RUPEE = "₹"

# Mis-decoded UTF-8 rupee sign and the legacy rupee glyph
_RUPEE_VARIANTS = ("â‚¹", "₨")
_RUPEE_WORD_PATTERN = re.compile(r"\b(?:Rs|INR)(?![A-Za-z])\.?", re.IGNORECASE)
_RUPEE_SPACING_PATTERN = re.compile(r"[ \t]*₹[ \t]*")

_PAGE_NUMBER_PATTERN = re.compile(r"\bPage\s+\d+\s+of\s+\d+\b", re.IGNORECASE)
_BOILERPLATE_PATTERN = re.compile(r"Statement of Account|Account Statement|Transaction History", re.IGNORECASE)
_DATE_SEPARATOR_PATTERN = re.compile(r"(?<!\d)(\d{1,2})[-./](\d{1,2})[-./](\d{2,4})(?!\d)")
_HORIZONTAL_SPACE_PATTERN = re.compile(r"[^\S\n]+")

_MAX_NORMALIZE_PASSES = 10

# Indicators for looks_like_statement; at least two must be present
_STATEMENT_INDICATORS = (
    re.compile(r"balance|transaction|credit|debit|statement", re.IGNORECASE),
    re.compile(r"₹|\brs\.?|\binr\b|\$|amount", re.IGNORECASE),
    re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"),
    re.compile(r"account|bank|branch", re.IGNORECASE),
)

_BASIC_LINE_PATTERN = re.compile(
    r"(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})\s+(.+?)\s+₹?\s*([+-]?\d{1,3}(?:,\d{2,3})*(?:\.\d{2})?)(?![\d,]|\.\d)(?:\s*(Dr|Cr)\b)?",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class StatementCheck:
    """Outcome of the cheap bank-statement gate."""

    valid: bool
    reason: str | None = None


def _normalize_once(text: str) -> str:
    for variant in _RUPEE_VARIANTS:
        text = text.replace(variant, RUPEE)
    text = _RUPEE_WORD_PATTERN.sub(RUPEE, text)

    text = _PAGE_NUMBER_PATTERN.sub(" ", text)
    text = _BOILERPLATE_PATTERN.sub(" ", text)
    text = _DATE_SEPARATOR_PATTERN.sub(r"\1/\2/\3", text)

    lines = []
    for line in text.splitlines():
        line = _HORIZONTAL_SPACE_PATTERN.sub(" ", line)
        line = _RUPEE_SPACING_PATTERN.sub(" " + RUPEE, line).strip()
        if line:
            lines.append(line)
    return "\n".join(lines)


def normalize_statement_text(text: str) -> str:
    """
    Clean raw extracted statement text.

    Collapses horizontal whitespace, strips page numbers and boilerplate
    headers, normalizes date separators to "/", and rewrites every rupee
    notation (Rs., INR, mis-decoded variants) as a single "₹" glued to the
    amount. Line breaks survive so the chunker can respect them; blank
    lines are dropped.

    The cleanup is applied until it reaches a fixed point, so the function
    is idempotent.
    """
    if not text:
        return ""

    for _ in range(_MAX_NORMALIZE_PASSES):
        cleaned = _normalize_once(text)
        if cleaned == text:
            break
        text = cleaned
    return text


def looks_like_statement(text: str, min_length: int | None = None) -> StatementCheck:
    """Fast-fail gate run before any structuring call."""
    if min_length is None:
        min_length = settings.min_statement_length

    found = sum(1 for pattern in _STATEMENT_INDICATORS if pattern.search(text or ""))
    if found < 2:
        return StatementCheck(False, "Document does not appear to contain bank transaction data")

    if len(text) < min_length:
        return StatementCheck(False, "Document appears to be too short for a bank statement")

    return StatementCheck(True)


def extract_basic_transaction_patterns(text: str) -> list[dict]:
    """
    Pull "date description amount" lines out of normalized text.

    A heuristic fallback that needs no model. A trailing Dr/Cr marker
    decides the direction; otherwise a negative amount is a debit.
    """
    candidates = []
    for line in text.splitlines():
        match = _BASIC_LINE_PATTERN.search(line)
        if not match:
            continue

        date_str, description, amount_str, marker = match.groups()
        try:
            amount = float(amount_str.replace(",", ""))
        except ValueError:
            continue
        if amount == 0:
            continue

        if marker:
            direction = "debit" if marker.lower() == "dr" else "credit"
        else:
            direction = "debit" if amount < 0 else "credit"

        candidates.append(
            {
                "date": date_str,
                "description": description.strip(),
                "amount": abs(amount),
                "type": direction,
            }
        )

    return candidates
