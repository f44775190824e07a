"""LLM structuring client for bank statement text.

Every call ends in exactly one of three outcomes:

- ``StructuredOk``: the model returned JSON that validates against
  ``StructuredStatement``.
- ``SchemaFailure``: the model answered, but the JSON did not parse or did
  not validate. The raw text is kept for the repair engine.
- ``TransientFailure``: the call itself failed (network, timeout, rate
  limit, provider outage, or a rejected request such as a bad API key).

Only the outcome of the final attempt is returned to the caller. Rejected
requests end the retry loop at once.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

import openai
from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    APIResponseValidationError,
    AuthenticationError,
    BadRequestError,
    BudgetExceededError,
    InternalServerError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
    UnprocessableEntityError,
)
from pydantic import ValidationError

from finflow.config import settings
from finflow.models import StatementHints
from finflow.parsers.document_types import StructuredStatement
from finflow.parsers.repair import extract_embedded_json, strip_code_fences

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    TimeoutError,
    ConnectionError,
    Timeout,
    APIConnectionError,
    APIError,
    RateLimitError,
    ServiceUnavailableError,
    InternalServerError,
)

# The provider rejected the request itself; retrying will not help
REJECTED_ERRORS = (
    AuthenticationError,
    PermissionDeniedError,
    NotFoundError,
    BadRequestError,
    UnprocessableEntityError,
    BudgetExceededError,
)


class ParsingError(Exception):
    """Raised when the structuring client is misconfigured."""

    pass


@dataclass(frozen=True)
class StructuredOk:
    """Schema-valid response."""

    response: StructuredStatement
    raw_text: str


@dataclass(frozen=True)
class SchemaFailure:
    """The model produced output that failed parsing or schema validation."""

    raw_text: str
    message: str


@dataclass(frozen=True)
class TransientFailure:
    """The structuring call itself failed.

    ``retryable`` is False when the provider rejected the request (bad API
    key, unknown model, exhausted budget); such calls are not repeated.
    """

    cause: Exception
    retryable: bool = True

    @property
    def message(self) -> str:
        return str(self.cause) or type(self.cause).__name__


StructuringOutcome = Union[StructuredOk, SchemaFailure, TransientFailure]


STRUCTURING_PROMPT = """You are an expert at parsing Indian bank statements. Analyze the provided text and extract all transaction data with high accuracy.

PARSING RULES:
1. Extract ALL transactions found in the text
2. Convert dates to YYYY-MM-DD format
3. For amounts, extract the absolute numeric value (no negative signs)
4. Use "debit" for money going out (expenses, withdrawals, payments)
5. Use "credit" for money coming in (deposits, salary, refunds)
6. Provide descriptive but concise transaction descriptions
7. Suggest a category: Food & Dining, Transportation, Shopping, Utilities, Entertainment,
   Healthcare, Education, Subscriptions, Banking, Salary, Transfers or Other
8. Give a confidence score between 0 and 1 based on data clarity

COMMON PATTERNS:
- Date formats: DD/MM/YYYY, DD-MM-YYYY, DD MMM YYYY
- Amount formats: 1,23,456.78, ₹1,23,456.78
- Transaction types: UPI, NEFT, RTGS, IMPS, ATM, card payments, cash deposits

EXAMPLE:
Input: "15/03/2024 UPI-ZOMATO ORDER ₹450.00 Dr"
Output: {{"date": "2024-03-15", "description": "Zomato Food Order", "amount": 450.00, "type": "debit", "payee": "Zomato", "category": "Food & Dining", "confidence": 0.95}}
{hints}
Respond with a JSON object only, nothing else:
{{"transactions": [...], "accountNumber": "last 4 digits or null", "statementPeriod": "... or null", "bankName": "... or null", "parsingNotes": "... or null"}}

RAW BANK STATEMENT TEXT:
{text}"""


def build_structuring_prompt(text: str, hints: Optional[StatementHints] = None) -> str:
    """Render the structuring prompt for one chunk of statement text."""
    hint_lines = ""
    if hints is not None:
        lines = []
        if hints.bank_name:
            lines.append(f"- Bank: {hints.bank_name}")
        if hints.account_type:
            lines.append(f"- Account Type: {hints.account_type}")
        if hints.expected_transactions is not None:
            lines.append(f"- Expected Transactions: {hints.expected_transactions}")
        if lines:
            hint_lines = "\nUSER HINTS:\n" + "\n".join(lines) + "\n"

    return STRUCTURING_PROMPT.format(hints=hint_lines, text=text)


def _get_model_name() -> str:
    """Get the appropriate model name based on provider."""
    if settings.llm_provider == "openai":
        return settings.openai_model
    if settings.llm_provider == "gemini":
        return f"gemini/{settings.gemini_model}"
    if settings.llm_provider == "ollama":
        return f"ollama/{settings.ollama_model}"
    raise ParsingError(f"Unsupported LLM provider: {settings.llm_provider}")


def _get_api_base() -> Optional[str]:
    """Get the API base URL for Ollama."""
    if settings.llm_provider == "ollama":
        return settings.ollama_host
    return None


async def _attempt_structuring(prompt: str, timeout: float) -> StructuringOutcome:
    """Run one structuring call and classify its result."""
    try:
        response = await acompletion(
            model=_get_model_name(),
            messages=[{"role": "user", "content": prompt}],
            api_base=_get_api_base(),
            api_key=settings.active_api_key or None,
            temperature=0.1,  # Low temperature for consistency
            max_tokens=settings.structuring_max_tokens,
            response_format={"type": "json_object"},
            timeout=timeout,
        )
    except APIResponseValidationError as e:
        raw = getattr(e, "raw_response", None) or extract_embedded_json(str(e)) or ""
        return SchemaFailure(raw_text=str(raw), message=str(e))
    except REJECTED_ERRORS as e:
        return TransientFailure(cause=e, retryable=False)
    except TRANSIENT_ERRORS as e:
        return TransientFailure(cause=e)
    except openai.APIError as e:
        # Any other provider error litellm maps onto the openai hierarchy
        return TransientFailure(cause=e)

    content = (response.choices[0].message.content or "").strip()
    if not content:
        return TransientFailure(cause=ParsingError("Failed to get output from AI model"))

    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        if not content.rstrip().endswith("}"):
            logger.error("Response appears truncated (doesn't end with })")
        return SchemaFailure(raw_text=content, message=f"Invalid JSON: {e}")

    try:
        return StructuredOk(response=StructuredStatement.model_validate(data), raw_text=content)
    except ValidationError as e:
        return SchemaFailure(raw_text=content, message=f"Schema validation failed: {e}")


async def structure_statement(
    text: str,
    hints: Optional[StatementHints] = None,
    max_retries: Optional[int] = None,
    timeout: Optional[float] = None,
) -> StructuringOutcome:
    """
    Ask the model to structure one chunk of statement text.

    Args:
        text: Normalized statement text (one chunk)
        hints: Optional user hints forwarded into the prompt
        max_retries: Attempts before giving up (defaults to settings)
        timeout: Per-call timeout in seconds (defaults to settings)

    Returns:
        The outcome of the first successful attempt, or of the final one.
        Waits between attempts are ``backoff_base ** attempt`` seconds and
        are cancellable.
    """
    attempts = max(1, max_retries if max_retries is not None else settings.structuring_max_retries)
    timeout = timeout if timeout is not None else settings.structuring_timeout
    prompt = build_structuring_prompt(text, hints)

    outcome: StructuringOutcome = TransientFailure(cause=ParsingError("No structuring attempt was made"))
    for attempt in range(1, attempts + 1):
        logger.info(f"Structuring call attempt {attempt}/{attempts} ({len(text)} chars, model {_get_model_name()})")
        outcome = await _attempt_structuring(prompt, timeout)

        if isinstance(outcome, StructuredOk):
            logger.info(f"Structuring returned {len(outcome.response.transactions)} transactions")
            return outcome

        logger.warning(f"Structuring attempt {attempt}/{attempts} failed: {outcome.message[:200]}")
        if isinstance(outcome, TransientFailure) and not outcome.retryable:
            logger.error("Provider rejected the request, not retrying")
            return outcome
        if attempt < attempts:
            wait_time = settings.backoff_base**attempt
            logger.info(f"Retrying in {wait_time}s...")
            await asyncio.sleep(wait_time)

    return outcome
