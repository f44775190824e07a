"""Data models for FinFlow."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TransactionDirection(str, Enum):
    """Whether money came in or went out."""

    CREDIT = "credit"
    DEBIT = "debit"


class TransactionCategory(str, Enum):
    """Categories assigned by the model or the keyword heuristics."""

    FOOD_DINING = "Food & Dining"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    UTILITIES = "Utilities"
    ENTERTAINMENT = "Entertainment"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    SUBSCRIPTIONS = "Subscriptions"
    BANKING = "Banking"
    SALARY = "Salary"
    TRANSFERS = "Transfers"
    OTHER = "Other"


class Provenance(str, Enum):
    """Where a candidate record came from."""

    STRUCTURED = "structured"  # Schema-valid structuring response
    REPAIRED = "repaired"  # Recovered by the repair engine
    PATTERN = "pattern"  # Line-pattern fallback over the raw text


class CandidateTransaction(BaseModel):
    """A normalized financial movement. Amount is always a magnitude."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: date
    description: str = Field(min_length=1)
    amount: float = Field(ge=0)
    direction: TransactionDirection = Field(alias="type")
    payee: str | None = None
    category: str = TransactionCategory.OTHER.value
    confidence: float = Field(ge=0, le=1)


class StatementMetadata(BaseModel):
    """Document-level facts; merged first-wins across chunks."""

    bank_name: str | None = None
    account_number: str | None = None
    statement_period: str | None = None

    def merge(self, other: "StatementMetadata") -> "StatementMetadata":
        """Fill only the fields this instance is still missing."""
        return StatementMetadata(
            bank_name=self.bank_name or other.bank_name,
            account_number=self.account_number or other.account_number,
            statement_period=self.statement_period or other.statement_period,
        )


class StatementHints(BaseModel):
    """Optional user-provided hints forwarded to the structuring call."""

    model_config = ConfigDict(populate_by_name=True)

    bank_name: str | None = Field(default=None, alias="bankName")
    account_type: str | None = Field(default=None, alias="accountType")
    expected_transactions: int | None = Field(default=None, ge=0, alias="expectedTransactions")


class ImportResult(BaseModel):
    """Final output of a statement import."""

    model_config = ConfigDict(populate_by_name=True)

    transactions: list[CandidateTransaction] = Field(default_factory=list)
    account_number: str | None = Field(default=None, alias="accountNumber")
    statement_period: str | None = Field(default=None, alias="statementPeriod")
    bank_name: str | None = Field(default=None, alias="bankName")
    parsing_notes: str = Field(min_length=1, alias="parsingNotes")

    @classmethod
    def empty(cls, notes: str) -> "ImportResult":
        """A result with no transactions and an explanatory note."""
        return cls(transactions=[], parsing_notes=notes)


class ParseTextRequest(BaseModel):
    """Request body for parsing already-extracted statement text."""

    model_config = ConfigDict(populate_by_name=True)

    raw_text: str = Field(alias="rawText")
    user_hints: StatementHints | None = Field(default=None, alias="userHints")
