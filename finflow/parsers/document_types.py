"""Document and response types for LLM-based statement structuring."""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class RawDocument:
    """Text extracted from a source file for one import attempt."""

    content: str

    @property
    def length(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Chunk:
    """A line-bounded slice of a RawDocument."""

    index: int
    text: str

    def __len__(self) -> int:
        return len(self.text)


class StructuredTransaction(BaseModel):
    """One transaction as the structuring model must return it."""

    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    description: str
    amount: float
    type: Literal["credit", "debit"]
    payee: str | None = None
    category: str | None = None
    confidence: float = Field(ge=0, le=1)


class StructuredStatement(BaseModel):
    """Schema-valid structuring response for one chunk."""

    transactions: list[StructuredTransaction]
    accountNumber: str | None = None
    statementPeriod: str | None = None
    bankName: str | None = None
    parsingNotes: str | None = None
