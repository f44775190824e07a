"""Tests for the HTTP endpoints."""

from datetime import date
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from finflow.main import app
from finflow.models import CandidateTransaction, ImportResult, StatementHints
from finflow.parsers.pdf import PdfExtraction
from finflow.services.importer import PdfImportOutcome

client = TestClient(app)

RESULT = ImportResult(
    transactions=[
        CandidateTransaction(
            date=date(2024, 3, 15),
            description="Zomato Food Order",
            amount=450.0,
            direction="debit",
            payee="Zomato",
            category="Food & Dining",
            confidence=0.95,
        )
    ],
    bank_name="HDFC",
    parsing_notes="Successfully processed 1 transaction.",
)

PDF_BYTES = b"%PDF-1.7 fake statement bytes"


class TestHealth:
    def test_health(self):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestParseText:
    """Test POST /statements/parse."""

    def test_returns_camel_case_result(self):
        """Should accept camelCase input and return camelCase output."""
        mock = AsyncMock(return_value=RESULT)

        with patch("finflow.main.import_statement", new=mock):
            response = client.post(
                "/statements/parse",
                json={"rawText": "15/03/2024 UPI-ZOMATO ORDER Rs. 450.00 Dr", "userHints": {"bankName": "HDFC"}},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["bankName"] == "HDFC"
        assert body["parsingNotes"] == "Successfully processed 1 transaction."
        txn = body["transactions"][0]
        assert txn["date"] == "2024-03-15"
        assert txn["type"] == "debit"
        assert txn["amount"] == 450.0

        text, hints = mock.await_args.args
        assert text.startswith("15/03/2024")
        assert hints == StatementHints(bank_name="HDFC")

    def test_requires_raw_text(self):
        """A body without rawText should be rejected."""
        response = client.post("/statements/parse", json={})

        assert response.status_code == 422


class TestImportFile:
    """Test POST /statements/import."""

    def test_imports_pdf(self):
        """Should pass the password and hints through to the importer."""
        outcome = PdfImportOutcome(extraction=PdfExtraction(success=True, text="text"), result=RESULT)
        mock = AsyncMock(return_value=outcome)

        with patch("finflow.main.import_pdf", new=mock):
            response = client.post(
                "/statements/import",
                files={"file": ("statement.pdf", PDF_BYTES, "application/pdf")},
                data={"password": "secret", "bank_name": "HDFC", "expected_transactions": "1"},
            )

        assert response.status_code == 200
        assert response.json()["transactions"][0]["description"] == "Zomato Food Order"
        kwargs = mock.await_args.kwargs
        assert kwargs["password"] == "secret"
        assert kwargs["hints"].bank_name == "HDFC"
        assert kwargs["hints"].expected_transactions == 1

    def test_rejects_non_pdf(self):
        """Only PDFs are accepted."""
        response = client.post("/statements/import", files={"file": ("statement.txt", b"plain text here", "text/plain")})

        assert response.status_code == 400
        assert "PDF" in response.json()["detail"]

    def test_rejects_empty_file(self):
        """Empty uploads should fail validation."""
        response = client.post("/statements/import", files={"file": ("statement.pdf", b"", "application/pdf")})

        assert response.status_code == 400
        assert "empty" in response.json()["detail"]

    def test_password_required(self):
        """Encrypted PDFs without a password should get a 401."""
        extraction = PdfExtraction(success=False, requires_password=True, error="This PDF is password protected.")

        with patch("finflow.main.import_pdf", new=AsyncMock(return_value=PdfImportOutcome(extraction=extraction))):
            response = client.post("/statements/import", files={"file": ("statement.pdf", PDF_BYTES, "application/pdf")})

        assert response.status_code == 401
        assert "password" in response.json()["detail"]

    def test_unreadable_pdf(self):
        """Extraction failures should be reported as 422."""
        extraction = PdfExtraction(success=False, error="No text content found in PDF.")

        with patch("finflow.main.import_pdf", new=AsyncMock(return_value=PdfImportOutcome(extraction=extraction))):
            response = client.post("/statements/import", files={"file": ("scan.pdf", PDF_BYTES, "application/pdf")})

        assert response.status_code == 422
        assert response.json()["detail"] == "No text content found in PDF."
