"""Tests for the transaction normalizer and its heuristics."""

from datetime import date
from unittest.mock import patch

import pytest

from finflow.config import settings
from finflow.models import CandidateTransaction, Provenance, TransactionDirection
from finflow.services.categorizer import categorize_transaction, detect_subscriptions, infer_payee
from finflow.services.normalizer import infer_direction, normalize_transaction, normalize_transactions


def make_raw(**overrides) -> dict:
    """Helper to build a raw candidate record."""
    raw = {"date": "2024-03-15", "description": "Zomato Food Order", "amount": 450, "type": "debit"}
    raw.update(overrides)
    return raw


class TestNormalizeTransaction:
    """Test single-record normalization."""

    def test_scenario_zomato_order(self):
        """Should categorize, infer payee and keep the amount as a magnitude."""
        txn = normalize_transaction(make_raw())

        assert txn.date == date(2024, 3, 15)
        assert txn.amount == 450
        assert txn.direction == TransactionDirection.DEBIT
        assert txn.category == "Food & Dining"
        assert txn.payee.startswith("Zomato")
        assert txn.confidence == settings.happy_path_confidence

    @pytest.mark.parametrize("amount", [-450, -450.0, "-450", "(450)", "450-", "Rs. 450.00 Dr"])
    def test_amount_is_always_non_negative(self, amount):
        """Signed or decorated amounts should become a positive magnitude."""
        txn = normalize_transaction(make_raw(amount=amount))

        assert txn.amount == 450

    def test_parses_indian_grouped_amount(self):
        """Should read 1,23,456.78 as 123456.78."""
        assert normalize_transaction(make_raw(amount="₹1,23,456.78")).amount == pytest.approx(123456.78)

    @pytest.mark.parametrize(
        "value,expected",
        [("credit", TransactionDirection.CREDIT), ("CREDIT", TransactionDirection.CREDIT),
         ("Cr", TransactionDirection.CREDIT), ("deposit", TransactionDirection.CREDIT),
         ("DEBIT", TransactionDirection.DEBIT), ("dr.", TransactionDirection.DEBIT),
         ("Withdrawal", TransactionDirection.DEBIT)],
    )
    def test_direction_vocabulary(self, value, expected):
        """Should match type values case-insensitively."""
        assert normalize_transaction(make_raw(type=value)).direction == expected

    def test_unknown_type_defaults_to_debit(self):
        """Unrecognized types should fall back to debit under the default policy."""
        assert normalize_transaction(make_raw(type="sideways")).direction == TransactionDirection.DEBIT

    def test_unknown_type_dropped_under_drop_policy(self):
        """Unrecognized types should drop the record when configured to."""
        with patch.object(settings, "unknown_direction_policy", "drop"):
            assert normalize_transaction(make_raw(type="sideways")) is None
            assert normalize_transaction(make_raw(type="credit")) is not None

    def test_accepts_statement_date_formats(self):
        """Should read DD/MM/YYYY and DD MMM YYYY dates."""
        assert normalize_transaction(make_raw(date="15/03/2024")).date == date(2024, 3, 15)
        assert normalize_transaction(make_raw(date="15 Mar 2024")).date == date(2024, 3, 15)

    @pytest.mark.parametrize("bad_date", [None, "", "2024-13-45", "yesterday"])
    def test_drops_unusable_date(self, bad_date):
        """Should drop records without a usable date."""
        assert normalize_transaction(make_raw(date=bad_date)) is None

    @pytest.mark.parametrize("bad_amount", [None, "abc", float("nan"), True])
    def test_drops_non_numeric_amount(self, bad_amount):
        """Should drop records without a numeric amount."""
        assert normalize_transaction(make_raw(amount=bad_amount)) is None

    def test_description_falls_back_to_payee(self):
        """A blank description should be replaced by the payee."""
        txn = normalize_transaction(make_raw(description="   ", payee="Swiggy"))

        assert txn.description == "Swiggy"
        assert txn.payee == "Swiggy"

    def test_drops_record_without_description_or_payee(self):
        """Should drop records with neither description nor payee."""
        assert normalize_transaction(make_raw(description="")) is None

    def test_drops_oversized_description(self):
        """Descriptions past 500 characters are not transaction narrations."""
        assert normalize_transaction(make_raw(description="x" * 501)) is None
        assert len(normalize_transaction(make_raw(description="x" * 500)).description) == 500

    def test_trims_description(self):
        """Should trim and collapse whitespace in descriptions."""
        assert normalize_transaction(make_raw(description="  Zomato   Order ")).description == "Zomato Order"

    def test_keeps_given_category_and_payee(self):
        """Model-provided category and payee should win over heuristics."""
        txn = normalize_transaction(make_raw(category="Treats", payee="Zomato Ltd"))

        assert txn.category == "Treats"
        assert txn.payee == "Zomato Ltd"

    @pytest.mark.parametrize("given,expected", [(1.7, 1.0), (-0.3, 0.0), (0.42, 0.42), ("0.9", 0.9)])
    def test_clamps_confidence(self, given, expected):
        """Confidence should always land in [0, 1]."""
        assert normalize_transaction(make_raw(confidence=given)).confidence == pytest.approx(expected)

    def test_repaired_records_get_lower_default_confidence(self):
        """Repaired provenance should signal itself through a lower default."""
        structured = normalize_transaction(make_raw(), Provenance.STRUCTURED)
        repaired = normalize_transaction(make_raw(), Provenance.REPAIRED)

        assert repaired.confidence == settings.repaired_confidence
        assert repaired.confidence < structured.confidence

    def test_invalid_confidence_uses_default(self):
        """Non-numeric confidence should be replaced by the default."""
        assert normalize_transaction(make_raw(confidence="high")).confidence == settings.happy_path_confidence

    def test_rejects_non_mapping(self):
        """Non-dict candidates should be dropped."""
        assert normalize_transaction(["2024-03-15", 450]) is None

    def test_result_is_immutable(self):
        """Normalized transactions should be frozen."""
        txn = normalize_transaction(make_raw())

        with pytest.raises(Exception):
            txn.amount = 1.0


class TestNormalizeTransactions:
    """Test batch normalization counters."""

    def test_counts_drops_and_ambiguous_directions(self):
        """Should report dropped records and defaulted directions."""
        batch = normalize_transactions([make_raw(), make_raw(date=None), make_raw(type="???")])

        assert len(batch.transactions) == 2
        assert batch.dropped == 1
        assert batch.ambiguous_direction == 1

    def test_missing_type_counts_as_ambiguous(self):
        """A record without any type should be flagged."""
        raw = make_raw()
        del raw["type"]

        batch = normalize_transactions([raw])

        assert batch.transactions[0].direction == TransactionDirection.DEBIT
        assert batch.ambiguous_direction == 1


class TestInferDirection:
    """Test direction vocabulary lookup."""

    def test_unrecognized_returns_none(self):
        """Unknown words and non-strings should return None."""
        assert infer_direction("sideways") is None
        assert infer_direction(None) is None
        assert infer_direction(5) is None


class TestCategorizeTransaction:
    """Test keyword categorization."""

    @pytest.mark.parametrize(
        "description,expected",
        [
            ("UPI-ZOMATO ORDER", "Food & Dining"),
            ("SWIGGY INSTAMART", "Food & Dining"),
            ("Blue Tokai Coffee", "Food & Dining"),
            ("Uber trip", "Transportation"),
            ("AMAZON PAY INDIA", "Shopping"),
            ("Airtel postpaid bill", "Utilities"),
            ("NETFLIX.COM", "Entertainment"),
            ("Apollo Pharmacy", "Healthcare"),
            ("ACME CORP SALARY", "Salary"),
            ("ATM CASH WITHDRAWAL", "Banking"),
            ("UPI-RAHUL SHARMA", "Transfers"),
            ("Mystery merchant", "Other"),
            ("Coca Cola", "Other"),
            ("business lunch", "Other"),
            ("feedback survey", "Other"),
            ("MCDONALDS INDIA", "Food & Dining"),
            ("AMAZONPAY*BILL", "Shopping"),
            ("Restaurants", "Food & Dining"),
            ("Bus ticket", "Transportation"),
        ],
    )
    def test_keyword_table(self, description, expected):
        """Should map descriptions through the keyword table."""
        assert categorize_transaction(description) == expected

    def test_empty_description(self):
        """Should default to Other."""
        assert categorize_transaction("") == "Other"


class TestInferPayee:
    """Test payee inference from descriptions."""

    @pytest.mark.parametrize(
        "description,expected",
        [
            ("UPI-ZOMATO ORDER Rs. 450.00 Dr", "ZOMATO ORDER"),
            ("NEFT-ACME CORP SALARY ₹50,000.00 Cr", "ACME CORP"),
            ("UPI Payment to Rahul Sharma AXIS BANK", "Rahul Sharma"),
            ("ECOM Purchase Flipkart Internet", "Flipkart Internet"),
            ("ATM-MG ROAD BRANCH", "MG ROAD"),
            ("Zomato Food Order", "Zomato Food"),
            ("Rs. 500", "Unknown"),
            ("", "Unknown"),
        ],
    )
    def test_infers_payee(self, description, expected):
        """Should strip channel prefixes, markers and amounts."""
        assert infer_payee(description) == expected


class TestDetectSubscriptions:
    """Test subscription detection."""

    def make_txn(self, description: str, direction: TransactionDirection = TransactionDirection.DEBIT):
        return CandidateTransaction(
            date=date(2024, 3, 1),
            description=description,
            amount=199,
            direction=direction,
            confidence=0.9,
        )

    def test_flags_subscription_debits(self):
        """Should keep recurring-service debits only."""
        netflix = self.make_txn("NETFLIX MONTHLY PLAN")
        salary = self.make_txn("ACME SALARY", TransactionDirection.CREDIT)
        refund = self.make_txn("Spotify refund", TransactionDirection.CREDIT)

        assert detect_subscriptions([netflix, salary, refund]) == [netflix]

    def test_any_direction(self):
        """Should include credits when no direction filter is given."""
        refund = self.make_txn("Spotify refund", TransactionDirection.CREDIT)

        assert detect_subscriptions([refund], direction=None) == [refund]
