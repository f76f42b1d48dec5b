"""Tests for WalletError diagnostics."""

from nutpouch.errors import WalletError, generate_suggestion


class TestWalletError:
    def test_insufficient_balance(self):
        error = WalletError(
            "Insufficient balance",
            code="INSUFFICIENT_BALANCE",
            requested_amount=10,
            available_balance=7,
            available_denominations=[1, 2, 4],
        )

        assert error.shortfall == 3
        assert error.user_message == "Need 3 more credits (have 7, need 10)"
        assert error.suggestion == "Add 3 more credits to your wallet."
        assert WalletError.is_insufficient_balance(error)
        assert not WalletError.is_insufficient_balance(ValueError("x"))

    def test_explicit_suggestion_wins(self):
        error = WalletError("boom", code="STORAGE_ERROR", suggestion="Check the disk")

        assert error.suggestion == "Check the disk"
        assert error.user_message == "boom"

    def test_to_dict(self):
        error = WalletError(
            "No exact match",
            code="SELECTION_FAILED",
            requested_amount=3,
            available_balance=8,
            available_denominations=[8],
            denomination_counts={8: 1},
        )

        data = error.to_dict()

        assert data["code"] == "SELECTION_FAILED"
        assert data["denomination_counts"] == {8: 1}
        assert data["shortfall"] == 0
        assert "swap" in data["suggestion"]


class TestGenerateSuggestion:
    def test_empty_wallet(self):
        assert generate_suggestion(
            "INSUFFICIENT_BALANCE", requested_amount=5, available_balance=0
        ) == "Wallet is empty. Add at least 5 credits to continue."

    def test_single_missing_credit(self):
        assert generate_suggestion(
            "INSUFFICIENT_BALANCE", requested_amount=5, available_balance=4
        ) == "Add 1 more credit to your wallet."

    def test_amount_below_smallest_denomination(self):
        suggestion = generate_suggestion(
            "SELECTION_FAILED", requested_amount=1, available_denominations=[2, 4]
        )

        assert suggestion.startswith("Smallest available denomination is 2")
