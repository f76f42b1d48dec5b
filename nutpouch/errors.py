"""Wallet error types with structured diagnostics."""

from __future__ import annotations

from typing import Any, Literal

from .types import Proof


ErrorCode = Literal[
    "INVALID_AMOUNT",
    "INSUFFICIENT_BALANCE",
    "SELECTION_FAILED",
    "MINT_MISMATCH",
    "EMPTY_TOKEN",
    "WALLET_NOT_LOADED",
    "STORAGE_ERROR",
    "MINT_ERROR",
    "SWAP_FAILED",
]


class MintError(Exception):
    """Base exception for mint errors."""

    pass


class WalletError(Exception):
    """Raised by every failing wallet operation.

    Carries the diagnostic context at the time of failure so callers can
    render a useful message or decide how to recover::

        try:
            await wallet.create_token(100)
        except WalletError as e:
            if e.code == "INSUFFICIENT_BALANCE":
                print(e.user_message, e.suggestion)
    """

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        requested_amount: int = 0,
        available_balance: int = 0,
        available_denominations: list[int] | None = None,
        denomination_counts: dict[int, int] | None = None,
        selected_proofs: list[Proof] | None = None,
        selected_total: int | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code: ErrorCode = code
        self.requested_amount = requested_amount
        self.available_balance = available_balance
        self.available_denominations = list(available_denominations or [])
        self.denomination_counts = dict(denomination_counts or {})
        self.selected_proofs = selected_proofs
        self.selected_total = selected_total
        if suggestion is None:
            suggestion = generate_suggestion(
                code,
                requested_amount=requested_amount,
                available_balance=available_balance,
                available_denominations=self.available_denominations,
            )
        self.suggestion = suggestion

    @property
    def message(self) -> str:
        return str(self)

    @property
    def shortfall(self) -> int:
        """How much balance is missing (0 if balance was sufficient)."""
        return max(0, self.requested_amount - self.available_balance)

    @property
    def user_message(self) -> str:
        """Short message suitable for display."""
        if self.code == "INSUFFICIENT_BALANCE":
            needed = self.shortfall
            return (
                f"Need {needed} more credit{'' if needed == 1 else 's'} "
                f"(have {self.available_balance}, need {self.requested_amount})"
            )
        if self.code == "SELECTION_FAILED":
            return (
                f"Cannot create exact amount of {self.requested_amount} "
                "from available proofs"
            )
        if self.code == "INVALID_AMOUNT":
            return "Amount must be a positive number"
        if self.code == "WALLET_NOT_LOADED":
            return "Wallet must be loaded before creating tokens"
        if self.code == "SWAP_FAILED":
            return "Failed to swap proofs for exact amount"
        if self.code == "MINT_MISMATCH":
            return "Token was issued by a different mint"
        if self.code == "EMPTY_TOKEN":
            return "Token contains no proofs"
        return str(self)

    @staticmethod
    def is_insufficient_balance(error: BaseException) -> bool:
        return isinstance(error, WalletError) and error.code == "INSUFFICIENT_BALANCE"

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging/debugging."""
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": str(self),
            "requested_amount": self.requested_amount,
            "available_balance": self.available_balance,
            "available_denominations": self.available_denominations,
            "denomination_counts": self.denomination_counts,
            "selected_total": self.selected_total,
            "suggestion": self.suggestion,
            "shortfall": self.shortfall,
        }


def generate_suggestion(
    code: ErrorCode,
    *,
    requested_amount: int = 0,
    available_balance: int = 0,
    available_denominations: list[int] | None = None,
) -> str | None:
    """Generate an actionable suggestion for an error code."""
    denominations = available_denominations or []

    if code == "INSUFFICIENT_BALANCE":
        needed = requested_amount - available_balance
        if available_balance == 0:
            return f"Wallet is empty. Add at least {requested_amount} credits to continue."
        return f"Add {needed} more credit{'' if needed == 1 else 's'} to your wallet."

    if code == "SELECTION_FAILED":
        if not denominations:
            return "Wallet is empty. Add credits to continue."
        smallest = min(denominations)
        if len(denominations) == 1 and smallest > requested_amount:
            return (
                f"Only have {smallest}-credit proofs. "
                "A swap will break these into smaller denominations."
            )
        if requested_amount < smallest:
            return (
                f"Smallest available denomination is {smallest}. "
                f"Try requesting at least {smallest} credits."
            )
        return "Try a different amount or consolidate your proofs."

    if code == "INVALID_AMOUNT":
        return "Provide a positive number for the amount."
    if code == "WALLET_NOT_LOADED":
        return "Call wallet.load() before creating tokens."
    if code == "MINT_MISMATCH":
        return "Receive the token with a wallet configured for its mint."
    if code == "EMPTY_TOKEN":
        return "Ask the sender for a new token."
    if code == "STORAGE_ERROR":
        return "Check that the storage backend is writable and retry."
    if code in ("MINT_ERROR", "SWAP_FAILED"):
        return "Check the mint's health and retry; your proofs were not changed."
    return None
