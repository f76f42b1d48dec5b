"""Type definitions for the nutpouch package following NUT-00 specifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypedDict


class Proof(TypedDict):
    """Cashu proof as held by the wallet.

    ``id`` is the keyset id and ``C`` the mint's unblinded signature.
    """

    id: str
    amount: int
    secret: str
    C: str


class ProofOptional(TypedDict, total=False):
    """Optional fields for Proof (NUT-00 specification)."""

    witness: str
    dleq: dict[str, Any]  # NUT-12


class ProofComplete(Proof, ProofOptional):
    """Proof with both required and optional fields."""

    pass


# Standard currency units as per NUT-00 specification
CurrencyUnit = Literal[
    "btc",
    "sat",
    "msat",
    "usd",
    "eur",
    "gbp",
    "jpy",
    "cny",
    "cad",
    "chf",
    "aud",
    "inr",
    "auth",
    "usdt",
    "usdc",
    "dai",
]


@dataclass
class SwapResult:
    """Outcome of a mint swap: proofs to hand over and proofs to keep."""

    send: list[Proof]
    keep: list[Proof] = field(default_factory=list)


@dataclass
class CheckProofsResult:
    """Partition of proofs by the mint's reported state."""

    valid: list[Proof]
    spent: list[Proof]


@dataclass
class MintQuote:
    """Mint quote for funding the wallet over Lightning."""

    id: str
    request: str  # bolt11 invoice
    amount: int
    expiry: int | None = None
    paid: bool = False


@dataclass
class DecodedToken:
    """Token contents after decoding."""

    mint: str
    proofs: list[Proof]
    unit: str | None = None
    memo: str | None = None

    @property
    def amount(self) -> int:
        return sum(p["amount"] for p in self.proofs)


@dataclass
class TokenPreview:
    """Dry run of token creation; never touches state or the network."""

    can_create: bool
    amount: int
    available_balance: int
    available_denominations: list[int]
    denomination_counts: dict[int, int]
    selected_proofs: list[Proof] = field(default_factory=list)
    selected_total: int = 0
    change: int = 0
    needs_swap: bool = False
    issue: str | None = None
    suggestion: str | None = None


@dataclass
class DefragResult:
    """Before/after statistics of a defragmentation swap."""

    previous_proof_count: int = 0
    new_proof_count: int = 0
    previous_balance: int = 0
    new_balance: int = 0

    @property
    def saved(self) -> int:
        return self.previous_proof_count - self.new_proof_count
