"""Shared fixtures for the unit tests."""

import asyncio
import itertools
from typing import Callable

import pytest

from nutpouch.types import CheckProofsResult, MintQuote, Proof, SwapResult

MINT_URL = "https://mint.test"
KEYSET_ID = "00ad268c4d1f5826"

_counter = itertools.count()


def new_proof(amount: int, secret: str | None = None, keyset_id: str = KEYSET_ID) -> Proof:
    n = next(_counter)
    return Proof(
        id=keyset_id,
        amount=amount,
        secret=secret or f"secret-{n}",
        C=f"02{n:064x}",
    )


def split_amount(amount: int) -> list[int]:
    """Power-of-two breakdown, largest first."""
    parts = []
    bit = 1 << max(amount.bit_length() - 1, 0)
    while amount:
        if amount >= bit:
            parts.append(bit)
            amount -= bit
        bit >>= 1
    return parts


class FakeMint:
    """In-memory mint backend returning freshly numbered proofs."""

    def __init__(self) -> None:
        self.swap_calls: list[tuple[int, list[Proof]]] = []
        self.swap_error: Exception | None = None
        self.receive_error: Exception | None = None
        self.received: list[Proof] = []
        self.spent_secrets: set[str] = set()
        self.quotes: dict[str, MintQuote] = {}

    async def swap(self, amount: int, proofs: list[Proof]) -> SwapResult:
        self.swap_calls.append((amount, list(proofs)))
        await asyncio.sleep(0)
        if self.swap_error is not None:
            raise self.swap_error
        total = sum(p["amount"] for p in proofs)
        return SwapResult(
            send=[new_proof(a) for a in split_amount(amount)],
            keep=[new_proof(a) for a in split_amount(total - amount)],
        )

    async def receive(self, token: str) -> list[Proof]:
        await asyncio.sleep(0)
        if self.receive_error is not None:
            raise self.receive_error
        return list(self.received)

    async def create_mint_quote(self, amount: int) -> MintQuote:
        quote = MintQuote(id=f"quote-{len(self.quotes)}", request="lnbc1...", amount=amount)
        self.quotes[quote.id] = quote
        return quote

    async def check_mint_quote(self, quote_id: str) -> MintQuote:
        quote = self.quotes[quote_id]
        quote.paid = True
        return quote

    async def mint_proofs(self, amount: int, quote_id: str) -> list[Proof]:
        return [new_proof(a) for a in split_amount(amount)]

    async def check_proof_state(self, mint_url: str, proofs: list[Proof]) -> CheckProofsResult:
        return CheckProofsResult(
            valid=[p for p in proofs if p["secret"] not in self.spent_secrets],
            spent=[p for p in proofs if p["secret"] in self.spent_secrets],
        )


@pytest.fixture
def make_proof() -> Callable[..., Proof]:
    return new_proof


@pytest.fixture
def make_proofs() -> Callable[[list[int]], list[Proof]]:
    def _make(amounts: list[int]) -> list[Proof]:
        return [new_proof(a) for a in amounts]

    return _make


@pytest.fixture
def fake_mint() -> FakeMint:
    return FakeMint()
