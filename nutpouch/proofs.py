"""In-memory proof store and inspection helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Literal

from .types import Proof


def sum_proofs(proofs: Iterable[Proof]) -> int:
    return sum(p["amount"] for p in proofs)


class ProofStore:
    """Collection of proofs held by one wallet.

    The proofs live in an immutable tuple that is swapped out wholesale, so a
    snapshot taken by a reader never changes under it. ``balance`` is always
    recomputed from the proofs.
    """

    def __init__(self, proofs: Iterable[Proof] = ()) -> None:
        self._proofs: tuple[Proof, ...] = ()
        self.replace(proofs)

    @property
    def balance(self) -> int:
        return sum_proofs(self._proofs)

    @property
    def proofs(self) -> list[Proof]:
        return list(self._proofs)

    @property
    def count(self) -> int:
        return len(self._proofs)

    def snapshot(self) -> tuple[Proof, ...]:
        return self._proofs

    def contains(self, secret: str) -> bool:
        return any(p["secret"] == secret for p in self._proofs)

    def without(self, proofs: Iterable[Proof]) -> list[Proof]:
        """Proofs that would remain after removing ``proofs`` (by secret)."""
        remove = {p["secret"] for p in proofs}
        return [p for p in self._proofs if p["secret"] not in remove]

    def with_added(
        self, proofs: Iterable[Proof], base: Iterable[Proof] | None = None
    ) -> list[Proof]:
        """Proofs after appending ``proofs`` to ``base`` (default: current)."""
        combined = list(self._proofs if base is None else base)
        combined.extend(proofs)
        _validate(combined)
        return combined

    def replace(self, proofs: Iterable[Proof]) -> None:
        new_proofs = tuple(proofs)
        _validate(new_proofs)
        self._proofs = new_proofs

    def __len__(self) -> int:
        return len(self._proofs)


def _validate(proofs: Iterable[Proof]) -> None:
    seen: set[str] = set()
    for proof in proofs:
        if proof["amount"] <= 0:
            raise ValueError(f"Proof amount must be positive, got {proof['amount']}")
        if proof["secret"] in seen:
            raise ValueError("Duplicate proof secret in wallet")
        seen.add(proof["secret"])


# ───────────────────────── Inspection ─────────────────────────────────


def get_denominations(proofs: Iterable[Proof]) -> list[int]:
    """Unique amounts present, ascending."""
    return sorted({p["amount"] for p in proofs})


def denomination_counts(proofs: Iterable[Proof]) -> dict[int, int]:
    counts: dict[int, int] = {}
    for proof in proofs:
        counts[proof["amount"]] = counts.get(proof["amount"], 0) + 1
    return counts


def group_by_keyset(proofs: Iterable[Proof]) -> dict[str, list[Proof]]:
    grouped: dict[str, list[Proof]] = {}
    for proof in proofs:
        grouped.setdefault(proof["id"], []).append(proof)
    return grouped


@dataclass
class KeysetSummary:
    proof_count: int = 0
    balance: int = 0
    amounts: list[int] = field(default_factory=list)


@dataclass
class ProofSummary:
    total_proofs: int
    total_balance: int
    by_keyset: dict[str, KeysetSummary]
    by_amount: dict[int, int]


def summarize_proofs(proofs: list[Proof]) -> ProofSummary:
    """Break down proofs by keyset and by denomination."""
    by_keyset: dict[str, KeysetSummary] = {}
    for proof in proofs:
        summary = by_keyset.setdefault(proof["id"], KeysetSummary())
        summary.proof_count += 1
        summary.balance += proof["amount"]
        summary.amounts.append(proof["amount"])

    for summary in by_keyset.values():
        summary.amounts.sort()

    return ProofSummary(
        total_proofs=len(proofs),
        total_balance=sum_proofs(proofs),
        by_keyset=by_keyset,
        by_amount=denomination_counts(proofs),
    )


def describe_proof(proof: Proof) -> str:
    """Human-readable proof, e.g. ``5 credits (keyset: 00ad82d4)``."""
    return f"{proof['amount']} credits (keyset: {proof['id'][:8]})"


def can_cover_amount(proofs: Iterable[Proof], amount: int) -> bool:
    return sum_proofs(proofs) >= amount


def calculate_change(proofs: Iterable[Proof], amount: int) -> int:
    """Change left after paying ``amount`` (negative if insufficient)."""
    return sum_proofs(proofs) - amount


def format_balance(amount: float, *, unit: str | None = None, decimals: int = 0) -> str:
    formatted = f"{amount:,.{decimals}f}"
    return f"{formatted} {unit}" if unit else formatted


# ───────────────────────── Defragmentation ─────────────────────────────────

DefragRecommendation = Literal["none", "low", "recommended", "urgent"]

DEFAULT_TARGET_DENOMINATIONS = [1, 2, 4, 8, 16, 32, 64]


@dataclass
class DefragStats:
    proof_count: int
    balance: int
    average_proof_size: float
    fragmentation: float  # 0 = optimal, 1 = very fragmented
    small_proof_count: int
    recommendation: DefragRecommendation
    estimated_new_proof_count: int


def get_defrag_stats(
    proofs: list[Proof],
    *,
    small_threshold: int = 4,
    target_denominations: list[int] | None = None,
) -> DefragStats:
    """Measure how fragmented a proof set is and whether to consolidate it.

    Fragmentation grows as repeated change operations leave behind many
    small proofs; more proofs mean more inputs to select and swap.

    Args:
        proofs: Current wallet proofs
        small_threshold: Proofs below this amount count as "small"
        target_denominations: Denominations of an optimal proof set

    Returns:
        DefragStats with a recommendation of none/low/recommended/urgent
    """
    if not proofs:
        return DefragStats(
            proof_count=0,
            balance=0,
            average_proof_size=0,
            fragmentation=0,
            small_proof_count=0,
            recommendation="none",
            estimated_new_proof_count=0,
        )

    denominations = target_denominations or DEFAULT_TARGET_DENOMINATIONS
    balance = sum_proofs(proofs)
    proof_count = len(proofs)
    small_count = sum(1 for p in proofs if p["amount"] < small_threshold)
    optimal = _optimal_proof_count(balance, denominations)

    fragmentation = min(1.0, max(0.0, (proof_count - optimal) / max(proof_count, 1)))

    recommendation: DefragRecommendation = "none"
    if proof_count <= 3:
        recommendation = "none"
    elif fragmentation > 0.7 or small_count > 10:
        recommendation = "urgent"
    elif fragmentation > 0.5 or small_count > 5:
        recommendation = "recommended"
    elif fragmentation > 0.3 or small_count > 2:
        recommendation = "low"

    return DefragStats(
        proof_count=proof_count,
        balance=balance,
        average_proof_size=balance / proof_count,
        fragmentation=fragmentation,
        small_proof_count=small_count,
        recommendation=recommendation,
        estimated_new_proof_count=optimal,
    )


def needs_defragmentation(proofs: list[Proof], **options) -> bool:
    stats = get_defrag_stats(proofs, **options)
    return stats.recommendation in ("recommended", "urgent")


def _optimal_proof_count(balance: int, denominations: list[int]) -> int:
    if balance <= 0:
        return 0

    remaining = balance
    count = 0
    for denom in sorted(denominations, reverse=True):
        if remaining >= denom:
            count += remaining // denom
            remaining %= denom

    if remaining > 0:
        count += math.ceil(math.log2(remaining + 1))

    return max(1, count)
