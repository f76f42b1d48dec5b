"""Proof selection strategies.

Each strategy picks a subset of proofs covering a target amount. Strategies
never mutate their input and are deterministic, except ``RandomSelection``
whose randomness comes from an injectable ``random.Random``.
"""

from __future__ import annotations

import random
from typing import Callable, Protocol

from .types import Proof


DEFAULT_MAX_SUBSET_SEARCH = 50


class ProofSelector(Protocol):
    """Strategy interface for choosing which proofs to spend."""

    def select(self, proofs: list[Proof], amount: int) -> list[Proof] | None:
        """Return proofs covering ``amount`` or None if balance is insufficient."""
        ...


def _accumulate(ordered: list[Proof], amount: int) -> list[Proof] | None:
    selected: list[Proof] = []
    total = 0
    for proof in ordered:
        if total >= amount:
            break
        selected.append(proof)
        total += proof["amount"]

    if total < amount:
        return None
    return selected


class SmallestFirst:
    """Select smallest proofs first to minimize change."""

    def select(self, proofs: list[Proof], amount: int) -> list[Proof] | None:
        if amount <= 0:
            return []
        return _accumulate(sorted(proofs, key=lambda p: p["amount"]), amount)


class LargestFirst:
    """Select largest proofs first to minimize the number of inputs."""

    def select(self, proofs: list[Proof], amount: int) -> list[Proof] | None:
        if amount <= 0:
            return []
        return _accumulate(
            sorted(proofs, key=lambda p: p["amount"], reverse=True), amount
        )


class RandomSelection:
    """Select proofs in random order.

    Spending patterns become harder to analyze at the cost of more change.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.SystemRandom()

    def select(self, proofs: list[Proof], amount: int) -> list[Proof] | None:
        if amount <= 0:
            return []
        if sum(p["amount"] for p in proofs) < amount:
            return None

        shuffled = list(proofs)
        self._rng.shuffle(shuffled)
        return _accumulate(shuffled, amount)


class ExactMatch:
    """Prefer a subset summing exactly to the amount (no swap needed).

    Falls back to smallest-first when no exact subset exists, unless
    ``fallback`` is disabled.
    """

    def __init__(
        self,
        max_subset_search: int = DEFAULT_MAX_SUBSET_SEARCH,
        *,
        fallback: bool = True,
    ) -> None:
        self.max_subset_search = max_subset_search
        self.fallback = fallback

    def select(self, proofs: list[Proof], amount: int) -> list[Proof] | None:
        if amount <= 0:
            return []
        if sum(p["amount"] for p in proofs) < amount:
            return None

        exact = find_exact_subset(proofs, amount, self.max_subset_search)
        if exact is not None:
            return exact
        if not self.fallback:
            return None
        return SmallestFirst().select(proofs, amount)


def find_exact_subset(
    proofs: list[Proof],
    target: int,
    max_subset_search: int = DEFAULT_MAX_SUBSET_SEARCH,
) -> list[Proof] | None:
    """Find proofs summing exactly to ``target``.

    Tries a single proof, then a pair, then a bounded subset-sum search over
    the first ``max_subset_search`` proofs. Among equally valid answers the
    one found first in input order wins.

    Returns:
        The matching proofs, ``[]`` for a zero target, or None.
    """
    if target <= 0:
        return [] if target == 0 else None
    if not proofs:
        return None

    candidates = proofs[:max_subset_search]

    for proof in candidates:
        if proof["amount"] == target:
            return [proof]

    for i, first in enumerate(candidates):
        needed = target - first["amount"]
        if needed <= 0:
            continue
        for j, second in enumerate(candidates):
            if j != i and second["amount"] == needed:
                return [first, second]

    # reachable sum -> indices of the proofs producing it, in insertion order
    paths: dict[int, list[int]] = {0: []}
    for i, proof in enumerate(candidates):
        for reached, path in list(paths.items()):
            new_sum = reached + proof["amount"]
            if new_sum == target:
                return [candidates[idx] for idx in (*path, i)]
            if new_sum < target and new_sum not in paths:
                paths[new_sum] = [*path, i]

    return None


SELECTORS: dict[str, Callable[[], ProofSelector]] = {
    "smallest": SmallestFirst,
    "largest": LargestFirst,
    "exact": ExactMatch,
    "random": RandomSelection,
}


def get_selector(name: str) -> ProofSelector:
    """Instantiate a selection strategy by name."""
    try:
        factory = SELECTORS[name]
    except KeyError:
        raise ValueError(
            f"Unknown proof selector {name!r}. Choose one of: {', '.join(SELECTORS)}"
        ) from None
    return factory()
