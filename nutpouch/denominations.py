"""Denomination analysis for Cashu proof sets.

Answers "can this wallet pay X without a swap?", "what would paying X cost
in change?" and "how healthy is the denomination mix?".
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .proofs import denomination_counts, sum_proofs
from .selectors import DEFAULT_MAX_SUBSET_SEARCH, SmallestFirst, find_exact_subset
from .types import Proof


# Standard Cashu denominations (powers of 2), ascending
STANDARD_DENOMINATIONS = [1, 2, 4, 8, 16, 32, 64, 128, 256, 512, 1024]

DEFAULT_COMMON_AMOUNTS = [1, 2, 3, 5, 10, 20, 50, 100]


@dataclass
class ExactPaymentAnalysis:
    can_pay_exact: bool
    exact_proofs: list[Proof] | None
    total_balance: int
    has_sufficient_balance: bool


@dataclass
class PaymentAnalysis:
    amount: int
    total_balance: int
    can_afford: bool
    can_pay_exact: bool = False
    selected_proofs: list[Proof] = field(default_factory=list)
    selected_total: int = 0
    change_amount: int = 0
    requires_swap: bool = False
    efficiency: float = 0.0  # 1.0 = no change produced


@dataclass
class DenominationHealth:
    total_balance: int
    proof_count: int
    denominations: list[int]
    denomination_counts: dict[int, int]
    average_proof_size: float
    smallest_denom: int | None
    largest_denom: int | None
    exact_payable_amounts: list[int]
    recommendations: list[str]
    score: int


def analyze_exact_payment(
    proofs: list[Proof],
    amount: int,
    *,
    max_subset_search: int = DEFAULT_MAX_SUBSET_SEARCH,
) -> ExactPaymentAnalysis:
    """Check whether ``amount`` can be paid with zero change.

    Example:
        >>> analysis = analyze_exact_payment(proofs, 11)
        >>> analysis.can_pay_exact, [p["amount"] for p in analysis.exact_proofs]
        (True, [1, 2, 8])
    """
    total_balance = sum_proofs(proofs)
    has_sufficient = total_balance >= amount

    if not has_sufficient or amount <= 0:
        return ExactPaymentAnalysis(
            can_pay_exact=False,
            exact_proofs=None,
            total_balance=total_balance,
            has_sufficient_balance=has_sufficient,
        )

    exact = find_exact_subset(proofs, amount, max_subset_search)
    return ExactPaymentAnalysis(
        can_pay_exact=exact is not None,
        exact_proofs=exact,
        total_balance=total_balance,
        has_sufficient_balance=True,
    )


def analyze_payment(
    proofs: list[Proof],
    amount: int,
    *,
    max_subset_search: int = DEFAULT_MAX_SUBSET_SEARCH,
) -> PaymentAnalysis:
    """Describe what paying ``amount`` would involve.

    An exact subset means no swap and efficiency 1.0. Otherwise the
    smallest-first selection is reported together with the change it
    produces and ``efficiency = amount / selected_total``.
    """
    total_balance = sum_proofs(proofs)
    can_afford = total_balance >= amount

    if not can_afford or amount <= 0:
        return PaymentAnalysis(
            amount=amount, total_balance=total_balance, can_afford=can_afford
        )

    exact = find_exact_subset(proofs, amount, max_subset_search)
    if exact is not None:
        return PaymentAnalysis(
            amount=amount,
            total_balance=total_balance,
            can_afford=True,
            can_pay_exact=True,
            selected_proofs=exact,
            selected_total=amount,
            change_amount=0,
            requires_swap=False,
            efficiency=1.0,
        )

    selected = SmallestFirst().select(proofs, amount) or []
    selected_total = sum_proofs(selected)
    return PaymentAnalysis(
        amount=amount,
        total_balance=total_balance,
        can_afford=True,
        can_pay_exact=False,
        selected_proofs=selected,
        selected_total=selected_total,
        change_amount=selected_total - amount,
        requires_swap=True,
        efficiency=amount / selected_total,
    )


def analyze_denomination_health(
    proofs: list[Proof],
    *,
    common_amounts: list[int] | None = None,
    max_subset_search: int = DEFAULT_MAX_SUBSET_SEARCH,
) -> DenominationHealth:
    """Score the wallet's denomination mix from 0 to 100.

    Penalties:
        -15 more than 3 proofs, all of one denomination
        -10 a proof above 100 alongside other balance
        -10 more than half of more than 10 proofs are tiny (<= 1)
        -5  more than 3 common amounts not payable exactly

    An empty wallet scores 0. Each penalty adds a recommendation.
    """
    if common_amounts is None:
        common_amounts = DEFAULT_COMMON_AMOUNTS

    total_balance = sum_proofs(proofs)
    proof_count = len(proofs)
    counts = denomination_counts(proofs)
    denominations = sorted(counts)

    smallest = denominations[0] if denominations else None
    largest = denominations[-1] if denominations else None
    average = total_balance / proof_count if proof_count else 0

    exact_payable = [
        amount
        for amount in common_amounts
        if amount <= total_balance
        and analyze_exact_payment(
            proofs, amount, max_subset_search=max_subset_search
        ).can_pay_exact
    ]

    recommendations: list[str] = []
    score = 100

    if len(denominations) == 1 and proof_count > 3:
        recommendations.append(
            f"All proofs are {denominations[0]} credits. "
            "Consider splitting some for more payment flexibility."
        )
        score -= 15

    if largest is not None and largest > 100 and total_balance > largest:
        recommendations.append(
            f"You have {counts[largest]} proof(s) of {largest} credits. "
            "Large proofs require swaps for small payments."
        )
        score -= 10

    tiny_count = sum(count for denom, count in counts.items() if denom <= 1)
    if tiny_count > proof_count * 0.5 and proof_count > 10:
        recommendations.append(
            f"{tiny_count} of {proof_count} proofs are tiny (<=1 credit). "
            "Consider consolidating."
        )
        score -= 10

    not_payable = [
        a for a in common_amounts if a <= total_balance and a not in exact_payable
    ]
    if len(not_payable) > 3:
        shown = ", ".join(str(a) for a in not_payable[:3])
        recommendations.append(
            f"Cannot pay common amounts ({shown}...) without swapping."
        )
        score -= 5

    if proof_count == 0:
        recommendations.append("Wallet is empty. Fund your wallet to make payments.")
        score = 0

    return DenominationHealth(
        total_balance=total_balance,
        proof_count=proof_count,
        denominations=denominations,
        denomination_counts=counts,
        average_proof_size=round(average, 2),
        smallest_denom=smallest,
        largest_denom=largest,
        exact_payable_amounts=exact_payable,
        recommendations=recommendations,
        score=max(0, score),
    )


def calculate_optimal_split(
    amount: int, available_denominations: list[int]
) -> dict[int, int]:
    """Greedy breakdown of ``amount`` into the given denominations.

    Any remainder the denominations cannot express is covered by one extra
    proof of the smallest denomination.

    Returns:
        Dict of denomination -> count (largest first)
    """
    denominations: dict[int, int] = {}
    remaining = amount

    for denom in sorted(available_denominations, reverse=True):
        if remaining >= denom:
            count = remaining // denom
            denominations[denom] = count
            remaining -= denom * count

    if remaining > 0 and available_denominations:
        smallest = min(available_denominations)
        denominations[smallest] = denominations.get(smallest, 0) + 1

    return denominations


def suggest_denominations(balance: int) -> dict[int, int]:
    """Ideal power-of-two breakdown of a balance, e.g. 25 -> {16: 1, 8: 1, 1: 1}."""
    if balance <= 0:
        return {}
    return calculate_optimal_split(balance, STANDARD_DENOMINATIONS)


def batch_check_exact_payments(
    proofs: list[Proof], amounts: list[int]
) -> dict[int, bool]:
    """Check several amounts for exact payability at once."""
    total_balance = sum_proofs(proofs)
    result: dict[int, bool] = {}
    for amount in amounts:
        if amount > total_balance:
            result[amount] = False
            continue
        result[amount] = analyze_exact_payment(proofs, amount).can_pay_exact
    return result
