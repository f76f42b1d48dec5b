"""Wallet health check: mint connectivity plus proof state, folded into a score."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Literal

import httpx

from .errors import MintError
from .mint import Mint, check_proof_state
from .proofs import group_by_keyset, sum_proofs
from .types import CheckProofsResult, Proof

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_MS = 5000
QUICK_TIMEOUT_MS = 3000
HIGH_LATENCY_MS = 2000
HEALTHY_SCORE = 70

ProofStatus = Literal["valid", "spent", "pending", "unknown"]
ProofStateChecker = Callable[[str, list[Proof]], Awaitable[CheckProofsResult]]


@dataclass
class MintStatus:
    url: str
    reachable: bool
    latency_ms: int | None = None
    error: str | None = None
    keysets: list[str] | None = None  # None when the mint didn't report them


@dataclass
class ProofHealth:
    proof: Proof
    status: ProofStatus


@dataclass
class ProofStats:
    total: int = 0
    valid: int = 0
    spent: int = 0
    pending: int = 0
    unknown: int = 0
    valid_balance: int = 0
    at_risk_balance: int = 0  # amount held in spent proofs


@dataclass
class WalletHealth:
    checked_at: datetime
    mint: MintStatus
    score: int
    issues: list[str]
    proofs: ProofStats
    details: list[ProofHealth] | None = None


@dataclass
class QuickHealth:
    score: int
    healthy: bool
    top_issue: str | None = None


async def check_mint_connectivity(
    mint_url: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    *,
    client: httpx.AsyncClient | None = None,
) -> MintStatus:
    """Probe ``/v1/info`` for reachability and latency, then list keysets.

    Never raises: any failure is reported through ``reachable``/``error``.
    """
    url = mint_url.rstrip("/")
    mint = Mint(url, client=client, timeout=timeout_ms / 1000)
    started = time.monotonic()
    try:
        try:
            await mint.get_info()
        except Exception as e:
            latency_ms = int((time.monotonic() - started) * 1000)
            logger.debug("Mint %s unreachable: %s", url, e)
            return MintStatus(
                url=mint_url,
                reachable=False,
                latency_ms=latency_ms if isinstance(e, MintError) else None,
                error=str(e) or type(e).__name__,
            )
        latency_ms = int((time.monotonic() - started) * 1000)

        keysets: list[str] | None
        try:
            keysets = [k["id"] for k in await mint.get_keysets_info()]
        except Exception as e:
            logger.debug("Could not list keysets of %s: %s", url, e)
            keysets = None

        return MintStatus(
            url=mint_url, reachable=True, latency_ms=latency_ms, keysets=keysets
        )
    finally:
        await mint.aclose()


async def check_wallet_health(
    mint_url: str,
    proofs: list[Proof],
    *,
    include_details: bool = False,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    skip_proof_check: bool = False,
    proof_state_checker: ProofStateChecker | None = None,
    client: httpx.AsyncClient | None = None,
) -> WalletHealth:
    """Score the wallet's health from 0 to 100.

    Penalties, applied in order and each recorded as an issue:
        -40 mint unreachable
        -10 mint latency above 2000 ms
        -30 / -15 / -5 more than 50% / more than 10% / some proofs spent
        -15 proofs from keysets the mint doesn't list
        -20 the proof state check itself failed

    An empty wallet is reported as an issue without a penalty. Mint and
    network errors never propagate; they lower the score instead.

    Args:
        mint_url: Mint the proofs belong to
        proofs: Proofs to check
        include_details: Add a per-proof status list
        timeout_ms: Connectivity probe timeout
        skip_proof_check: Only probe connectivity
        proof_state_checker: Replacement for the mint checkstate call
        client: Optional HTTP client to reuse
    """
    checked_at = datetime.now(timezone.utc)
    issues: list[str] = []
    score = 100

    mint = await check_mint_connectivity(mint_url, timeout_ms, client=client)

    if not mint.reachable:
        issues.append(f"Mint unreachable: {mint.error or 'connection failed'}")
        score -= 40
    elif mint.latency_ms is not None and mint.latency_ms > HIGH_LATENCY_MS:
        issues.append(f"Mint latency high: {mint.latency_ms}ms")
        score -= 10

    stats = ProofStats(total=len(proofs))
    details: list[ProofHealth] = []

    if skip_proof_check:
        stats.unknown = len(proofs)
        details = [ProofHealth(proof=p, status="unknown") for p in proofs]
    elif not proofs:
        issues.append("Wallet is empty")
    elif mint.reachable:
        try:
            if proof_state_checker is not None:
                result = await proof_state_checker(mint_url, proofs)
            else:
                result = await check_proof_state(mint_url, proofs, client=client)
        except Exception as e:
            logger.warning("Proof state check against %s failed: %s", mint_url, e)
            stats.unknown = len(proofs)
            issues.append(f"Proof check failed: {e or type(e).__name__}")
            score -= 20
            details = [ProofHealth(proof=p, status="unknown") for p in proofs]
        else:
            stats.valid = len(result.valid)
            stats.spent = len(result.spent)
            stats.valid_balance = sum_proofs(result.valid)
            stats.at_risk_balance = sum_proofs(result.spent)
            details = [ProofHealth(proof=p, status="valid") for p in result.valid]
            details += [ProofHealth(proof=p, status="spent") for p in result.spent]

            spent_ratio = stats.spent / len(proofs)
            if spent_ratio > 0.5:
                issues.append(f"{round(spent_ratio * 100)}% of proofs are spent")
                score -= 30
            elif spent_ratio > 0.1:
                issues.append(f"{stats.spent} proofs are spent")
                score -= 15
            elif stats.spent > 0:
                issues.append(f"{stats.spent} spent proof(s) found")
                score -= 5
    else:
        stats.unknown = len(proofs)
        details = [ProofHealth(proof=p, status="unknown") for p in proofs]

    if mint.keysets is not None and proofs:
        unknown_keysets = [k for k in group_by_keyset(proofs) if k not in mint.keysets]
        if unknown_keysets:
            issues.append(f"{len(unknown_keysets)} keyset(s) not recognized by mint")
            score -= 15

    return WalletHealth(
        checked_at=checked_at,
        mint=mint,
        score=max(0, score),
        issues=issues,
        proofs=stats,
        details=details if include_details else None,
    )


async def quick_health_check(
    mint_url: str,
    proofs: list[Proof],
    *,
    proof_state_checker: ProofStateChecker | None = None,
    client: httpx.AsyncClient | None = None,
) -> QuickHealth:
    """Shorter-timeout health check returning only the score and top issue."""
    health = await check_wallet_health(
        mint_url,
        proofs,
        timeout_ms=QUICK_TIMEOUT_MS,
        proof_state_checker=proof_state_checker,
        client=client,
    )
    return QuickHealth(
        score=health.score,
        healthy=health.score >= HEALTHY_SCORE,
        top_issue=health.issues[0] if health.issues else None,
    )
