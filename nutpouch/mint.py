"""
Cashu mint collaborators: the protocol contract the wallet consumes and a thin
HTTP client for the mint's public, non-cryptographic endpoints."""

from __future__ import annotations

import logging
from typing import Any, Protocol, TypedDict, cast

import httpx

from .crypto import proof_y
from .errors import MintError
from .types import CheckProofsResult, CurrencyUnit, MintQuote, Proof, SwapResult

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Collaborator contract
# ──────────────────────────────────────────────────────────────────────────────


class MintBackend(Protocol):
    """Everything the wallet needs from a Cashu mint.

    Implementations own the blinding, unblinding and DLEQ verification; the
    wallet only moves the resulting proofs around.
    """

    async def swap(self, amount: int, proofs: list[Proof]) -> SwapResult:
        """Exchange ``proofs`` for a ``send`` set worth ``amount`` plus change."""
        ...

    async def receive(self, token: str) -> list[Proof]:
        """Swap a token's proofs for fresh proofs owned by this wallet."""
        ...

    async def create_mint_quote(self, amount: int) -> MintQuote: ...

    async def check_mint_quote(self, quote_id: str) -> MintQuote: ...

    async def mint_proofs(self, amount: int, quote_id: str) -> list[Proof]: ...

    async def check_proof_state(
        self, mint_url: str, proofs: list[Proof]
    ) -> CheckProofsResult: ...


# ──────────────────────────────────────────────────────────────────────────────
# Mint API client
# ──────────────────────────────────────────────────────────────────────────────


class Mint:
    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        # Normalize URL by removing trailing slashes
        self.url = url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout

    async def aclose(self) -> None:
        """Close the HTTP client if we created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> Mint:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make HTTP request to mint."""
        logger.debug("%s request to %s%s", method, self.url, path)
        kwargs: dict[str, Any] = {"json": json, "params": params}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        response = await self.client.request(method, f"{self.url}{path}", **kwargs)

        if response.status_code >= 400:
            raise MintError(f"Mint returned {response.status_code}: {response.text}")

        return response.json()

    # ───────────────────────── Info & Keys ─────────────────────────────────

    async def get_info(self) -> MintInfo:
        """Get mint information."""
        return cast(MintInfo, await self._request("GET", "/v1/info"))

    async def get_keysets_info(self) -> list[KeysetInfo]:
        """Get all keysets the mint knows (active and inactive)."""
        response = await self._request("GET", "/v1/keysets")
        return cast(list[KeysetInfo], response.get("keysets", []))

    # ───────────────────────── Minting (receive) ─────────────────────────────────

    async def create_mint_quote(
        self, *, amount: int, unit: CurrencyUnit | str = "sat"
    ) -> PostMintQuoteResponse:
        """Request a Lightning invoice to mint tokens."""
        body: dict[str, Any] = {"unit": unit, "amount": amount}
        return cast(
            PostMintQuoteResponse,
            await self._request("POST", "/v1/mint/quote/bolt11", json=body),
        )

    async def get_mint_quote(self, quote_id: str) -> PostMintQuoteResponse:
        """Check status of a mint quote."""
        return cast(
            PostMintQuoteResponse,
            await self._request("GET", f"/v1/mint/quote/bolt11/{quote_id}"),
        )

    # ───────────────────────── Token Management ─────────────────────────────────

    async def check_state(self, *, Ys: list[str]) -> PostCheckStateResponse:
        """Check if proofs are spent or pending."""
        body: dict[str, Any] = {"Ys": Ys}
        return cast(
            PostCheckStateResponse,
            await self._request("POST", "/v1/checkstate", json=body),
        )


def quote_from_response(response: PostMintQuoteResponse, amount: int = 0) -> MintQuote:
    """Convert a NUT-04 quote response into the wallet's MintQuote."""
    return MintQuote(
        id=response["quote"],
        request=response["request"],
        amount=response.get("amount") or amount,
        expiry=response.get("expiry"),
        paid=response.get("state") in ("PAID", "ISSUED") or bool(response.get("paid")),
    )


async def check_proof_state(
    mint_url: str,
    proofs: list[Proof],
    *,
    client: httpx.AsyncClient | None = None,
    fail_open: bool = False,
) -> CheckProofsResult:
    """Partition proofs into unspent and spent using the mint's checkstate.

    Proofs reported PENDING, or missing from the response, count as spent.

    Args:
        mint_url: Mint to ask
        proofs: Proofs to check
        client: Optional HTTP client to reuse
        fail_open: On mint/network errors treat every proof as valid
            instead of raising

    Raises:
        MintError: If the mint cannot be queried and ``fail_open`` is False
    """
    if not proofs:
        return CheckProofsResult(valid=[], spent=[])

    ys = [proof_y(p) for p in proofs]
    mint = Mint(mint_url, client=client)
    try:
        response = await mint.check_state(Ys=ys)
    except (MintError, httpx.HTTPError, ValueError) as e:
        if fail_open:
            logger.warning("checkstate failed, assuming all proofs valid: %s", e)
            return CheckProofsResult(valid=list(proofs), spent=[])
        if isinstance(e, MintError):
            raise
        raise MintError(f"Checkstate failed: {e}") from e
    finally:
        await mint.aclose()

    state_by_y = {s.get("Y"): s.get("state") for s in response.get("states", [])}

    valid: list[Proof] = []
    spent: list[Proof] = []
    for proof, y in zip(proofs, ys):
        if state_by_y.get(y) == "UNSPENT":
            valid.append(proof)
        else:
            spent.append(proof)
    return CheckProofsResult(valid=valid, spent=spent)


def validate_mint_url(url: str) -> bool:
    """Validate that a mint URL has the correct format.

    Args:
        url: Mint URL to validate

    Returns:
        True if URL appears valid, False otherwise
    """
    if not url:
        return False

    # Basic URL validation - should start with http:// or https://
    if not (url.startswith("http://") or url.startswith("https://")):
        return False

    # Should not end with slash for consistency
    if url.endswith("/"):
        return False

    return True


# ──────────────────────────────────────────────────────────────────────────────
# Type definitions based on NUT-01 and OpenAPI spec
# ──────────────────────────────────────────────────────────────────────────────


class MintInfo(TypedDict, total=False):
    """Mint information response."""

    name: str
    pubkey: str
    version: str
    description: str
    contact: list[dict[str, str]]
    motd: str
    nuts: dict[str, dict[str, Any]]


class KeysetInfoRequired(TypedDict):
    """Required fields for keyset information."""

    id: str
    unit: CurrencyUnit
    active: bool


class KeysetInfoOptional(TypedDict, total=False):
    """Optional fields for keyset information."""

    input_fee_ppk: int  # input fee in parts per thousand


class KeysetInfo(KeysetInfoRequired, KeysetInfoOptional):
    """Extended keyset information for /v1/keysets endpoint."""

    pass


class PostMintQuoteResponse(TypedDict, total=False):
    """Mint quote response."""

    quote: str  # quote id
    request: str  # bolt11 invoice
    amount: int
    unit: CurrencyUnit
    state: str  # "UNPAID", "PAID", "ISSUED"
    expiry: int
    paid: bool


class PostCheckStateResponse(TypedDict):
    """Check state response."""

    states: list[dict[str, str]]  # [{"Y": ..., "state": ...}]
