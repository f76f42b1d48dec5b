from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, TypeVar

from .denominations import (
    DenominationHealth,
    PaymentAnalysis,
    analyze_denomination_health,
    analyze_payment,
)
from .errors import ErrorCode, WalletError, generate_suggestion
from .events import EventBus, Handler, WalletEventType
from .health import WalletHealth, check_wallet_health
from .history import TransactionRecord, TransactionStore, TransactionType
from .mint import MintBackend, check_proof_state
from .mutex import Mutex
from .proofs import (
    DefragStats,
    ProofStore,
    denomination_counts,
    get_defrag_stats,
    get_denominations,
    needs_defragmentation,
    sum_proofs,
)
from .selectors import ProofSelector, SmallestFirst
from .storage import StorageAdapter
from .token import CashuTokenCodec, TokenCodec
from .types import CheckProofsResult, DefragResult, MintQuote, Proof, TokenPreview

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ──────────────────────────────────────────────────────────────────────────────
# Wallet implementation
# ──────────────────────────────────────────────────────────────────────────────


class Wallet:
    """Stateful Cashu wallet for a single mint.

    Holds the proof set in memory, persists it through a ``StorageAdapter``
    and serializes every mutation through a FIFO mutex. The Cashu
    cryptography (swaps, minting) is delegated to a ``MintBackend``.

    Every mutation computes the new proof set first, saves it, and only then
    replaces the in-memory set, so a failing mint or storage call leaves the
    wallet exactly as it was.

    Example:
        wallet = Wallet("https://mint.example.com", JSONFileStorage("proofs.json"),
                        mint=backend)
        await wallet.load()
        token = await wallet.create_token(5)
    """

    def __init__(
        self,
        mint_url: str,
        storage: StorageAdapter,
        *,
        mint: MintBackend | None = None,
        selector: ProofSelector | None = None,
        codec: TokenCodec | None = None,
        unit: str = "usd",
        history: TransactionStore | None = None,
    ) -> None:
        self._mint_url = mint_url.rstrip("/")
        self._storage = storage
        self._backend = mint
        self._selector = selector or SmallestFirst()
        self._codec = codec or CashuTokenCodec()
        self._unit = unit
        self._history = history

        self._store = ProofStore()
        self._mutex = Mutex()
        self._events = EventBus()
        self._loaded = False

        logger.debug("Wallet initialized for %s (unit=%s)", self._mint_url, unit)

    # ───────────────────────── State ─────────────────────────────────

    @property
    def balance(self) -> int:
        return self._store.balance

    @property
    def proofs(self) -> list[Proof]:
        """Copy of the current proofs."""
        return self._store.proofs

    @property
    def mint_url(self) -> str:
        return self._mint_url

    @property
    def unit(self) -> str:
        return self._unit

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def storage(self) -> StorageAdapter:
        return self._storage

    @property
    def history(self) -> TransactionStore | None:
        return self._history

    @property
    def events(self) -> EventBus:
        return self._events

    def on(self, event: WalletEventType, handler: Handler) -> Callable[[], None]:
        """Subscribe to a wallet event; returns an unsubscribe callable."""
        return self._events.on(event, handler)

    def off(self, event: WalletEventType, handler: Handler) -> None:
        self._events.off(event, handler)

    # ───────────────────────── Persistence ─────────────────────────────────

    async def load(self) -> None:
        """Load proofs from storage. Call once before using the wallet."""
        await self._exclusive(self._load)

    async def _load(self) -> None:
        logger.debug("Loading wallet from %r", self._storage)
        try:
            loaded = await self._storage.load()
            self._store.replace(loaded)
        except Exception as e:
            raise self._error(
                f"Failed to load wallet: {e}", "STORAGE_ERROR"
            ) from e

        self._loaded = True
        logger.info(
            "Wallet loaded: %d proofs, balance %d", self._store.count, self.balance
        )
        self._notify()

    async def save(self) -> None:
        """Write the current proofs to storage."""
        await self._exclusive(self._save)

    async def _save(self) -> None:
        await self._persist(self._store.proofs)

    async def clear(self) -> None:
        """Remove every proof from the wallet and from storage."""
        await self._exclusive(self._clear)

    async def _clear(self) -> None:
        logger.info("Clearing wallet (previous balance %d)", self.balance)
        try:
            await self._storage.clear()
        except Exception as e:
            raise self._error(f"Failed to clear storage: {e}", "STORAGE_ERROR") from e
        self._commit([])

    # ───────────────────────── Token Operations ─────────────────────────────────

    def preview_token(self, amount: int) -> TokenPreview:
        """Dry run of ``create_token``: what would be selected, and any issue.

        Never changes state or talks to the mint.
        """
        proofs = list(self._store.snapshot())
        balance = sum_proofs(proofs)
        preview = TokenPreview(
            can_create=False,
            amount=amount,
            available_balance=balance,
            available_denominations=get_denominations(proofs),
            denomination_counts=denomination_counts(proofs),
        )

        code: ErrorCode | None = None
        if amount <= 0:
            code, preview.issue = "INVALID_AMOUNT", "Amount must be positive"
        elif balance < amount:
            code = "INSUFFICIENT_BALANCE"
            preview.issue = f"Insufficient balance: need {amount}, have {balance}"
        else:
            selected = self._selector.select(proofs, amount)
            if selected is None:
                code = "SELECTION_FAILED"
                preview.issue = f"Could not select proofs for amount {amount}"
            else:
                preview.can_create = True
                preview.selected_proofs = list(selected)
                preview.selected_total = sum_proofs(selected)
                preview.change = preview.selected_total - amount
                preview.needs_swap = preview.selected_total != amount

        if code is not None:
            preview.suggestion = generate_suggestion(
                code,
                requested_amount=amount,
                available_balance=balance,
                available_denominations=preview.available_denominations,
            )
        return preview

    async def create_token(self, amount: int, *, memo: str | None = None) -> str:
        """Create an encoded token worth exactly ``amount``.

        Proofs that add up to ``amount`` exactly are handed over as they are.
        Otherwise the selected proofs are swapped with the mint for an exact
        send set and the change is kept.

        Args:
            amount: Amount in the wallet's unit
            memo: Optional memo embedded in the token

        Returns:
            Encoded token string

        Raises:
            WalletError: INVALID_AMOUNT, INSUFFICIENT_BALANCE, SELECTION_FAILED,
                SWAP_FAILED, MINT_ERROR, STORAGE_ERROR or WALLET_NOT_LOADED
        """
        return await self._exclusive(self._create_token, amount, memo)

    async def _create_token(self, amount: int, memo: str | None) -> str:
        logger.info("Creating token for %d (balance %d)", amount, self.balance)
        self._require_loaded(amount)

        proofs = self._store.proofs
        if amount <= 0:
            raise self._error(
                "Amount must be positive", "INVALID_AMOUNT", amount=amount
            )
        if self.balance < amount:
            raise self._error(
                f"Insufficient balance: need {amount}, have {self.balance}",
                "INSUFFICIENT_BALANCE",
                amount=amount,
            )

        selected = self._selector.select(proofs, amount)
        if selected is None:
            raise self._error(
                f"Could not select proofs for amount {amount}",
                "SELECTION_FAILED",
                amount=amount,
            )

        selected_total = sum_proofs(selected)
        logger.debug(
            "Selected %d proofs %s totalling %d",
            len(selected),
            [p["amount"] for p in selected],
            selected_total,
        )

        if selected_total == amount:
            send = selected
            remaining = self._store.without(selected)
            swapped = False
        else:
            backend = self._require_backend(amount)
            logger.debug("Swapping %d for exact amount %d", selected_total, amount)
            try:
                result = await backend.swap(amount, selected)
                remaining = self._store.with_added(
                    result.keep, base=self._store.without(selected)
                )
            except WalletError:
                raise
            except Exception as e:
                raise self._error(
                    f"Swap for {amount} failed: {e}",
                    "SWAP_FAILED",
                    amount=amount,
                    selected_proofs=selected,
                    selected_total=selected_total,
                ) from e
            send = result.send
            swapped = True
            logger.debug(
                "Swap result: send %s, keep %s",
                [p["amount"] for p in result.send],
                [p["amount"] for p in result.keep],
            )
            if sum_proofs(send) != amount:
                logger.warning(
                    "Mint returned %d in send proofs, requested %d",
                    sum_proofs(send),
                    amount,
                )

        token = self._codec.encode(self._mint_url, send, self._unit, memo)

        await self._persist(remaining)
        self._commit(remaining)
        self._record(
            "send",
            -amount,
            memo=memo,
            metadata={"swapped": swapped, "proof_count": len(send)},
        )
        logger.info("Token created for %d (balance %d)", amount, self.balance)
        return token

    async def receive_token(self, token: str) -> int:
        """Redeem a token into this wallet.

        The token's proofs are always swapped with the mint for fresh ones
        so the sender can't spend them again.

        Returns:
            Amount received

        Raises:
            WalletError: MINT_MISMATCH, EMPTY_TOKEN, SWAP_FAILED, MINT_ERROR,
                STORAGE_ERROR or WALLET_NOT_LOADED
        """
        return await self._exclusive(self._receive_token, token)

    async def receive_change(self, token: str) -> int:
        """Same as ``receive_token``, for change handed back by a service."""
        return await self.receive_token(token)

    async def _receive_token(self, token: str) -> int:
        logger.info("Receiving token %s...", token[:20])
        self._require_loaded()

        try:
            decoded = self._codec.decode(token)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise self._error(f"Invalid token: {e}", "EMPTY_TOKEN") from e

        token_mint = (decoded.mint or "").rstrip("/")
        if token_mint and token_mint != self._mint_url:
            raise self._error(
                f"Token is for different mint: {decoded.mint}", "MINT_MISMATCH"
            )
        if not decoded.proofs:
            raise self._error("Token contains no proofs", "EMPTY_TOKEN")

        backend = self._require_backend()
        try:
            received = await backend.receive(token)
        except WalletError:
            raise
        except Exception as e:
            raise self._error(
                f"Failed to swap received proofs: {e}",
                "SWAP_FAILED",
                amount=decoded.amount,
            ) from e

        new_proofs = self._unseen(received)
        try:
            updated = self._store.with_added(new_proofs)
        except ValueError as e:
            raise self._error(
                f"Mint returned invalid proofs: {e}", "SWAP_FAILED"
            ) from e

        await self._persist(updated)
        self._commit(updated)

        amount = sum_proofs(new_proofs)
        self._record("receive", amount, memo=decoded.memo, metadata={"mint": token_mint})
        logger.info("Token received: %d (balance %d)", amount, self.balance)
        return amount

    # ───────────────────────── Proof Management ─────────────────────────────────

    async def add_proofs(self, proofs: list[Proof]) -> None:
        """Add proofs directly. Use ``receive_token`` for tokens from others."""
        await self._exclusive(self._add_proofs, proofs)

    async def _add_proofs(self, proofs: list[Proof]) -> None:
        self._require_loaded()
        for proof in proofs:
            if proof["amount"] <= 0:
                raise self._error(
                    f"Proof amount must be positive, got {proof['amount']}",
                    "INVALID_AMOUNT",
                )
        updated = self._store.with_added(self._unseen(proofs))
        await self._persist(updated)
        self._commit(updated)

    async def remove_proofs(self, proofs: list[Proof]) -> None:
        """Remove proofs (matched by secret) from the wallet."""
        await self._exclusive(self._remove_proofs, proofs)

    async def _remove_proofs(self, proofs: list[Proof]) -> None:
        self._require_loaded()
        updated = self._store.without(proofs)
        await self._persist(updated)
        self._commit(updated)

    async def check_proofs(self) -> CheckProofsResult:
        """Ask the mint which of the current proofs are still unspent."""
        return await self._check_proof_state(list(self._store.snapshot()))

    async def prune_spent(self) -> int:
        """Drop proofs the mint reports as spent.

        Returns:
            Number of proofs removed
        """
        return await self._exclusive(self._prune_spent)

    async def _prune_spent(self) -> int:
        self._require_loaded()
        result = await self._check_proof_state(self._store.proofs)
        if not result.spent:
            return 0

        updated = self._store.without(result.spent)
        await self._persist(updated)
        self._commit(updated)
        logger.info("Pruned %d spent proofs", len(result.spent))
        return len(result.spent)

    # ───────────────────────── Defragmentation ─────────────────────────────────

    def get_defrag_stats(self, **options: Any) -> DefragStats:
        return get_defrag_stats(self._store.proofs, **options)

    def needs_defragmentation(self, **options: Any) -> bool:
        return needs_defragmentation(self._store.proofs, **options)

    async def defragment(self) -> DefragResult:
        """Swap the whole balance with the mint for a minimal set of proofs.

        Returns zeroed statistics for an empty wallet. On failure the
        previous proofs are kept.
        """
        return await self._exclusive(self._defragment)

    async def _defragment(self) -> DefragResult:
        self._require_loaded()
        proofs = self._store.proofs
        if not proofs:
            logger.info("Defragment: no proofs to defragment")
            return DefragResult()

        previous_balance = sum_proofs(proofs)
        logger.info(
            "Starting defragmentation of %d proofs (balance %d)",
            len(proofs),
            previous_balance,
        )

        backend = self._require_backend(previous_balance)
        try:
            result = await backend.swap(previous_balance, proofs)
            new_proofs = self._store.with_added(
                list(result.send) + list(result.keep), base=[]
            )
        except WalletError:
            raise
        except Exception as e:
            raise self._error(
                f"Defragmentation failed: {e}",
                "SWAP_FAILED",
                amount=previous_balance,
            ) from e

        await self._persist(new_proofs)
        self._commit(new_proofs)

        stats = DefragResult(
            previous_proof_count=len(proofs),
            new_proof_count=len(new_proofs),
            previous_balance=previous_balance,
            new_balance=sum_proofs(new_proofs),
        )
        self._record(
            "swap",
            stats.new_balance - stats.previous_balance,
            memo="defragment",
            metadata={
                "previous_proof_count": stats.previous_proof_count,
                "new_proof_count": stats.new_proof_count,
            },
        )
        logger.info(
            "Defragmentation complete: %d -> %d proofs",
            stats.previous_proof_count,
            stats.new_proof_count,
        )
        return stats

    # ───────────────────────── Minting (NUT-04) ─────────────────────────────────

    async def create_mint_quote(self, amount: int) -> MintQuote:
        """Request a Lightning invoice for funding the wallet."""
        if amount <= 0:
            raise self._error("Amount must be positive", "INVALID_AMOUNT", amount=amount)
        backend = self._require_backend(amount)
        return await self._call_mint(backend.create_mint_quote, amount)

    async def check_mint_quote(self, quote_id: str) -> MintQuote:
        backend = self._require_backend()
        return await self._call_mint(backend.check_mint_quote, quote_id)

    async def mint_tokens(self, quote: MintQuote | str) -> int:
        """Mint proofs for a paid quote and add them to the wallet.

        Args:
            quote: Quote object or quote id (looked up for its amount)

        Returns:
            Amount minted
        """
        return await self._exclusive(self._mint_tokens, quote)

    async def _mint_tokens(self, quote: MintQuote | str) -> int:
        self._require_loaded()
        backend = self._require_backend()
        if isinstance(quote, str):
            quote = await self._call_mint(backend.check_mint_quote, quote)

        minted = await self._call_mint(backend.mint_proofs, quote.amount, quote.id)
        new_proofs = self._unseen(minted)
        try:
            updated = self._store.with_added(new_proofs)
        except ValueError as e:
            raise self._error(f"Mint returned invalid proofs: {e}", "MINT_ERROR") from e

        await self._persist(updated)
        self._commit(updated)

        amount = sum_proofs(new_proofs)
        self._record("mint", amount, metadata={"quote_id": quote.id})
        logger.info("Minted %d (balance %d)", amount, self.balance)
        return amount

    # ───────────────────────── Analysis ─────────────────────────────────

    def analyze_payment(self, amount: int) -> PaymentAnalysis:
        return analyze_payment(self._store.proofs, amount)

    def denomination_health(self, **options: Any) -> DenominationHealth:
        return analyze_denomination_health(self._store.proofs, **options)

    async def check_health(self, **options: Any) -> WalletHealth:
        """Run a health check of the current proofs against the wallet's mint."""
        if self._backend is not None:
            options.setdefault("proof_state_checker", self._backend.check_proof_state)
        return await check_wallet_health(self._mint_url, self._store.proofs, **options)

    # ───────────────────────── Helper Methods ─────────────────────────────────

    async def _exclusive(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        try:
            return await self._mutex.run_exclusive(fn, *args)
        except WalletError as e:
            self._events.emit("error", e)
            raise

    async def _persist(self, proofs: list[Proof]) -> None:
        try:
            await self._storage.save(proofs)
        except Exception as e:
            raise self._error(f"Failed to save wallet: {e}", "STORAGE_ERROR") from e

    def _commit(self, proofs: list[Proof]) -> None:
        self._store.replace(proofs)
        self._notify()

    def _notify(self) -> None:
        self._events.emit("proofs-change", self._store.proofs)
        self._events.emit("balance-change", self._store.balance)

    def _record(
        self,
        type: TransactionType,
        amount: int,
        *,
        memo: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TransactionRecord | None:
        if self._history is None:
            return None
        record = self._history.add(type=type, amount=amount, memo=memo, metadata=metadata)
        self._events.emit("transaction", record)
        return record

    def _unseen(self, proofs: list[Proof]) -> list[Proof]:
        """Proofs whose secrets are not held yet (first occurrence wins)."""
        seen: set[str] = set()
        fresh: list[Proof] = []
        for proof in proofs:
            if self._store.contains(proof["secret"]) or proof["secret"] in seen:
                logger.warning("Skipping duplicate proof %s...", proof["secret"][:8])
                continue
            seen.add(proof["secret"])
            fresh.append(proof)
        return fresh

    async def _check_proof_state(self, proofs: list[Proof]) -> CheckProofsResult:
        if self._backend is not None:
            return await self._call_mint(
                self._backend.check_proof_state, self._mint_url, proofs
            )
        return await self._call_mint(check_proof_state, self._mint_url, proofs)

    async def _call_mint(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        try:
            return await fn(*args)
        except WalletError:
            raise
        except Exception as e:
            raise self._error(f"Mint request failed: {e}", "MINT_ERROR") from e

    def _require_loaded(self, amount: int = 0) -> None:
        if not self._loaded:
            raise self._error(
                "Wallet not loaded. Call load() first.",
                "WALLET_NOT_LOADED",
                amount=amount,
            )

    def _require_backend(self, amount: int = 0) -> MintBackend:
        if self._backend is None:
            raise self._error(
                "No mint backend configured", "MINT_ERROR", amount=amount
            )
        return self._backend

    def _error(
        self,
        message: str,
        code: ErrorCode,
        *,
        amount: int = 0,
        selected_proofs: list[Proof] | None = None,
        selected_total: int | None = None,
    ) -> WalletError:
        logger.error(message)
        proofs = self._store.snapshot()
        return WalletError(
            message,
            code=code,
            requested_amount=amount,
            available_balance=sum_proofs(proofs),
            available_denominations=get_denominations(proofs),
            denomination_counts=denomination_counts(proofs),
            selected_proofs=selected_proofs,
            selected_total=selected_total,
        )
