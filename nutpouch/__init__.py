"""nutpouch - Cashu proof wallet core.

Proof selection, denomination analysis, a mutex-serialized wallet state
machine, transaction history and mint health checks.
"""

from .denominations import (
    analyze_denomination_health,
    analyze_exact_payment,
    analyze_payment,
    batch_check_exact_payments,
    suggest_denominations,
)
from .errors import MintError, WalletError
from .events import EventBus
from .health import check_wallet_health, quick_health_check
from .history import TransactionStore
from .mint import Mint, MintBackend
from .mutex import Mutex
from .selectors import ExactMatch, LargestFirst, RandomSelection, SmallestFirst
from .storage import JSONFileStorage, MemoryStorage, StorageAdapter
from .token import CashuTokenCodec
from .types import Proof
from .wallet import Wallet

__all__ = [
    # Main wallet class
    "Wallet",
    "Proof",
    "WalletError",
    "MintError",
    # Collaborators
    "MintBackend",
    "Mint",
    "StorageAdapter",
    "MemoryStorage",
    "JSONFileStorage",
    "CashuTokenCodec",
    # Selection strategies
    "SmallestFirst",
    "LargestFirst",
    "ExactMatch",
    "RandomSelection",
    # Analysis
    "analyze_exact_payment",
    "analyze_payment",
    "analyze_denomination_health",
    "suggest_denominations",
    "batch_check_exact_payments",
    # Infrastructure
    "Mutex",
    "EventBus",
    "TransactionStore",
    "check_wallet_health",
    "quick_health_check",
]
