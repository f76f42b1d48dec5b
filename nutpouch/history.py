"""Append-only transaction history with filtering and summaries."""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Literal


TransactionType = Literal["send", "receive", "mint", "swap"]
TransactionStatus = Literal["pending", "completed", "failed"]
SortOrder = Literal["asc", "desc"]

UPDATABLE_FIELDS = frozenset({"status", "memo", "metadata"})

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class TransactionRecord:
    """A single ledger entry. ``amount`` is negative for outflows."""

    id: str
    type: TransactionType
    amount: int
    timestamp: datetime
    status: TransactionStatus = "completed"
    memo: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class HistoryResult:
    records: list[TransactionRecord]
    total: int  # matches before pagination
    has_more: bool


@dataclass
class TransactionSummary:
    total_sent: int
    total_received: int
    net_change: int
    transaction_count: int


class TransactionStore:
    """In-memory ledger of wallet transactions.

    Records are never removed individually; only status, memo and metadata
    can change after creation. Use ``serialize``/``deserialize`` to hand the
    ledger to a persistence layer.

    Example:
        store = TransactionStore()
        store.add(type="send", amount=-5, memo="Track payment")
        recent = store.query(limit=10).records
    """

    def __init__(self, initial: Iterable[TransactionRecord] | None = None) -> None:
        self._records: list[TransactionRecord] = list(initial or [])

    def add(
        self,
        *,
        type: TransactionType,
        amount: int,
        status: TransactionStatus = "completed",
        memo: str | None = None,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> TransactionRecord:
        """Append a record with a generated id (timestamp defaults to now)."""
        record = TransactionRecord(
            id=generate_id(),
            type=type,
            amount=amount,
            timestamp=timestamp or datetime.now(timezone.utc),
            status=status,
            memo=memo,
            metadata=metadata,
        )
        self._records.append(record)
        return record

    def update(self, id: str, **updates: Any) -> TransactionRecord | None:
        """Change status, memo or metadata of a record; None if it doesn't exist."""
        invalid = set(updates) - UPDATABLE_FIELDS
        if invalid:
            raise ValueError(
                f"Cannot update transaction field(s): {', '.join(sorted(invalid))}"
            )

        for index, record in enumerate(self._records):
            if record.id == id:
                updated = replace(record, **updates)
                self._records[index] = updated
                return updated
        return None

    def get(self, id: str) -> TransactionRecord | None:
        return next((r for r in self._records if r.id == id), None)

    def query(
        self,
        *,
        types: Iterable[TransactionType] | None = None,
        status: TransactionStatus | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = 50,
        offset: int = 0,
        order: SortOrder = "desc",
    ) -> HistoryResult:
        """Filter, sort by timestamp and paginate records.

        ``since`` and ``until`` are inclusive. ``limit=None`` returns every
        match after ``offset``.
        """
        type_set = set(types) if types else None

        matches = [
            r
            for r in self._records
            if (type_set is None or r.type in type_set)
            and (status is None or r.status == status)
            and (since is None or r.timestamp >= since)
            and (until is None or r.timestamp <= until)
        ]
        matches.sort(key=lambda r: r.timestamp, reverse=order == "desc")

        total = len(matches)
        end = total if limit is None else offset + limit
        return HistoryResult(
            records=matches[offset:end],
            total=total,
            has_more=end < total,
        )

    def get_summary(
        self, *, since: datetime | None = None, until: datetime | None = None
    ) -> TransactionSummary:
        """Sum completed records in the period into sent/received totals."""
        records = self.query(since=since, until=until, limit=None).records

        total_sent = 0
        total_received = 0
        for record in records:
            if record.status != "completed":
                continue
            if record.amount < 0:
                total_sent += -record.amount
            else:
                total_received += record.amount

        return TransactionSummary(
            total_sent=total_sent,
            total_received=total_received,
            net_change=total_received - total_sent,
            transaction_count=len(records),
        )

    def all(self) -> list[TransactionRecord]:
        return list(self._records)

    def clear(self) -> None:
        self._records = []

    @property
    def count(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def serialize(self) -> list[dict[str, Any]]:
        """Records as JSON-ready dicts with ISO-8601 timestamps."""
        serialized = []
        for record in self._records:
            data = asdict(record)
            data["timestamp"] = record.timestamp.isoformat()
            serialized.append(data)
        return serialized

    @classmethod
    def deserialize(cls, data: Iterable[dict[str, Any]]) -> TransactionStore:
        records = []
        for item in data:
            timestamp = datetime.fromisoformat(item["timestamp"])
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            records.append(
                TransactionRecord(
                    id=item["id"],
                    type=item["type"],
                    amount=item["amount"],
                    timestamp=timestamp,
                    status=item.get("status", "completed"),
                    memo=item.get("memo"),
                    metadata=item.get("metadata"),
                )
            )
        return cls(records)


def generate_id() -> str:
    """Unique id like ``tx_lq2x9k3a_f8k2m1``."""
    millis = int(time.time() * 1000)
    encoded = ""
    while millis:
        millis, digit = divmod(millis, 36)
        encoded = _BASE36[digit] + encoded
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"tx_{encoded or '0'}_{suffix}"


def format_transaction(record: TransactionRecord) -> str:
    """One-line description, e.g. ``-5 credits (sent)``."""
    sign = "+" if record.amount >= 0 else ""
    verb = {"send": "sent", "receive": "received", "mint": "minted"}.get(
        record.type, "swapped"
    )
    return f"{sign}{record.amount} credits ({verb})"


def group_by_date(
    records: Iterable[TransactionRecord],
) -> dict[str, list[TransactionRecord]]:
    """Group records by UTC calendar date (``YYYY-MM-DD``)."""
    groups: dict[str, list[TransactionRecord]] = {}
    for record in records:
        day = record.timestamp.astimezone(timezone.utc).date().isoformat()
        groups.setdefault(day, []).append(record)
    return groups


def calculate_running_balance(
    records: Iterable[TransactionRecord], starting_balance: int = 0
) -> list[tuple[TransactionRecord, int]]:
    """Pair each record (chronological order) with the balance after it.

    Only completed records move the balance.
    """
    balance = starting_balance
    result = []
    for record in records:
        if record.status == "completed":
            balance += record.amount
        result.append((record, balance))
    return result
