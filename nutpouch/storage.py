"""Persistence backends for wallet proofs."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from .proofs import sum_proofs
from .types import Proof

logger = logging.getLogger(__name__)


class StorageAdapter(Protocol):
    """Where a wallet keeps its proofs between runs.

    A single wallet instance is assumed to be the only writer.
    """

    async def load(self) -> list[Proof]: ...

    async def save(self, proofs: list[Proof]) -> None: ...

    async def clear(self) -> None: ...


class MemoryStorage:
    """Non-persistent storage for tests and short-lived wallets.

    Proofs are deep-copied in both directions so callers can't alias the
    stored list.
    """

    def __init__(self, initial_proofs: list[Proof] | None = None) -> None:
        self._proofs: list[Proof] = copy.deepcopy(initial_proofs or [])

    async def load(self) -> list[Proof]:
        return copy.deepcopy(self._proofs)

    async def save(self, proofs: list[Proof]) -> None:
        self._proofs = copy.deepcopy(proofs)

    async def clear(self) -> None:
        self._proofs = []

    @property
    def count(self) -> int:
        return len(self._proofs)

    @property
    def balance(self) -> int:
        return sum_proofs(self._proofs)


class JSONFileStorage:
    """Stores proofs as a JSON array in a single file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash never leaves a half-written wallet behind. File
    access runs in a worker thread to keep the event loop free.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).expanduser()

    async def load(self) -> list[Proof]:
        return await asyncio.to_thread(self._load)

    async def save(self, proofs: list[Proof]) -> None:
        await asyncio.to_thread(self._save, proofs)

    async def clear(self) -> None:
        await asyncio.to_thread(self.path.unlink, missing_ok=True)

    def _load(self) -> list[Proof]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring malformed wallet file %s: %s", self.path, e)
            return []

        if not isinstance(data, list):
            logger.warning("Ignoring wallet file %s: expected a JSON array", self.path)
            return []
        return data

    def _save(self, proofs: list[Proof]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(proofs, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
