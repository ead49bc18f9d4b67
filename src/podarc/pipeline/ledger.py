"""Error ledger: recoverable problems recorded during a run."""

import logging
from collections.abc import Iterable
from typing import Any

from podarc.catalog.models import ErrorLedgerEntry, LedgerLevel

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def format_entry(entry: ErrorLedgerEntry) -> str:
    """Render an entry as ``stage :: item - message``."""
    return f"{entry.stage} :: {entry.item_id} - {entry.message}"


class ErrorLedger:
    """Collects ledger entries for one run.

    Entries are logged as they are added and appended to ``errors.jsonl``
    by the orchestrator once the run's artefacts are written.
    """

    def __init__(self) -> None:
        self.entries: list[ErrorLedgerEntry] = []

    def __len__(self) -> int:
        return len(self.entries)

    def add(
        self,
        stage: str,
        item_id: str,
        level: LedgerLevel,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> ErrorLedgerEntry:
        """Record a new entry."""
        entry = ErrorLedgerEntry.create(stage, item_id, level, message, details)
        self.extend([entry])
        return entry

    def extend(self, entries: Iterable[ErrorLedgerEntry]) -> None:
        """Record entries produced elsewhere (e.g. by the enricher)."""
        for entry in entries:
            logger.log(LOG_LEVELS[entry.level], f"[{entry.stage}] {entry.item_id}: {entry.message}")
            self.entries.append(entry)

    def count(self, level: LedgerLevel) -> int:
        return sum(1 for entry in self.entries if entry.level == level)

    def format_lines(self) -> list[str]:
        return [format_entry(entry) for entry in self.entries]
