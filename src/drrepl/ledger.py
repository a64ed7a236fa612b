# src/drrepl/ledger.py
"""
Success and failure accounting for a replication run.

The ledger is the only place where per-record outcomes are counted. Every
completed record increments `processed`; records that errored additionally
increment `failed`, so the number of successful records is always
`processed - failed`.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from drrepl.manifest import ObjectRecord

logger: logging.Logger = logging.getLogger(__name__)

CompletionListener = Callable[["LedgerSnapshot"], None]


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    A consistent view of the ledger counters.

    Attributes:
        processed (int): Records attempted so far.
        failed (int): Attempted records that errored.
    """

    processed: int
    failed: int

    @property
    def succeeded(self) -> int:
        return self.processed - self.failed


class ReplicationLedger:
    """
    Concurrency-safe counters plus per-record log emission.

    Counters are guarded by a lock so they can be read from threads other
    than the event loop (e.g. a progress display) without tearing.
    """

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        """
        Args:
            log (logging.Logger, optional): Logger receiving per-record
                entries. Defaults to this module's logger.
        """
        self._log: logging.Logger = log or logger
        self._lock: threading.Lock = threading.Lock()
        self._processed: int = 0
        self._failed: int = 0
        self._listeners: List[CompletionListener] = []

    def add_listener(self, listener: CompletionListener) -> None:
        """Registers a callable invoked with a snapshot after each record."""
        self._listeners.append(listener)

    def record_success(self, record: ObjectRecord, action: str) -> None:
        """
        Counts a record that completed without error.

        Args:
            record (ObjectRecord): The completed record.
            action (str): What was done, e.g. "copied" or "would delete".
        """
        with self._lock:
            self._processed += 1
            snapshot: LedgerSnapshot = LedgerSnapshot(self._processed, self._failed)
        self._log.debug(f"{action} {record}")
        self._notify(snapshot)

    def record_failure(
        self,
        record: ObjectRecord,
        action: str,
        error: BaseException,
        exc_info: bool = False,
    ) -> None:
        """
        Counts a record whose replication raised an error.

        Args:
            record (ObjectRecord): The failed record.
            action (str): What was attempted, e.g. "copy" or "delete".
            error (BaseException): The error raised by the attempt.
            exc_info (bool): Whether to attach the traceback to the log entry.
        """
        with self._lock:
            self._processed += 1
            self._failed += 1
            snapshot: LedgerSnapshot = LedgerSnapshot(self._processed, self._failed)
        self._log.error(
            f"Failed to {action} '{record}': {type(error).__name__} - {error}",
            exc_info=error if exc_info else None,
        )
        self._notify(snapshot)

    @property
    def log(self) -> logging.Logger:
        """The logger receiving per-record entries."""
        return self._log

    def _notify(self, snapshot: LedgerSnapshot) -> None:
        # A listener error must never escape into the worker loop.
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception:
                self._log.exception(f"Completion listener {listener!r} failed.")

    def snapshot(self) -> LedgerSnapshot:
        """
        Returns:
            LedgerSnapshot: The current counters, read atomically.
        """
        with self._lock:
            return LedgerSnapshot(self._processed, self._failed)

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    @property
    def failed(self) -> int:
        with self._lock:
            return self._failed
