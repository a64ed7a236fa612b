# src/drrepl/session.py
"""
Lifecycle of a replication run.

`ReplicationSession` owns the bounded record queue, the worker pool that
drains it and the ledger the workers report to. The driver creates a
session, enqueues records one by one (suspending while the queue is full)
and finally calls `drain`, after which the counters are stable.
"""

import asyncio
import logging
from typing import List, Optional

from drrepl.exceptions import ConfigError, SessionClosedError
from drrepl.gateway import StorageGateway
from drrepl.ledger import LedgerSnapshot, ReplicationLedger
from drrepl.manifest import ObjectRecord
from drrepl.worker import replication_worker

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE: int = 256


class ReplicationSession:
    """Runs a fixed pool of replication workers fed through a bounded queue."""

    def __init__(
        self,
        source: StorageGateway,
        target: StorageGateway,
        concurrency: int,
        dry_run: bool = False,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        log: Optional[logging.Logger] = None,
    ) -> None:
        """
        Initializes the session without starting any worker.

        Prefer `ReplicationSession.create`, which also starts the pool.

        Args:
            source (StorageGateway): The gateway records are read from.
            target (StorageGateway): The gateway records are written to.
            concurrency (int): Number of worker tasks.
            dry_run (bool): Log and count records without touching storage.
            queue_size (int): Capacity of the record queue.
            log (logging.Logger, optional): Logger for per-record entries.
        """
        if concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {concurrency}.")
        if queue_size < 1:
            raise ConfigError(f"queue_size must be >= 1, got {queue_size}.")
        self._source: StorageGateway = source
        self._target: StorageGateway = target
        self._concurrency: int = concurrency
        self.dry_run: bool = dry_run
        self.ledger: ReplicationLedger = ReplicationLedger(log)
        self._queue: asyncio.Queue[Optional[ObjectRecord]] = asyncio.Queue(
            maxsize=queue_size
        )
        self._workers: List[asyncio.Task[None]] = []
        self._closed: bool = False
        self._drain_task: Optional[asyncio.Task[None]] = None

    @classmethod
    def create(
        cls,
        source: StorageGateway,
        target: StorageGateway,
        concurrency: int,
        dry_run: bool = False,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        log: Optional[logging.Logger] = None,
    ) -> "ReplicationSession":
        """
        Creates a session and starts its workers.

        Must be called from a running event loop. The workers immediately
        begin waiting on the (empty) queue.

        Returns:
            ReplicationSession: The started session.
        """
        session: ReplicationSession = cls(
            source,
            target,
            concurrency,
            dry_run=dry_run,
            queue_size=queue_size,
            log=log,
        )
        session._start()
        return session

    def _start(self) -> None:
        self._workers = [
            asyncio.create_task(
                replication_worker(
                    worker_id=i,
                    record_queue=self._queue,
                    source=self._source,
                    target=self._target,
                    ledger=self.ledger,
                    dry_run=self.dry_run,
                ),
                name=f"replication-worker-{i}",
            )
            for i in range(self._concurrency)
        ]
        logger.debug(
            f"Started {self._concurrency} workers "
            f"(queue size {self._queue.maxsize}, dry_run={self.dry_run})."
        )

    async def enqueue(self, record: ObjectRecord) -> None:
        """
        Submits a record for replication.

        Suspends the caller while the queue is full.

        Args:
            record (ObjectRecord): The record to replicate.

        Raises:
            SessionClosedError: If `drain` has already been called.
        """
        if self._closed:
            raise SessionClosedError(f"Cannot enqueue '{record}': session is closed.")
        await self._queue.put(record)

    async def drain(self) -> None:
        """
        Waits for every queued and in-flight record, then stops the workers.

        No record can be enqueued once draining has started. Calling `drain`
        more than once is harmless.
        """
        self._closed = True
        if self._drain_task is None:
            self._drain_task = asyncio.create_task(self._stop_workers())
        await self._drain_task

    async def _stop_workers(self) -> None:
        await self._queue.join()
        # One sentinel per worker wakes every consumer blocked on `get`.
        for _ in self._workers:
            await self._queue.put(None)
        await asyncio.gather(*self._workers)
        logger.debug("All replication workers stopped.")

    def processed_count(self) -> int:
        """
        Returns:
            int: Records attempted so far.
        """
        return self.ledger.processed

    def failed_count(self) -> int:
        """
        Returns:
            int: Attempted records that errored.
        """
        return self.ledger.failed

    def snapshot(self) -> LedgerSnapshot:
        return self.ledger.snapshot()
