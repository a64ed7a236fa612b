# src/drrepl/pipeline.py
"""Core orchestration logic for a drrepl run."""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Iterator, List, Optional

from aiobotocore.session import AioSession, get_session
from rich.progress import (
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from drrepl.config import AppConfig, Config
from drrepl.gateway import StorageGateway, open_gateway
from drrepl.ledger import LedgerSnapshot
from drrepl.manifest import ManifestReader, ObjectRecord
from drrepl.session import ReplicationSession

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplicationSummary:
    """
    The outcome of a replication run.

    Attributes:
        processed (int): Records attempted.
        failed (int): Attempted records that errored.
        skipped (int): Well-formed records ignored because of the skip offset.
        malformed (int): Manifest lines that could not be parsed.
        dry_run (bool): Whether the run was simulated.
        elapsed_s (float): Wall-clock duration of the run in seconds.
    """

    processed: int
    failed: int
    skipped: int
    malformed: int
    dry_run: bool
    elapsed_s: float

    @property
    def succeeded(self) -> int:
        return self.processed - self.failed

    def report(self) -> str:
        """
        Returns:
            str: The one-line, human-readable summary of the run.
        """
        if self.dry_run:
            return f"copy dry run complete ({self.processed:,} objects)"
        return (
            f"Copied {self.succeeded:,} / {self.processed:,} objects "
            f"with latency {int(self.elapsed_s)} secs"
        )


class ReplicationPipeline:
    """Replicates every record of a manifest from start to finish."""

    def __init__(self, config: Config) -> None:
        """
        Initializes the pipeline with the given configuration.

        Args:
            config (Config): The application configuration.
        """
        self._config: Config = config
        self._session: AioSession = get_session()

    async def run(self) -> ReplicationSummary:
        """
        Connects to both endpoints and replicates the manifest.

        Returns:
            ReplicationSummary: The outcome of the run.

        Raises:
            GatewayError: If either endpoint cannot be reached.
            ManifestError: If the manifest file cannot be opened.
        """
        logger.info("Starting drrepl copy.")
        app: AppConfig = self._config.app
        # A missing manifest is reported before any endpoint is contacted.
        reader: ManifestReader = ManifestReader(app.manifest_path, skip=app.skip)
        async with (
            open_gateway(
                self._session, self._config.source, self._config.app
            ) as source,
            open_gateway(
                self._session, self._config.target, self._config.app
            ) as target,
        ):
            return await self.replicate(source, target, reader)

    async def replicate(
        self,
        source: StorageGateway,
        target: StorageGateway,
        reader: Optional[ManifestReader] = None,
    ) -> ReplicationSummary:
        """
        Feeds the manifest through a `ReplicationSession`.

        Manifest lines are read in batches on the default executor so file
        I/O never blocks the event loop.

        Args:
            source (StorageGateway): The gateway records are read from.
            target (StorageGateway): The gateway records are written to.
            reader (ManifestReader, optional): The manifest to replicate.
                Defaults to the configured manifest.

        Returns:
            ReplicationSummary: The outcome of the run.
        """
        app: AppConfig = self._config.app
        if reader is None:
            reader = ManifestReader(app.manifest_path, skip=app.skip)
        start_time: float = time.monotonic()
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        records: Iterator[ObjectRecord] = iter(reader)

        def read_batch() -> List[ObjectRecord]:
            return list(itertools.islice(records, app.queue_size))

        progress: Progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TextColumn("{task.completed:.0f} processed"),
            TextColumn("([bold red]{task.fields[failed]} failed[/])"),
            TimeElapsedColumn(),
            transient=True,
        )

        with progress:
            task_id: TaskID = progress.add_task(
                "Dry run..." if app.dry_run else "Replicating...",
                total=None,
                failed=0,
            )

            def on_complete(snapshot: LedgerSnapshot) -> None:
                progress.update(
                    task_id, completed=snapshot.processed, failed=snapshot.failed
                )

            session: ReplicationSession = ReplicationSession.create(
                source,
                target,
                app.concurrency,
                dry_run=app.dry_run,
                queue_size=app.queue_size,
            )
            session.ledger.add_listener(on_complete)

            try:
                while True:
                    batch: List[ObjectRecord] = await loop.run_in_executor(
                        None, read_batch
                    )
                    if not batch:
                        break
                    record: ObjectRecord
                    for record in batch:
                        await session.enqueue(record)
                        logger.debug(f"Added '{record}' to copy queue")
            finally:
                # Records already queued are still replicated, even if the
                # manifest could not be read to the end.
                await session.drain()

        snapshot: LedgerSnapshot = session.snapshot()
        summary: ReplicationSummary = ReplicationSummary(
            processed=snapshot.processed,
            failed=snapshot.failed,
            skipped=reader.stats.skipped,
            malformed=reader.stats.malformed,
            dry_run=app.dry_run,
            elapsed_s=time.monotonic() - start_time,
        )
        if summary.skipped or summary.malformed:
            logger.info(
                f"Skipped {summary.skipped:,} records (skip offset) and "
                f"{summary.malformed:,} malformed lines."
            )
        if summary.failed:
            logger.warning(f"{summary.failed:,} objects failed to replicate.")
        return summary
