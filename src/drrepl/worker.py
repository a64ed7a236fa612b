# src/drrepl/worker.py
"""
Defines the replication worker and the per-record decision logic.

Each worker is a long-lived task that pulls `ObjectRecord`s from the
session's queue and replicates them one at a time: delete markers become a
versioned delete on the target, everything else is read from the source and
written to the target. A failing record is logged and counted, never
propagated, so one bad object cannot stop the run.
"""

import asyncio
import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from drrepl.exceptions import DrReplError
from drrepl.gateway import ObjectPayload, StorageGateway
from drrepl.ledger import ReplicationLedger
from drrepl.manifest import ObjectRecord

logger: logging.Logger = logging.getLogger(__name__)


async def replication_worker(
    worker_id: int,
    record_queue: "asyncio.Queue[Optional[ObjectRecord]]",
    source: StorageGateway,
    target: StorageGateway,
    ledger: ReplicationLedger,
    dry_run: bool,
) -> None:
    """
    A long-lived worker task that processes records from a queue.

    The worker exits when it receives the `None` sentinel the session puts
    on the queue while draining.

    Args:
        worker_id (int): A unique identifier for this worker.
        record_queue (asyncio.Queue[Optional[ObjectRecord]]): The queue from
            which to pull records.
        source (StorageGateway): The gateway for the source endpoint.
        target (StorageGateway): The gateway for the target endpoint.
        ledger (ReplicationLedger): The run's success/failure ledger.
        dry_run (bool): Simulate instead of calling the gateways.
    """
    logger.debug(f"Worker {worker_id} started.")
    while True:
        record: Optional[ObjectRecord] = await record_queue.get()
        try:
            if record is None:
                logger.debug(f"Worker {worker_id} shutting down.")
                return
            await replicate_record(record, source, target, ledger, dry_run)
        finally:
            record_queue.task_done()


async def replicate_record(
    record: ObjectRecord,
    source: StorageGateway,
    target: StorageGateway,
    ledger: ReplicationLedger,
    dry_run: bool,
) -> None:
    """
    Replicates a single record and accounts for the outcome.

    Args:
        record (ObjectRecord): The record to replicate.
        source (StorageGateway): The gateway for the source endpoint.
        target (StorageGateway): The gateway for the target endpoint.
        ledger (ReplicationLedger): The run's success/failure ledger.
        dry_run (bool): Simulate instead of calling the gateways.
    """
    action: str = "delete" if record.delete_marker else "copy"

    if dry_run:
        ledger.log.info(f"Would {action} '{record}' to 's3://{target.bucket}'")
        ledger.record_success(record, f"would {action}")
        return

    try:
        if record.delete_marker:
            await target.delete_object_version(
                target.bucket, record.object, record.version_id
            )
        else:
            payload: ObjectPayload = await source.get_object_version(
                record.bucket, record.object, record.version_id
            )
            await target.put_object_version(
                target.bucket, record.object, record.version_id, payload
            )
    except (ClientError, BotoCoreError, DrReplError) as e:
        ledger.record_failure(record, action, e)
    except Exception as e:
        ledger.record_failure(record, action, e, exc_info=True)
    else:
        ledger.record_success(record, "deleted" if record.delete_marker else "copied")
