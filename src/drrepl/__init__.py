# src/drrepl/__init__.py
"""
drrepl: Manifest-driven replication of object versions between S3 buckets.

This package copies the object versions and delete markers listed in a
manifest file from a source S3-compatible endpoint to a target one, using
a bounded queue and a fixed pool of concurrent workers.

The primary entry points for programmatic use are `ReplicationPipeline`
(manifest file in, summary out) and `ReplicationSession` (the concurrent
replication engine).
"""

from typing import List

from drrepl.manifest import ObjectRecord
from drrepl.pipeline import ReplicationPipeline, ReplicationSummary
from drrepl.session import ReplicationSession

__all__: List[str] = [
    "ObjectRecord",
    "ReplicationPipeline",
    "ReplicationSession",
    "ReplicationSummary",
]
