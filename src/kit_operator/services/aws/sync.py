"""Upload a directory tree to S3 one object at a time."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import IO, Any, Callable

from ... import metrics
from ...errors import ArtifactSyncError

logger = logging.getLogger(__name__)


@dataclass
class UploadUnit:
    """A single object upload and the cleanup to run once it is done."""

    bucket: str
    key: str
    body: IO[bytes]
    after: Callable[[], None]


def walk_files(directory: str) -> list[str]:
    """Return every file below directory in a stable order."""
    paths = []
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for file_name in sorted(files):
            paths.append(os.path.join(root, file_name))
    return paths


class DirectoryIterator:
    """Lazy, single-pass iterator of upload units for a directory.

    The tree is walked once when the iterator is built. Files are opened one
    at a time by has_next(); the first open failure is recorded in err and
    stops the iteration, so no later file is opened.
    """

    def __init__(self, bucket: str, directory: str, opener: Callable[[str], IO[bytes]] | None = None) -> None:
        self.bucket = bucket
        self.directory = directory
        self.remaining = walk_files(directory)
        self.opener = opener or (lambda path: open(path, "rb"))
        self.current: IO[bytes] | None = None
        self.current_path: str | None = None
        self.err: Exception | None = None

    def has_next(self) -> bool:
        if self.err is not None or not self.remaining:
            self.current = None
            return False
        self.current_path = self.remaining.pop(0)
        try:
            self.current = self.opener(self.current_path)
        except OSError as e:
            self.err = e
            self.current = None
            return False
        return True

    def key_for(self, path: str) -> str:
        return os.path.relpath(path, self.directory).replace(os.sep, "/")

    def current_upload_unit(self) -> UploadUnit:
        if self.current is None or self.current_path is None:
            raise RuntimeError("current_upload_unit called without a successful has_next")
        return UploadUnit(
            bucket=self.bucket,
            key=self.key_for(self.current_path),
            body=self.current,
            after=self.current.close,
        )


def upload_with_iterator(s3_client: Any, iterator: DirectoryIterator) -> int:
    """Upload every unit produced by iterator, stopping on the first error.

    Each unit's cleanup runs after its upload whatever the outcome.

    Args:
        s3_client: boto3 S3 client
        iterator: Source of upload units

    Returns:
        Number of objects uploaded

    Raises:
        ArtifactSyncError: If a file could not be opened or uploaded
    """
    uploaded = 0
    while iterator.has_next():
        unit = iterator.current_upload_unit()
        try:
            s3_client.upload_fileobj(unit.body, unit.bucket, unit.key)
            metrics.artifact_uploads_total.labels(result="success").inc()
        except Exception as e:
            metrics.artifact_uploads_total.labels(result="error").inc()
            raise ArtifactSyncError(unit.key, e) from e
        finally:
            unit.after()
        uploaded += 1
    if iterator.err is not None:
        metrics.artifact_uploads_total.labels(result="error").inc()
        raise ArtifactSyncError(iterator.current_path or iterator.directory, iterator.err) from iterator.err
    logger.debug(f"Uploaded {uploaded} objects to s3://{iterator.bucket}")
    return uploaded
