from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable

from page_assembler.domain.errors import NotFoundError
from page_assembler.domain.models import Artifact
from page_assembler.infrastructure.storage import LocalFileStore, safe_file_name

logger = logging.getLogger(__name__)

DOWNLOAD_PREFIX = "downloads/"

Scheduler = Callable[[float, Callable[[], None]], object]


def _timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class ArtifactStore:
    def __init__(
        self,
        store: LocalFileStore,
        retention_seconds: float = 5,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.retention_seconds = retention_seconds
        self.scheduler = scheduler or _timer_scheduler
        self.clock = clock
        self._artifacts: dict[str, Artifact] = {}
        self._claimed: set[str] = set()
        self._lock = threading.Lock()

    @staticmethod
    def locator_for(artifact_id: str) -> str:
        return f"{DOWNLOAD_PREFIX}{artifact_id}"

    @staticmethod
    def artifact_id_from(locator: str) -> str:
        if locator.startswith(DOWNLOAD_PREFIX):
            return locator[len(DOWNLOAD_PREFIX) :]
        return locator

    def save(self, output_name: str, data: bytes) -> Artifact:
        download_name = safe_file_name(output_name)
        artifact_id = f"{uuid.uuid4().hex}-{download_name}"
        self.store.write(artifact_id, data)
        artifact = Artifact(
            artifact_id=artifact_id,
            download_name=download_name,
            size_bytes=len(data),
            created_at=self.clock(),
        )
        with self._lock:
            self._artifacts[artifact_id] = artifact
        logger.info("Stored artifact %s (%d bytes)", artifact_id, len(data))
        return artifact

    def contains(self, artifact_id: str) -> bool:
        with self._lock:
            return artifact_id in self._artifacts

    def artifacts(self) -> list[Artifact]:
        with self._lock:
            return list(self._artifacts.values())

    def resolve(self, locator: str) -> tuple[str, bytes]:
        artifact_id = self.artifact_id_from(locator)
        self.store.resolve(artifact_id)
        with self._lock:
            artifact = self._artifacts.get(artifact_id)
            if artifact is None or artifact_id in self._claimed:
                raise NotFoundError(f"Artifact not found: {artifact_id}")
            self._claimed.add(artifact_id)

        try:
            data = self.store.read(artifact_id)
        except NotFoundError:
            with self._lock:
                self._artifacts.pop(artifact_id, None)
                self._claimed.discard(artifact_id)
            raise NotFoundError(f"Artifact not found: {artifact_id}") from None

        self.scheduler(self.retention_seconds, lambda: self.expire(artifact_id))
        logger.info("Delivered artifact %s", artifact_id)
        return artifact.download_name, data

    def expire(self, artifact_id: str) -> bool:
        """Delete an artifact now. Returns False when nothing was there."""
        self.store.resolve(artifact_id)
        with self._lock:
            known = self._artifacts.pop(artifact_id, None) is not None
            self._claimed.discard(artifact_id)
        deleted = self.store.delete(artifact_id)
        if known or deleted:
            logger.info("Expired artifact %s", artifact_id)
        return known or deleted

    def purge_older_than(self, max_age_seconds: float) -> list[str]:
        cutoff = self.clock() - max_age_seconds
        with self._lock:
            stale = [
                artifact.artifact_id
                for artifact in self._artifacts.values()
                if artifact.created_at < cutoff and artifact.artifact_id not in self._claimed
            ]
        for artifact_id in stale:
            self.expire(artifact_id)
        return stale
