from __future__ import annotations

import logging

from page_assembler.domain.errors import AccessDeniedError
from page_assembler.domain.models import CleanupReport
from page_assembler.services.artifact_store import ArtifactStore
from page_assembler.services.document_registry import DocumentRegistry

logger = logging.getLogger(__name__)


class CleanupService:
    def __init__(self, registry: DocumentRegistry, artifacts: ArtifactStore) -> None:
        self.registry = registry
        self.artifacts = artifacts

    def cleanup(self, ids: list[str]) -> CleanupReport:
        report = CleanupReport()
        for identifier in ids:
            try:
                self._remove_one(identifier)
            except AccessDeniedError as exc:
                logger.warning("Cleanup refused for %r", identifier)
                report.errors.append((identifier, exc.detail))
                continue
            except OSError as exc:
                logger.warning("Cleanup failed for %r: %s", identifier, exc.strerror)
                report.errors.append((identifier, exc.strerror or "Unable to delete"))
                continue
            report.removed.append(identifier)
        logger.info(
            "Cleanup removed %d id(s), %d error(s)", len(report.removed), len(report.errors)
        )
        return report

    def _remove_one(self, identifier: str) -> None:
        if self.registry.exists(identifier):
            self.registry.remove(identifier)
            return
        artifact_id = self.artifacts.artifact_id_from(identifier)
        self.artifacts.expire(artifact_id)
