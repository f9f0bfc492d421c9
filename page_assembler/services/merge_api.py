from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from page_assembler.adapters.pymupdf_adapter import PyMuPdfAdapter
from page_assembler.domain.errors import PageAssemblerError, RequestValidationError
from page_assembler.domain.models import (
    AssemblyResult,
    CleanupReport,
    DocumentSummary,
    MergePlan,
    PageManifest,
    PageSummary,
    UploadBatchResult,
)
from page_assembler.domain.schemas import (
    CleanupRequest,
    DetectionReport,
    MergeRequest,
    MergeResponse,
)
from page_assembler.infrastructure.config import AppConfig
from page_assembler.infrastructure.storage import LocalFileStore
from page_assembler.services.artifact_store import ArtifactStore, Scheduler
from page_assembler.services.assembly_engine import AssemblyEngine
from page_assembler.services.cleanup_service import CleanupService
from page_assembler.services.detection_service import DetectionService, PageDetector
from page_assembler.services.document_registry import DocumentRegistry
from page_assembler.services.manifest_service import ManifestService
from page_assembler.services.merge_planner import MergePlanner

logger = logging.getLogger(__name__)


def _validation_detail(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


def _failure(exc: PageAssemblerError) -> MergeResponse:
    return MergeResponse(success=False, error_kind=exc.kind, detail=exc.detail)


class MergeApi:
    def __init__(
        self,
        registry: DocumentRegistry,
        manifest_service: ManifestService,
        planner: MergePlanner,
        engine: AssemblyEngine,
        artifacts: ArtifactStore,
        cleanup_service: CleanupService,
        detection_service: DetectionService,
        unclaimed_artifact_seconds: float = 3600,
    ) -> None:
        self.registry = registry
        self.manifest_service = manifest_service
        self.planner = planner
        self.engine = engine
        self.artifacts = artifacts
        self.cleanup_service = cleanup_service
        self.detection_service = detection_service
        self.unclaimed_artifact_seconds = unclaimed_artifact_seconds

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        scheduler: Scheduler | None = None,
        detector: PageDetector | None = None,
    ) -> MergeApi:
        adapter = PyMuPdfAdapter()
        registry = DocumentRegistry(adapter, LocalFileStore(config.uploads_dir), config)
        artifacts = ArtifactStore(
            LocalFileStore(config.outputs_dir),
            retention_seconds=config.artifact_retention_seconds,
            scheduler=scheduler,
        )
        manifest_service = ManifestService()
        return cls(
            registry=registry,
            manifest_service=manifest_service,
            planner=MergePlanner(registry, default_output_name=config.default_output_name),
            engine=AssemblyEngine(registry, adapter, artifacts),
            artifacts=artifacts,
            cleanup_service=CleanupService(registry, artifacts),
            detection_service=DetectionService(registry, manifest_service, detector),
            unclaimed_artifact_seconds=config.unclaimed_artifact_seconds,
        )

    def upload(self, files: list[tuple[str, bytes]]) -> UploadBatchResult:
        result = self.registry.register_batch(files)
        logger.info("Upload batch: %d ok, %d failed", result.success_count, result.error_count)
        return result

    def documents(self) -> list[DocumentSummary]:
        return [document.summary() for document in self.registry.documents()]

    def document_bytes(self, document_id: str) -> bytes:
        return self.registry.read_bytes(document_id)

    def build_manifest(self) -> PageManifest:
        return self.manifest_service.build(self.registry.documents())

    def remove_document(self, document_id: str) -> PageManifest:
        self.registry.remove(document_id)
        return self.build_manifest()

    def manifest_summaries(self, manifest: PageManifest) -> list[PageSummary]:
        return self.manifest_service.summaries(manifest, self.registry)

    def detect(self, manifest: PageManifest) -> PageManifest:
        flagged, detections = self.detection_service.scan(manifest)
        logger.info("Detection reported %d page flag(s)", len(detections))
        return flagged

    def apply_detections(
        self, manifest: PageManifest, payload: list[dict[str, Any]]
    ) -> PageManifest:
        try:
            reports = [DetectionReport.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise RequestValidationError(_validation_detail(exc)) from exc
        return self.detection_service.apply_reports(manifest, reports)

    def merge(self, payload: MergeRequest | dict[str, Any]) -> MergeResponse:
        try:
            request = (
                payload
                if isinstance(payload, MergeRequest)
                else MergeRequest.model_validate(payload)
            )
        except ValidationError as exc:
            return _failure(RequestValidationError(_validation_detail(exc)))
        try:
            plan = self.planner.plan_request(request)
        except PageAssemblerError as exc:
            return _failure(exc)
        return self._assemble(plan)

    def merge_manifest(
        self, manifest: PageManifest, output_name: str | None = None
    ) -> MergeResponse:
        try:
            plan = self.planner.plan(manifest, output_name)
        except PageAssemblerError as exc:
            return _failure(exc)
        return self._assemble(plan)

    def _assemble(self, plan: MergePlan) -> MergeResponse:
        purged = self.artifacts.purge_older_than(self.unclaimed_artifact_seconds)
        if purged:
            logger.info("Purged %d undelivered artifact(s)", len(purged))
        result: AssemblyResult = self.engine.assemble(plan)
        if not result.succeeded or result.output_artifact_id is None:
            return MergeResponse(
                success=False, error_kind=result.error_kind, detail=result.error_detail
            )
        return MergeResponse(
            success=True,
            output_artifact_id=result.output_artifact_id,
            file_size_kb=result.file_size_kb,
            download_locator=self.artifacts.locator_for(result.output_artifact_id),
        )

    def download(self, locator: str) -> tuple[str, bytes]:
        return self.artifacts.resolve(locator)

    def cleanup(self, payload: CleanupRequest | dict[str, Any] | list[str]) -> CleanupReport:
        try:
            if isinstance(payload, CleanupRequest):
                request = payload
            elif isinstance(payload, list):
                request = CleanupRequest(ids=payload)
            else:
                request = CleanupRequest.model_validate(payload)
        except ValidationError as exc:
            raise RequestValidationError(_validation_detail(exc)) from exc
        return self.cleanup_service.cleanup(request.ids)
