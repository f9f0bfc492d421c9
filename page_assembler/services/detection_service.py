from __future__ import annotations

from typing import Protocol

from page_assembler.domain.models import PageDetection, PageManifest, SourceDocument
from page_assembler.domain.schemas import DetectionReport
from page_assembler.services.document_registry import DocumentRegistry
from page_assembler.services.manifest_service import ManifestService


class PageDetector(Protocol):
    def detect(self, document: SourceDocument, content: bytes) -> list[PageDetection]: ...


class NullPageDetector:
    """Detector used when no visual analysis backend is configured."""

    def detect(self, document: SourceDocument, content: bytes) -> list[PageDetection]:
        return []


class DetectionService:
    def __init__(
        self,
        registry: DocumentRegistry,
        manifest_service: ManifestService,
        detector: PageDetector | None = None,
    ) -> None:
        self.registry = registry
        self.manifest_service = manifest_service
        self.detector = detector or NullPageDetector()

    def scan(self, manifest: PageManifest) -> tuple[PageManifest, list[PageDetection]]:
        detections: list[PageDetection] = []
        for source_document_id in dict.fromkeys(page.source_document_id for page in manifest):
            document = self.registry.get(source_document_id)
            detections.extend(
                self.detector.detect(document, self.registry.load_content(document))
            )
        return self.manifest_service.apply_detection_flags(manifest, detections), detections

    def apply_reports(
        self, manifest: PageManifest, reports: list[DetectionReport]
    ) -> PageManifest:
        detections = [
            PageDetection(
                source_document_id=report.source_document_id,
                page_number=report.page_number,
                kind=report.kind,
                confidence=report.confidence,
            )
            for report in reports
        ]
        return self.manifest_service.apply_detection_flags(manifest, detections)
