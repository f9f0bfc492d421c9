from __future__ import annotations

import logging

from page_assembler.domain.errors import DanglingReferenceError, EmptySelectionError
from page_assembler.domain.models import MergePlan, PageManifest, PlanEntry
from page_assembler.domain.schemas import MergeRequest
from page_assembler.infrastructure.storage import safe_file_name
from page_assembler.services.document_registry import DocumentRegistry

logger = logging.getLogger(__name__)


class MergePlanner:
    def __init__(self, registry: DocumentRegistry, default_output_name: str = "merged.pdf") -> None:
        self.registry = registry
        self.default_output_name = default_output_name

    def plan(self, manifest: PageManifest, output_name: str | None = None) -> MergePlan:
        triples = [
            (page.source_document_id, page.page_number, page.rotation)
            for page in manifest.enabled_pages
        ]
        return self._build(triples, output_name)

    def plan_request(self, request: MergeRequest) -> MergePlan:
        triples = [
            (page.source_document_id, page.page_number, page.rotation) for page in request.pages
        ]
        return self._build(triples, request.output_name)

    def _build(self, triples: list[tuple[str, int, int]], output_name: str | None) -> MergePlan:
        if not triples:
            raise EmptySelectionError("No pages selected for merging")

        for source_document_id in dict.fromkeys(source for source, _, _ in triples):
            if not self.registry.exists(source_document_id):
                raise DanglingReferenceError(source_document_id)

        entries = tuple(
            PlanEntry(
                source_document_id=source_document_id,
                page_index=page_number - 1,
                rotation=rotation % 360,
            )
            for source_document_id, page_number, rotation in triples
        )
        plan = MergePlan(
            entries=entries,
            output_name=safe_file_name(output_name or "", default=self.default_output_name),
        )
        logger.info(
            "Planned %s: %d page(s) into %s", plan.plan_id, plan.page_count, plan.output_name
        )
        return plan
