from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from page_assembler.domain.errors import InconsistentManifestError
from page_assembler.domain.models import (
    PageDetection,
    PageFlag,
    PageManifest,
    PageRef,
    PageSummary,
    SourceDocument,
    page_id_for,
)
from page_assembler.services.document_registry import DocumentRegistry


class ManifestService:
    def build(self, documents: Iterable[SourceDocument]) -> PageManifest:
        pages: list[PageRef] = []
        seen: set[str] = set()
        for document in documents:
            if document.id in seen:
                raise InconsistentManifestError(f"Document listed twice: {document.id}")
            seen.add(document.id)
            pages.extend(
                PageRef(
                    page_id=page_id_for(document.id, page_number),
                    source_document_id=document.id,
                    page_number=page_number,
                )
                for page_number in range(1, document.page_count + 1)
            )
        return PageManifest(pages=tuple(pages))

    @staticmethod
    def _index_of(manifest: PageManifest, page_id: str) -> int:
        for index, page in enumerate(manifest.pages):
            if page.page_id == page_id:
                return index
        raise InconsistentManifestError(f"Unknown page id: {page_id}")

    def _replace(self, manifest: PageManifest, page_id: str, **changes: object) -> PageManifest:
        index = self._index_of(manifest, page_id)
        pages = list(manifest.pages)
        pages[index] = dataclasses.replace(pages[index], **changes)
        return PageManifest(pages=tuple(pages))

    def reorder(self, manifest: PageManifest, new_order: list[str]) -> PageManifest:
        current = manifest.page_ids
        if len(new_order) != len(current) or set(new_order) != set(current):
            raise InconsistentManifestError(
                "New order must list every current page id exactly once"
            )
        by_id = {page.page_id: page for page in manifest.pages}
        return PageManifest(pages=tuple(by_id[page_id] for page_id in new_order))

    def move(self, manifest: PageManifest, page_id: str, offset: int) -> PageManifest:
        index = self._index_of(manifest, page_id)
        target = min(max(index + offset, 0), len(manifest) - 1)
        order = manifest.page_ids
        order.insert(target, order.pop(index))
        return self.reorder(manifest, order)

    def toggle(self, manifest: PageManifest, page_id: str) -> PageManifest:
        page = manifest.pages[self._index_of(manifest, page_id)]
        return self._replace(manifest, page_id, enabled=not page.enabled)

    def rotate(self, manifest: PageManifest, page_id: str, degrees: int = 90) -> PageManifest:
        if degrees % 90 != 0:
            raise InconsistentManifestError("Rotation must be a multiple of 90 degrees")
        page = manifest.pages[self._index_of(manifest, page_id)]
        return self._replace(manifest, page_id, rotation=(page.rotation + degrees) % 360)

    def remove(self, manifest: PageManifest, page_id: str) -> PageManifest:
        index = self._index_of(manifest, page_id)
        return PageManifest(pages=manifest.pages[:index] + manifest.pages[index + 1 :])

    def apply_detection_flags(
        self, manifest: PageManifest, detections: Iterable[PageDetection]
    ) -> PageManifest:
        wanted: dict[tuple[str, int], set[PageFlag]] = {}
        for detection in detections:
            key = (detection.source_document_id, detection.page_number)
            wanted.setdefault(key, set()).add(detection.kind)
        if not wanted:
            return manifest

        pages = []
        for page in manifest.pages:
            kinds = wanted.get((page.source_document_id, page.page_number))
            if kinds:
                page = dataclasses.replace(page, flags=page.flags | frozenset(kinds))
            pages.append(page)
        return PageManifest(pages=tuple(pages))

    def clear_flags(self, manifest: PageManifest) -> PageManifest:
        return PageManifest(
            pages=tuple(dataclasses.replace(page, flags=frozenset()) for page in manifest.pages)
        )

    def summaries(self, manifest: PageManifest, registry: DocumentRegistry) -> list[PageSummary]:
        summaries: list[PageSummary] = []
        for page in manifest.pages:
            original_name = registry.get(page.source_document_id).original_name
            summaries.append(
                PageSummary(
                    page_id=page.page_id,
                    source_document_id=page.source_document_id,
                    original_name=original_name,
                    page_number=page.page_number,
                    rotation=page.rotation,
                    enabled=page.enabled,
                    flags=sorted(flag.value for flag in page.flags),
                )
            )
        return summaries
