from pathlib import Path

import pytest

from page_assembler.domain.errors import DanglingReferenceError, EmptySelectionError
from page_assembler.domain.models import PlanEntry, SourceDocument
from page_assembler.domain.schemas import MergeRequest
from page_assembler.services.manifest_service import ManifestService
from page_assembler.services.merge_planner import MergePlanner


class InMemoryRegistry:
    def __init__(self, documents: list[SourceDocument]) -> None:
        self._documents = {document.id: document for document in documents}

    def exists(self, document_id: str) -> bool:
        return document_id in self._documents

    def remove(self, document_id: str) -> None:
        self._documents.pop(document_id, None)


def _document(document_id: str, page_count: int) -> SourceDocument:
    return SourceDocument(
        id=document_id,
        original_name=f"{document_id}.pdf",
        storage_path=Path(f"/tmp/{document_id}.pdf"),
        page_count=page_count,
        size_bytes=2048,
    )


@pytest.fixture
def doc_a() -> SourceDocument:
    return _document("docA", 3)


@pytest.fixture
def doc_b() -> SourceDocument:
    return _document("docB", 2)


@pytest.fixture
def registry(doc_a, doc_b) -> InMemoryRegistry:
    return InMemoryRegistry([doc_a, doc_b])


@pytest.fixture
def planner(registry) -> MergePlanner:
    return MergePlanner(registry)


@pytest.fixture
def service() -> ManifestService:
    return ManifestService()


@pytest.mark.unit
def test_plan_keeps_enabled_pages_in_manifest_order(planner, service, doc_a, doc_b) -> None:
    manifest = service.build([doc_a, doc_b])
    manifest = service.reorder(manifest, list(reversed(manifest.page_ids)))
    manifest = service.toggle(manifest, "docA-page-2")
    manifest = service.rotate(manifest, "docB-page-1", degrees=270)

    plan = planner.plan(manifest, "joined")

    assert plan.entries == (
        PlanEntry("docB", 1, 0),
        PlanEntry("docB", 0, 270),
        PlanEntry("docA", 2, 0),
        PlanEntry("docA", 0, 0),
    )
    assert plan.output_name == "joined.pdf"
    assert plan.source_document_ids == ["docB", "docA"]


@pytest.mark.unit
def test_all_disabled_manifest_is_empty_selection(planner, service, doc_a) -> None:
    manifest = service.build([doc_a])
    for page_id in manifest.page_ids:
        manifest = service.toggle(manifest, page_id)

    with pytest.raises(EmptySelectionError):
        planner.plan(manifest)


@pytest.mark.unit
def test_removed_source_is_dangling_reference(
    planner, service, registry, doc_a, doc_b
) -> None:
    manifest = service.build([doc_a, doc_b])
    registry.remove(doc_b.id)

    with pytest.raises(DanglingReferenceError) as excinfo:
        planner.plan(manifest)

    assert excinfo.value.source_document_id == doc_b.id
    assert doc_b.id in excinfo.value.detail


@pytest.mark.unit
def test_plan_request_converts_to_zero_based_indices(planner) -> None:
    request = MergeRequest(
        pages=[
            {"sourceDocumentId": "docA", "pageNumber": 3, "rotation": 180},
            {"sourceDocumentId": "docA", "pageNumber": 1},
        ],
        outputName="../out.pdf",
    )

    plan = planner.plan_request(request)

    assert [(entry.page_index, entry.rotation) for entry in plan.entries] == [(2, 180), (0, 0)]
    assert plan.output_name == "out.pdf"


@pytest.mark.unit
def test_plan_request_without_pages_is_empty_selection(planner) -> None:
    with pytest.raises(EmptySelectionError):
        planner.plan_request(MergeRequest(pages=[]))


@pytest.mark.unit
def test_long_output_name_is_capped(planner) -> None:
    request = MergeRequest(
        pages=[{"sourceDocumentId": "docA", "pageNumber": 1}], outputName="q" * 240
    )

    plan = planner.plan_request(request)

    assert plan.output_name == "q" * 150 + ".pdf"


@pytest.mark.unit
def test_each_plan_gets_its_own_id(planner, service, doc_a) -> None:
    manifest = service.build([doc_a])

    assert planner.plan(manifest).plan_id != planner.plan(manifest).plan_id
