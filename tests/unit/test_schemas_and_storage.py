import pytest
from pydantic import ValidationError

from page_assembler.domain.errors import AccessDeniedError, NotFoundError
from page_assembler.domain.schemas import DetectionReport, MergeRequest
from page_assembler.infrastructure.storage import MAX_NAME_STEM, LocalFileStore, safe_file_name


@pytest.mark.unit
def test_merge_request_accepts_camel_case_and_normalizes_rotation() -> None:
    request = MergeRequest.model_validate(
        {
            "pages": [
                {"sourceDocumentId": "abc", "pageNumber": 2, "rotation": 450},
                {"source_document_id": "abc", "page_number": 1, "rotation": -90},
            ],
            "outputName": "report.pdf",
        }
    )

    assert [page.rotation for page in request.pages] == [90, 270]
    assert request.pages[0].page_number == 2
    assert request.output_name == "report.pdf"


@pytest.mark.unit
@pytest.mark.parametrize(
    "page",
    [
        {"sourceDocumentId": "abc", "pageNumber": 0},
        {"sourceDocumentId": "abc", "pageNumber": 1, "rotation": 45},
        {"sourceDocumentId": "", "pageNumber": 1},
        {"pageNumber": 1},
    ],
)
def test_merge_request_rejects_malformed_pages(page) -> None:
    with pytest.raises(ValidationError):
        MergeRequest.model_validate({"pages": [page]})


@pytest.mark.unit
def test_detection_report_requires_known_flag() -> None:
    report = DetectionReport.model_validate(
        {"sourceDocumentId": "abc", "pageNumber": 3, "kind": "black", "confidence": 0.4}
    )
    assert report.kind.value == "black"

    with pytest.raises(ValidationError):
        DetectionReport.model_validate({"sourceDocumentId": "abc", "pageNumber": 3, "kind": "red"})


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("../../unsafe\\path/evil?.pdf", "evil_.pdf"),
        ("quarterly report", "quarterly report.pdf"),
        ("..", "merged.pdf"),
        ("", "merged.pdf"),
        ("Summary.PDF", "Summary.PDF"),
    ],
)
def test_safe_file_name(raw, expected) -> None:
    assert safe_file_name(raw) == expected


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["q" * 240, "q" * 300 + ".pdf"])
def test_safe_file_name_caps_long_names(raw) -> None:
    name = safe_file_name(raw)

    assert name == "q" * MAX_NAME_STEM + ".pdf"
    assert len(f"{'0' * 32}-{name}".encode()) < 255


@pytest.mark.unit
@pytest.mark.parametrize(
    "key", ["../secret.pdf", "../../etc/passwd", "/etc/passwd", "a/../../x.pdf", "", "."]
)
def test_store_rejects_keys_outside_root(tmp_path, key) -> None:
    secret = tmp_path / "secret.pdf"
    secret.write_bytes(b"top secret")
    store = LocalFileStore(tmp_path / "uploads")

    with pytest.raises(AccessDeniedError):
        store.read(key)
    with pytest.raises(AccessDeniedError):
        store.delete(key)
    assert secret.read_bytes() == b"top secret"


@pytest.mark.unit
def test_store_round_trip_and_missing_key(tmp_path) -> None:
    store = LocalFileStore(tmp_path / "outputs")

    store.write("one.pdf", b"%PDF-1.7")

    assert store.read("one.pdf") == b"%PDF-1.7"
    assert store.keys() == ["one.pdf"]
    assert store.delete("one.pdf") is True
    assert store.delete("one.pdf") is False
    with pytest.raises(NotFoundError):
        store.read("one.pdf")
