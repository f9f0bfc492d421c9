from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from page_assembler.domain.errors import AssemblyFailedError


class Status(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class PageFlag(str, Enum):
    BLANK = "blank"
    BLACK = "black"


class AssemblyState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AssemblyState.SUCCEEDED, AssemblyState.FAILED)


def size_in_kb(size_bytes: int) -> int:
    return int(size_bytes / 1024 + 0.5)


@dataclass(frozen=True)
class DocumentSummary:
    id: str
    original_name: str
    page_count: int
    file_size_kb: int


@dataclass(frozen=True)
class SourceDocument:
    id: str
    original_name: str
    storage_path: Path
    page_count: int
    size_bytes: int

    @property
    def file_size_kb(self) -> int:
        return size_in_kb(self.size_bytes)

    def summary(self) -> DocumentSummary:
        return DocumentSummary(
            id=self.id,
            original_name=self.original_name,
            page_count=self.page_count,
            file_size_kb=self.file_size_kb,
        )


def page_id_for(source_document_id: str, page_number: int) -> str:
    return f"{source_document_id}-page-{page_number}"


@dataclass(frozen=True)
class PageRef:
    page_id: str
    source_document_id: str
    page_number: int
    rotation: int = 0
    enabled: bool = True
    flags: frozenset[PageFlag] = frozenset()


@dataclass(frozen=True)
class PageSummary:
    page_id: str
    source_document_id: str
    original_name: str
    page_number: int
    rotation: int
    enabled: bool
    flags: list[str]


@dataclass(frozen=True)
class PageManifest:
    pages: tuple[PageRef, ...] = ()

    def __len__(self) -> int:
        return len(self.pages)

    def __iter__(self):
        return iter(self.pages)

    @property
    def page_ids(self) -> list[str]:
        return [page.page_id for page in self.pages]

    @property
    def enabled_pages(self) -> list[PageRef]:
        return [page for page in self.pages if page.enabled]


@dataclass(frozen=True)
class PageDetection:
    source_document_id: str
    page_number: int
    kind: PageFlag
    confidence: float | None = None


@dataclass(frozen=True)
class PlanEntry:
    source_document_id: str
    page_index: int
    rotation: int = 0

    @property
    def page_number(self) -> int:
        return self.page_index + 1


@dataclass(frozen=True)
class MergePlan:
    entries: tuple[PlanEntry, ...]
    output_name: str = "merged.pdf"
    plan_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def page_count(self) -> int:
        return len(self.entries)

    @property
    def source_document_ids(self) -> list[str]:
        return list(dict.fromkeys(entry.source_document_id for entry in self.entries))


@dataclass(frozen=True)
class Artifact:
    artifact_id: str
    download_name: str
    size_bytes: int
    created_at: float

    @property
    def file_size_kb(self) -> int:
        return size_in_kb(self.size_bytes)


@dataclass(frozen=True)
class AssemblyResult:
    plan_id: str
    state: AssemblyState
    output_name: str
    output_artifact_id: str | None = None
    size_bytes: int = 0
    page_count: int = 0
    error_kind: str | None = None
    error_detail: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == AssemblyState.SUCCEEDED

    @property
    def file_size_kb(self) -> int:
        return size_in_kb(self.size_bytes)

    def raise_for_status(self) -> None:
        if not self.succeeded:
            raise AssemblyFailedError(self.error_detail or "Assembly failed")


@dataclass(frozen=True)
class OperationMessage:
    level: str
    text: str


@dataclass(frozen=True)
class UploadItemResult:
    source_name: str
    status: Status
    document: DocumentSummary | None = None
    messages: list[OperationMessage] = field(default_factory=list)
    error_kind: str | None = None


@dataclass(frozen=True)
class UploadBatchResult:
    items: list[UploadItemResult]

    @property
    def documents(self) -> list[DocumentSummary]:
        return [item.document for item in self.items if item.document is not None]

    @property
    def success_count(self) -> int:
        return len([item for item in self.items if item.status == Status.SUCCESS])

    @property
    def error_count(self) -> int:
        return len([item for item in self.items if item.status == Status.ERROR])


@dataclass(frozen=True)
class CleanupReport:
    removed: list[str] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)
