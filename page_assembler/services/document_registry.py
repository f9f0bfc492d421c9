from __future__ import annotations

import logging
import threading
import uuid

from page_assembler.adapters.pymupdf_adapter import PyMuPdfAdapter
from page_assembler.domain.errors import (
    InvalidDocumentError,
    NotFoundError,
    PageAssemblerError,
    ParsingError,
    RequestValidationError,
)
from page_assembler.domain.models import (
    OperationMessage,
    SourceDocument,
    Status,
    UploadBatchResult,
    UploadItemResult,
)
from page_assembler.infrastructure.config import AppConfig
from page_assembler.infrastructure.storage import LocalFileStore

logger = logging.getLogger(__name__)


class DocumentRegistry:
    def __init__(self, adapter: PyMuPdfAdapter, store: LocalFileStore, config: AppConfig) -> None:
        self.adapter = adapter
        self.store = store
        self.config = config
        self._documents: dict[str, SourceDocument] = {}
        self._holders: dict[str, int] = {}
        self._pending_unlink: dict[str, str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def storage_key(document_id: str) -> str:
        return f"{document_id}.pdf"

    def register(self, original_name: str, content: bytes) -> SourceDocument:
        if not original_name.lower().endswith(".pdf"):
            raise InvalidDocumentError(original_name, "only PDF files are allowed")
        if len(content) > self.config.max_pdf_size_bytes:
            raise InvalidDocumentError(
                original_name, f"exceeds per-file limit of {self.config.max_pdf_size_mb} MB"
            )
        try:
            page_count = self.adapter.get_page_count(content)
        except ParsingError as exc:
            raise InvalidDocumentError(original_name, exc.detail) from exc

        document_id = uuid.uuid4().hex
        storage_path = self.store.write(self.storage_key(document_id), content)
        document = SourceDocument(
            id=document_id,
            original_name=original_name,
            storage_path=storage_path,
            page_count=page_count,
            size_bytes=len(content),
        )
        with self._lock:
            self._documents[document_id] = document
        logger.info("Registered %s as %s (%d pages)", original_name, document_id, page_count)
        return document

    def register_batch(self, files: list[tuple[str, bytes]]) -> UploadBatchResult:
        total_size = sum(len(content) for _, content in files)
        if total_size > self.config.max_batch_size_bytes:
            raise RequestValidationError(
                f"Batch size exceeds limit of {self.config.max_batch_size_mb} MB"
            )

        items: list[UploadItemResult] = []
        for file_name, content in files:
            try:
                document = self.register(file_name, content)
            except (PageAssemblerError, OSError) as exc:
                logger.warning("Upload rejected for %s: %s", file_name, exc)
                kind = getattr(exc, "kind", "StorageError")
                items.append(
                    UploadItemResult(
                        source_name=file_name,
                        status=Status.ERROR,
                        messages=[OperationMessage(level="error", text=str(exc))],
                        error_kind=kind,
                    )
                )
                continue
            items.append(
                UploadItemResult(
                    source_name=file_name,
                    status=Status.SUCCESS,
                    document=document.summary(),
                    messages=[
                        OperationMessage(level="info", text=f"{document.page_count} page(s)")
                    ],
                )
            )
        return UploadBatchResult(items=items)

    def get(self, document_id: str) -> SourceDocument:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError(f"Document not found: {document_id}")
        return document

    def exists(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._documents

    def documents(self) -> list[SourceDocument]:
        with self._lock:
            return list(self._documents.values())

    def remove(self, document_id: str) -> None:
        with self._lock:
            document = self._documents.pop(document_id, None)
            if document is None:
                return
            if self._holders.get(document_id, 0) > 0:
                self._pending_unlink[document_id] = self.storage_key(document_id)
                logger.info("Removal of %s deferred until assemblies release it", document_id)
                return
        self.store.delete(self.storage_key(document_id))
        logger.info("Removed document %s", document_id)

    def read_bytes(self, document_id: str) -> bytes:
        key = self.storage_key(document_id)
        self.store.resolve(key)
        self.get(document_id)
        return self.store.read(key)

    def acquire(self, document_id: str) -> SourceDocument:
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise NotFoundError(f"Document not found: {document_id}")
            self._holders[document_id] = self._holders.get(document_id, 0) + 1
            return document

    def release(self, document_id: str) -> None:
        with self._lock:
            remaining = self._holders.get(document_id, 0) - 1
            if remaining > 0:
                self._holders[document_id] = remaining
                return
            self._holders.pop(document_id, None)
            key = self._pending_unlink.pop(document_id, None)
        if key is not None:
            self.store.delete(key)
            logger.info("Removed document %s after last release", document_id)

    def load_content(self, document: SourceDocument) -> bytes:
        return self.store.read(self.storage_key(document.id))
