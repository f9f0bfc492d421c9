from __future__ import annotations

import logging
import threading
from collections import OrderedDict

import fitz  # type: ignore[import-untyped]

from page_assembler.adapters.pymupdf_adapter import PyMuPdfAdapter
from page_assembler.domain.errors import AssemblyFailedError, NotFoundError, ParsingError
from page_assembler.domain.models import AssemblyResult, AssemblyState, MergePlan, SourceDocument
from page_assembler.services.artifact_store import ArtifactStore
from page_assembler.services.document_registry import DocumentRegistry

logger = logging.getLogger(__name__)

CONSUMED_PLAN_HISTORY = 4096

_TRANSITIONS = {
    AssemblyState.PENDING: {AssemblyState.RUNNING, AssemblyState.FAILED},
    AssemblyState.RUNNING: {AssemblyState.SUCCEEDED, AssemblyState.FAILED},
}


class AssemblyRun:
    def __init__(self, plan: MergePlan) -> None:
        self.plan = plan
        self.state = AssemblyState.PENDING

    def advance(self, new_state: AssemblyState) -> None:
        if new_state not in _TRANSITIONS.get(self.state, set()):
            raise AssemblyFailedError(f"Illegal assembly transition {self.state} -> {new_state}")
        self.state = new_state


def _reason(exc: Exception) -> str:
    if isinstance(exc, OSError):
        return exc.strerror or exc.__class__.__name__
    return str(exc)


class AssemblyEngine:
    def __init__(
        self,
        registry: DocumentRegistry,
        adapter: PyMuPdfAdapter,
        artifacts: ArtifactStore,
        consumed_history: int = CONSUMED_PLAN_HISTORY,
    ) -> None:
        self.registry = registry
        self.adapter = adapter
        self.artifacts = artifacts
        self.consumed_history = consumed_history
        self._consumed: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def assemble(
        self, plan: MergePlan, cancel_event: threading.Event | None = None
    ) -> AssemblyResult:
        run = AssemblyRun(plan)
        with self._lock:
            already_consumed = plan.plan_id in self._consumed
            self._consumed[plan.plan_id] = None
            if len(self._consumed) > self.consumed_history:
                self._consumed.popitem(last=False)
        if already_consumed:
            run.advance(AssemblyState.FAILED)
            return self._failed(run, f"Plan {plan.plan_id} was already assembled")

        run.advance(AssemblyState.RUNNING)
        held: dict[str, SourceDocument] = {}
        handles: dict[str, fitz.Document] = {}
        output = self.adapter.new_document()
        try:
            for source_document_id in plan.source_document_ids:
                try:
                    held[source_document_id] = self.registry.acquire(source_document_id)
                except NotFoundError as exc:
                    position, entry = next(
                        (position, entry)
                        for position, entry in enumerate(plan.entries, start=1)
                        if entry.source_document_id == source_document_id
                    )
                    raise AssemblyFailedError(
                        f"Entry {position} (source {source_document_id}, "
                        f"page {entry.page_number}): source is no longer available"
                    ) from exc

            for position, entry in enumerate(plan.entries, start=1):
                if cancel_event is not None and cancel_event.is_set():
                    raise AssemblyFailedError(f"Assembly cancelled before entry {position}")
                try:
                    source = handles.get(entry.source_document_id)
                    if source is None:
                        content = self.registry.load_content(held[entry.source_document_id])
                        source = self.adapter.open_document(content)
                        handles[entry.source_document_id] = source
                    self.adapter.append_page(output, source, entry.page_index, entry.rotation)
                except (ParsingError, NotFoundError, OSError) as exc:
                    raise AssemblyFailedError(
                        f"Entry {position} (source {entry.source_document_id}, "
                        f"page {entry.page_number}): {_reason(exc)}"
                    ) from exc

            try:
                data = self.adapter.serialize(output)
            except ParsingError as exc:
                raise AssemblyFailedError(str(exc)) from exc
            if cancel_event is not None and cancel_event.is_set():
                raise AssemblyFailedError("Assembly cancelled before output was stored")
            try:
                artifact = self.artifacts.save(plan.output_name, data)
            except OSError as exc:
                raise AssemblyFailedError(f"Unable to store output: {_reason(exc)}") from exc
        except AssemblyFailedError as exc:
            run.advance(AssemblyState.FAILED)
            return self._failed(run, exc.detail)
        finally:
            for handle in handles.values():
                handle.close()
            output.close()
            for source_document_id in held:
                self.registry.release(source_document_id)

        run.advance(AssemblyState.SUCCEEDED)
        logger.info(
            "Assembled plan %s into %s (%d pages, %d bytes)",
            plan.plan_id,
            artifact.artifact_id,
            plan.page_count,
            artifact.size_bytes,
        )
        return AssemblyResult(
            plan_id=plan.plan_id,
            state=run.state,
            output_name=artifact.download_name,
            output_artifact_id=artifact.artifact_id,
            size_bytes=artifact.size_bytes,
            page_count=plan.page_count,
        )

    @staticmethod
    def _failed(run: AssemblyRun, detail: str) -> AssemblyResult:
        logger.warning("Assembly of plan %s failed: %s", run.plan.plan_id, detail)
        return AssemblyResult(
            plan_id=run.plan.plan_id,
            state=run.state,
            output_name=run.plan.output_name,
            error_kind=AssemblyFailedError.kind,
            error_detail=detail,
        )
