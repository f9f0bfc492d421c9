from __future__ import annotations

from pathlib import Path
from typing import Callable

import fitz
import pytest

from page_assembler.domain.models import SourceDocument
from page_assembler.infrastructure.config import AppConfig
from page_assembler.services.merge_api import MergeApi


class ManualScheduler:
    """Collects retention callbacks so tests decide when artifacts expire."""

    def __init__(self) -> None:
        self.pending: list[tuple[float, Callable[[], None]]] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> None:
        self.pending.append((delay, callback))

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for _, callback in pending:
            callback()


@pytest.fixture
def pdf_factory() -> Callable[[list[str]], bytes]:
    def build(labels: list[str]) -> bytes:
        document = fitz.open()
        try:
            for label in labels:
                page = document.new_page()
                page.insert_text((72, 72), label)
            return document.tobytes(deflate=True, garbage=3)
        finally:
            document.close()

    return build


@pytest.fixture
def read_pages() -> Callable[[bytes], list[tuple[str, int]]]:
    def read(pdf_bytes: bytes) -> list[tuple[str, int]]:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as document:
            return [(page.get_text("text").strip(), page.rotation) for page in document]

    return read


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        storage_dir=tmp_path / "storage",
        max_pdf_size_mb=50,
        max_batch_size_mb=100,
        artifact_retention_seconds=5,
        log_level="DEBUG",
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def api(app_config: AppConfig, scheduler: ManualScheduler) -> MergeApi:
    return MergeApi.from_config(app_config, scheduler=scheduler)


@pytest.fixture
def doc_a(api: MergeApi, pdf_factory) -> SourceDocument:
    return api.registry.register("a.pdf", pdf_factory(["A1", "A2", "A3"]))


@pytest.fixture
def doc_b(api: MergeApi, pdf_factory) -> SourceDocument:
    return api.registry.register("b.pdf", pdf_factory(["B1", "B2"]))
