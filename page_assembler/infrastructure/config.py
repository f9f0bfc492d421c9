from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _get_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


@dataclass(frozen=True)
class AppConfig:
    storage_dir: Path = field(
        default_factory=lambda: Path(_get_str_env("PAGE_ASSEMBLER_STORAGE_DIR", "storage"))
    )
    max_pdf_size_mb: int = field(
        default_factory=lambda: _get_int_env("PAGE_ASSEMBLER_MAX_PDF_MB", 100)
    )
    max_batch_size_mb: int = field(
        default_factory=lambda: _get_int_env("PAGE_ASSEMBLER_MAX_BATCH_MB", 200)
    )
    artifact_retention_seconds: int = field(
        default_factory=lambda: _get_int_env("PAGE_ASSEMBLER_RETENTION_SECONDS", 5)
    )
    unclaimed_artifact_seconds: int = field(
        default_factory=lambda: _get_int_env("PAGE_ASSEMBLER_UNCLAIMED_SECONDS", 3600)
    )
    log_level: str = field(
        default_factory=lambda: _get_str_env("PAGE_ASSEMBLER_LOG_LEVEL", "INFO").upper()
    )
    default_output_name: str = "merged.pdf"

    @property
    def uploads_dir(self) -> Path:
        return Path(self.storage_dir) / "uploads"

    @property
    def outputs_dir(self) -> Path:
        return Path(self.storage_dir) / "outputs"

    @property
    def max_pdf_size_bytes(self) -> int:
        return self.max_pdf_size_mb * 1024 * 1024

    @property
    def max_batch_size_bytes(self) -> int:
        return self.max_batch_size_mb * 1024 * 1024
