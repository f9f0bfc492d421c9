from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

from page_assembler.domain.errors import AccessDeniedError, NotFoundError

logger = logging.getLogger(__name__)


MAX_NAME_STEM = 150


def safe_file_name(name: str, default: str = "merged.pdf") -> str:
    clean = name.replace("\\", "/").split("/")[-1]
    clean = re.sub(r"[^A-Za-z0-9._() -]", "_", clean).strip().lstrip(".")
    suffix = ".pdf"
    if clean.lower().endswith(suffix):
        clean, suffix = clean[:-4], clean[-4:]
    # stored keys carry a uuid prefix and must stay under the 255-byte name limit
    clean = clean[:MAX_NAME_STEM].rstrip()
    if not clean:
        return default
    return f"{clean}{suffix}"


class LocalFileStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._resolved_root = self.root.resolve()

    def resolve(self, key: str) -> Path:
        if not key or "\x00" in key:
            raise AccessDeniedError("Access denied")
        try:
            candidate = (self._resolved_root / key).resolve()
        except (OSError, ValueError) as exc:
            raise AccessDeniedError("Access denied") from exc
        if candidate == self._resolved_root or self._resolved_root not in candidate.parents:
            logger.warning("Rejected storage key outside %s", self.root.name)
            raise AccessDeniedError("Access denied")
        return candidate

    def write(self, key: str, data: bytes) -> Path:
        target = self.resolve(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        handle, temp_name = tempfile.mkstemp(dir=target.parent, prefix=".partial-")
        try:
            with os.fdopen(handle, "wb") as stream:
                stream.write(data)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        logger.debug("Stored %d bytes at %s", len(data), target)
        return target

    def read(self, key: str) -> bytes:
        target = self.resolve(key)
        if not target.is_file():
            raise NotFoundError("File not found")
        return target.read_bytes()

    def exists(self, key: str) -> bool:
        return self.resolve(key).is_file()

    def delete(self, key: str) -> bool:
        target = self.resolve(key)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Deleted %s", target)
        return True

    def keys(self) -> list[str]:
        return sorted(
            path.name
            for path in self.root.iterdir()
            if path.is_file() and not path.name.startswith(".partial-")
        )
