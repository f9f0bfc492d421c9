from __future__ import annotations

from typing import cast

import fitz  # type: ignore[import-untyped]

from page_assembler.domain.errors import ParsingError

VALID_ROTATIONS = (0, 90, 180, 270)


class PyMuPdfAdapter:
    @staticmethod
    def _optimized_bytes(document: fitz.Document) -> bytes:
        return cast(
            bytes,
            document.tobytes(
                garbage=4,
                clean=True,
                deflate=True,
                deflate_images=True,
                deflate_fonts=True,
            ),
        )

    def get_page_count(self, pdf_bytes: bytes) -> int:
        if b"%PDF-" not in pdf_bytes[:1024]:
            raise ParsingError("Missing PDF header")
        try:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as document:
                if document.needs_pass:
                    raise ParsingError("PDF is password protected")
                return int(document.page_count)
        except ParsingError:
            raise
        except Exception as exc:
            raise ParsingError("Unable to read PDF page count") from exc

    def render_page_thumbnail(
        self,
        pdf_bytes: bytes,
        page_index: int,
        zoom: float = 0.45,
        rotation: int | None = None,
    ) -> bytes:
        try:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as document:
                page = document[page_index]
                if rotation is not None:
                    page.set_rotation(rotation)
                matrix = fitz.Matrix(zoom, zoom)
                pixmap = page.get_pixmap(matrix=matrix, alpha=False)
                return cast(bytes, pixmap.tobytes("png"))
        except Exception as exc:
            raise ParsingError("Unable to render page thumbnail") from exc

    def open_document(self, pdf_bytes: bytes) -> fitz.Document:
        try:
            document = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as exc:
            raise ParsingError("Unable to open source PDF") from exc
        if document.needs_pass:
            document.close()
            raise ParsingError("PDF is password protected")
        return document

    def new_document(self) -> fitz.Document:
        return fitz.open()

    def append_page(
        self, output: fitz.Document, source: fitz.Document, page_index: int, rotation: int
    ) -> None:
        """Copy one source page to the end of ``output`` with an absolute rotation."""
        if rotation not in VALID_ROTATIONS:
            raise ParsingError(f"Unsupported rotation {rotation}")
        if page_index < 0 or page_index >= source.page_count:
            raise ParsingError(
                f"Page index {page_index} out of range for a {source.page_count}-page document"
            )
        try:
            output.insert_pdf(source, from_page=page_index, to_page=page_index)
            output[output.page_count - 1].set_rotation(rotation)
        except Exception as exc:
            raise ParsingError(f"Unable to copy page index {page_index}") from exc

    def serialize(self, document: fitz.Document) -> bytes:
        if document.page_count == 0:
            raise ParsingError("Cannot serialize a document without pages")
        try:
            return self._optimized_bytes(document)
        except Exception as exc:
            raise ParsingError("Unable to serialize merged PDF") from exc
