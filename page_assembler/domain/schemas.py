from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from page_assembler.domain.models import PageFlag


class MergePageSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_document_id: str = Field(..., min_length=1, alias="sourceDocumentId")
    page_number: int = Field(..., ge=1, alias="pageNumber", description="1-based page number")
    rotation: int = Field(default=0, description="Absolute rotation in degrees")

    @field_validator("rotation")
    @classmethod
    def _rotation_quarter_turns(cls, value: int) -> int:
        if value % 90 != 0:
            raise ValueError("rotation must be a multiple of 90")
        return value % 360


class MergeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pages: list[MergePageSpec] = Field(default_factory=list)
    output_name: str = Field(default="merged.pdf", alias="outputName", max_length=255)


class MergeResponse(BaseModel):
    success: bool
    output_artifact_id: str | None = None
    file_size_kb: int | None = None
    download_locator: str | None = None
    error_kind: str | None = None
    detail: str | None = None


class DetectionReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_document_id: str = Field(..., alias="sourceDocumentId")
    page_number: int = Field(..., ge=1, alias="pageNumber")
    kind: PageFlag
    confidence: float | None = None


class CleanupRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)
