class PageAssemblerError(Exception):
    kind = "Error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ParsingError(PageAssemblerError):
    kind = "ParsingError"


class InvalidDocumentError(PageAssemblerError):
    kind = "InvalidDocument"

    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"{file_name}: {reason}")
        self.file_name = file_name


class NotFoundError(PageAssemblerError):
    kind = "NotFound"


class InconsistentManifestError(PageAssemblerError):
    kind = "InconsistentManifest"


class EmptySelectionError(PageAssemblerError):
    kind = "EmptySelection"


class DanglingReferenceError(PageAssemblerError):
    kind = "DanglingReference"

    def __init__(self, source_document_id: str) -> None:
        super().__init__(f"Source document no longer exists: {source_document_id}")
        self.source_document_id = source_document_id


class AssemblyFailedError(PageAssemblerError):
    kind = "AssemblyFailed"


class AccessDeniedError(PageAssemblerError):
    kind = "AccessDenied"


class RequestValidationError(PageAssemblerError):
    kind = "InvalidRequest"
