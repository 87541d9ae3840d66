from .settings import MAX_FILE_MB

# --- error messages & codes ---
ERR = {
    "not_arrays": "Questions and answers must be arrays",
    "no_questions": "At least one question is required",
    "invalid_question": "Invalid question structure",
    "invalid_answer": "Invalid answer structure",
    "document_not_found": "Document not found",
    "test_not_found": "Test not found",
    "invalid_ext": "Invalid file format: {name}. Please upload .txt, .pdf, .docx, .pptx or .rtf",
    "file_too_big": f"File size exceeds {MAX_FILE_MB}MB limit",
    "mime_mismatch": "File content does not match its extension.",
    "zip_bomb": "Office file appears malformed or overly compressed (possible zip bomb).",
    "pdf_encrypted": "This PDF is password-protected and cannot be processed.",
    "file_missing": "File not found",
    "extraction_failed": "No text content could be extracted from the file",
    "store_unreadable": "Document store could not be read",
    "store_closed": "Document store is not open",
    "store_unwritable": "Document store could not be written",
    "no_api_key": "OpenAI API key is not configured",
    "provider_failed": "The language model request failed",
    "malformed_response": "The language model returned a response that could not be parsed",
}


class DocquizError(Exception):
    """Base error: a human-readable message plus an optional detail string."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        out = {"error": self.message}
        if self.detail:
            out["details"] = self.detail
        return out

    def __str__(self) -> str:
        return f"{self.message}: {self.detail}" if self.detail else self.message


class InvalidSubmission(DocquizError):
    pass

class DocumentNotFound(DocquizError):
    pass

class UnsupportedFileType(DocquizError):
    pass

class FileTooLarge(DocquizError):
    pass

class ContentMismatch(DocquizError):
    pass

class ExtractionFailed(DocquizError):
    pass

class StoreError(DocquizError):
    pass


class ProviderUnavailable(DocquizError):
    """LLM call could not be made or failed; callers fall back."""


class MalformedProviderResponse(DocquizError):
    """LLM text could not be parsed into the expected schema."""

    def __init__(self, message: str, detail: str | None = None, raw: str = ""):
        super().__init__(message, detail)
        self.raw = raw
