"""
Failure kinds raised by the receipt scanning pipeline.

Every failure is one of a closed set of exception classes, each carrying a
human-readable message and optional diagnostics. Callers match on the class
(or on the ``kind`` tag) instead of on a generic error.
"""

from typing import List, Optional


class ReceiptProcessingFailure(Exception):
    """Base class for all pipeline failures."""
    kind = "unknown"

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        if original_error is not None:
            self.__cause__ = original_error

    def __str__(self):
        return f"{type(self).__name__}: {self.message}"


class PdfRenderingFailure(ReceiptProcessingFailure):
    """The PDF could not be opened or rendered."""
    kind = "pdf_rendering"

    def __init__(self, message: str, file_path: Optional[str] = None,
                 original_error: Optional[BaseException] = None):
        super().__init__(message, original_error)
        self.file_path = file_path


class OcrExtractionFailure(ReceiptProcessingFailure):
    """A text recognition engine failed on an image."""
    kind = "ocr_extraction"

    def __init__(self, message: str, image_path: Optional[str] = None,
                 language: Optional[str] = None,
                 original_error: Optional[BaseException] = None):
        super().__init__(message, original_error)
        self.image_path = image_path
        self.language = language


class ParsingFailure(ReceiptProcessingFailure):
    """Recognized text could not be turned into a usable receipt.

    ``partial_result`` holds whatever was extracted so the amount can be
    entered manually instead of re-scanning.
    """
    kind = "parsing"

    def __init__(self, message: str, raw_text: Optional[str] = None,
                 partial_result=None,
                 original_error: Optional[BaseException] = None):
        super().__init__(message, original_error)
        self.raw_text = raw_text
        self.partial_result = partial_result


class StorageFailure(ReceiptProcessingFailure):
    """The persistence collaborator rejected the transaction."""
    kind = "storage"

    def __init__(self, message: str, db_path: Optional[str] = None,
                 original_error: Optional[BaseException] = None):
        super().__init__(message, original_error)
        self.db_path = db_path


class FileOperationFailure(ReceiptProcessingFailure):
    """Reading or writing a file failed."""
    kind = "file_operation"

    def __init__(self, message: str, file_path: Optional[str] = None,
                 original_error: Optional[BaseException] = None):
        super().__init__(message, original_error)
        self.file_path = file_path


class EmptyTextFailure(ReceiptProcessingFailure):
    """No text could be extracted from the image."""
    kind = "empty_text"

    def __init__(self, message: str = "No text could be extracted from the image",
                 original_error: Optional[BaseException] = None):
        super().__init__(message, original_error)


class EngineConfigFailure(ReceiptProcessingFailure):
    """A recognition engine is not usable, e.g. trained data files are missing."""
    kind = "engine_config"

    def __init__(self, message: str, missing_languages: Optional[List[str]] = None,
                 original_error: Optional[BaseException] = None):
        super().__init__(message, original_error)
        self.missing_languages = list(missing_languages or [])


FAILURE_KINDS = (
    PdfRenderingFailure,
    OcrExtractionFailure,
    ParsingFailure,
    StorageFailure,
    FileOperationFailure,
    EmptyTextFailure,
    EngineConfigFailure,
)
