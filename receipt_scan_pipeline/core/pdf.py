"""
PDF to image rendering for bank statement receipts.

OCR engines only read images, so page 1 of an exported PDF (Kaspi, Halyk)
is rasterized first.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..logging import get_logger
from .config import DEFAULT_RENDER_SCALE
from .failures import PdfRenderingFailure

log = get_logger(__name__)


def _lazy_import_pdf_deps():
    """Lazy import PyMuPDF."""
    global fitz
    import importlib
    fitz = importlib.import_module("fitz")  # pymupdf


# Initialize on first use
fitz = None


def render_pdf_to_image(pdf_path: Union[str, Path], temp_dir: Optional[Path] = None,
                        scale: float = DEFAULT_RENDER_SCALE) -> Path:
    """
    Render the first page of a PDF to a temporary PNG file.

    Args:
        pdf_path: PDF file (e.g. a Kaspi or Halyk export)
        temp_dir: Directory for the image (system temp directory if None)
        scale: Oversampling factor over the page's point size

    Returns:
        Path of the PNG; the caller removes it with cleanup_temp_file()

    Raises:
        PdfRenderingFailure: file missing, unreadable, empty or not renderable
    """
    if fitz is None:
        _lazy_import_pdf_deps()

    pdf_path = Path(pdf_path)
    if not pdf_path.is_file():
        raise PdfRenderingFailure("PDF file not found", file_path=str(pdf_path))

    doc = None
    out_path = None
    try:
        doc = fitz.open(pdf_path.as_posix())
        if doc.page_count == 0:
            raise PdfRenderingFailure("PDF has no pages", file_path=str(pdf_path))

        page = doc.load_page(0)
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)

        fd, name = tempfile.mkstemp(prefix="receipt_", suffix=".png",
                                    dir=str(temp_dir) if temp_dir else None)
        os.close(fd)
        out_path = Path(name)
        pix.save(out_path.as_posix())
        log.debug(f"Rendered {pdf_path.name} page 1 at {scale}x to {out_path}")
        return out_path
    except PdfRenderingFailure:
        raise
    except Exception as e:
        if out_path is not None:
            cleanup_temp_file(out_path)
        raise PdfRenderingFailure(f"Could not render PDF: {e}", file_path=str(pdf_path),
                                  original_error=e) from e
    finally:
        if doc is not None:
            doc.close()


def cleanup_temp_file(path: Optional[Union[str, Path]]) -> None:
    """Delete a rendered image. Failures are logged and ignored."""
    if path is None:
        return
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        log.debug(f"Could not remove temp file {path}: {e}")
