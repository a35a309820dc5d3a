"""
Text recognition engines.

Both engines implement the same small interface (``name``,
``extract_text(image_path)``, ``close()``) so the orchestrator can swap them:

- GeneralTesseractEngine: fast pass with the stock language models.
- CyrillicTesseractEngine: slower pass tuned for Cyrillic/Kazakh receipts,
  using the configured tessdata directory, or the system models when none
  is configured.
"""

from pathlib import Path
from typing import List, Optional, Union

from ..logging import get_logger
from .config import PipelineConfig
from .failures import EngineConfigFailure, OcrExtractionFailure

log = get_logger(__name__)


def _lazy_import_ocr_deps():
    """Lazy import heavy OCR dependencies."""
    global pytesseract, PIL_Image, PIL_ImageOps
    import importlib
    pytesseract = importlib.import_module("pytesseract")
    PIL_Image = importlib.import_module("PIL.Image")
    PIL_ImageOps = importlib.import_module("PIL.ImageOps")


# Initialize on first use
pytesseract = None
PIL_Image = None
PIL_ImageOps = None


class TextEngine:
    """Interface of a text recognition engine."""
    name = "engine"

    def extract_text(self, image_path: Union[str, Path]) -> str:
        raise NotImplementedError

    def close(self) -> None:
        """Release recognizer resources."""


class TesseractEngine(TextEngine):
    """Tesseract through pytesseract."""
    name = "tesseract"
    psm = 3

    def __init__(self, languages: str, tessdata_dir: Optional[Path] = None):
        self.languages = languages
        self.tessdata_dir = Path(tessdata_dir) if tessdata_dir else None
        self._ready = False
        self.closed = False

    def _config(self) -> str:
        parts = [f"--psm {self.psm}", "-c preserve_interword_spaces=1"]
        if self.tessdata_dir:
            parts.insert(0, f'--tessdata-dir "{self.tessdata_dir.as_posix()}"')
        return " ".join(parts)

    def missing_languages(self) -> List[str]:
        """Languages with no trained data available."""
        wanted = [lang for lang in self.languages.split("+") if lang]
        if self.tessdata_dir:
            return [lang for lang in wanted
                    if not (self.tessdata_dir / f"{lang}.traineddata").is_file()]
        installed = set(pytesseract.get_languages(config=""))
        return [lang for lang in wanted if lang not in installed]

    def open(self) -> None:
        """Check that Tesseract and its trained data are usable."""
        if self._ready:
            return
        if pytesseract is None:
            _lazy_import_ocr_deps()

        if self.tessdata_dir is not None and not self.tessdata_dir.is_dir():
            raise EngineConfigFailure(f"{self.name}: tessdata directory not found: {self.tessdata_dir}",
                                      missing_languages=self.languages.split("+"))
        try:
            missing = self.missing_languages()
        except pytesseract.TesseractNotFoundError as e:
            raise EngineConfigFailure("Tesseract is not installed or not on PATH",
                                      original_error=e) from e
        if missing:
            raise EngineConfigFailure(f"{self.name}: missing trained data for {', '.join(missing)}",
                                      missing_languages=missing)

        self._ready = True
        self.closed = False
        log.debug(f"{self.name} engine ready ({self.languages})")

    def prepare_image(self, img):
        """Image preprocessing before recognition."""
        if img.mode != "L":
            img = img.convert("L")
        return img

    def extract_text(self, image_path: Union[str, Path]) -> str:
        """
        Recognize the text of an image file.

        Raises:
            OcrExtractionFailure: file missing or recognition failed
            EngineConfigFailure: Tesseract or its trained data are unavailable
        """
        self.open()

        image_path = Path(image_path)
        if not image_path.is_file():
            raise OcrExtractionFailure("Image file not found", image_path=str(image_path),
                                       language=self.languages)

        try:
            with PIL_Image.open(image_path) as img:
                prepared = self.prepare_image(img)
                text = pytesseract.image_to_string(prepared, lang=self.languages, config=self._config())
        except pytesseract.TesseractNotFoundError as e:
            raise EngineConfigFailure("Tesseract is not installed or not on PATH",
                                      original_error=e) from e
        except Exception as e:
            raise OcrExtractionFailure(f"{self.name} recognition failed: {e}",
                                       image_path=str(image_path), language=self.languages,
                                       original_error=e) from e

        text = (text or "").strip()
        log.debug(f"{self.name} extracted {len(text)} characters from {image_path.name}")
        return text

    def close(self) -> None:
        self._ready = False
        self.closed = True


class GeneralTesseractEngine(TesseractEngine):
    """Fast general-purpose pass."""
    name = "general"
    psm = 3


class CyrillicTesseractEngine(TesseractEngine):
    """Receipt-tuned pass for Cyrillic and Kazakh text."""
    name = "cyrillic"
    psm = 6
    min_width = 1000

    def prepare_image(self, img):
        img = super().prepare_image(img)
        img = PIL_ImageOps.autocontrast(img)
        if img.width < self.min_width:
            factor = self.min_width / float(img.width)
            img = img.resize((self.min_width, int(img.height * factor)), PIL_Image.LANCZOS)
        return img


def make_primary_engine(config: PipelineConfig) -> TextEngine:
    return GeneralTesseractEngine(config.primary_languages)


def make_fallback_engine(config: PipelineConfig) -> TextEngine:
    return CyrillicTesseractEngine(config.fallback_languages, tessdata_dir=config.tessdata_dir)
