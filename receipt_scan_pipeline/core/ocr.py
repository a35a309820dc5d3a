"""
Hybrid OCR: run the fast engine, judge its output, and fall back to the
Cyrillic-tuned engine only when the first result looks unusable.
"""

import re
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..logging import get_logger
from .config import DEFAULT_MIN_TEXT_LENGTH
from .engines import TextEngine
from .failures import (EmptyTextFailure, EngineConfigFailure, OcrExtractionFailure,
                       ReceiptProcessingFailure)

log = get_logger(__name__)

# Words that appear on nearly every receipt or bank payment confirmation.
RECEIPT_KEYWORDS = (
    "итого", "итог", "сумма", "всего", "оплачено", "оплата", "чек", "барлығы",
    "успешно", "покупки", "тенге", "₸", "kzt",
    "total", "paid", "sum", "amount", "receipt",
    "kaspi", "halyk", "homebank",
)

AMOUNT_SHAPE_RE = re.compile(r"\d{2,}(?:[.,]\d{1,2})?")

# Quality score weights.
LENGTH_CAP = 500
LENGTH_DIVISOR = 10
KEYWORD_WEIGHT = 10
AMOUNT_WEIGHT = 5


def matched_keywords(text: str) -> List[str]:
    t = text.lower()
    return [k for k in RECEIPT_KEYWORDS if k in t]


def has_amount_shape(text: str) -> bool:
    return AMOUNT_SHAPE_RE.search(text) is not None


def needs_fallback(text: str, min_text_length: int = DEFAULT_MIN_TEXT_LENGTH) -> bool:
    """True when text from the primary engine is too poor to trust alone."""
    text = (text or "").strip()
    if not text:
        return True
    if len(text) < min_text_length:
        log.debug(f"Primary text too short ({len(text)} < {min_text_length})")
        return True
    if not matched_keywords(text):
        log.debug("Primary text has no receipt keywords")
        return True
    if not has_amount_shape(text):
        log.debug("Primary text has no amount-like numbers")
        return True
    return False


def score_text(text: str) -> float:
    """Quality score: capped length, receipt keywords and amount-like numbers."""
    text = text or ""
    length_part = min(len(text), LENGTH_CAP) / LENGTH_DIVISOR
    keyword_part = KEYWORD_WEIGHT * len(matched_keywords(text))
    amount_part = AMOUNT_WEIGHT * len(AMOUNT_SHAPE_RE.findall(text))
    return length_part + keyword_part + amount_part


class OcrOrchestrator:
    """
    Owns the two engines and picks the best text for an image.

    Engines are built on first use through the given factories and reused
    until close().
    """

    def __init__(self, primary_factory: Callable[[], TextEngine],
                 fallback_factory: Callable[[], TextEngine],
                 min_text_length: int = DEFAULT_MIN_TEXT_LENGTH):
        self._primary_factory = primary_factory
        self._fallback_factory = fallback_factory
        self.min_text_length = min_text_length
        self._primary: Optional[TextEngine] = None
        self._fallback: Optional[TextEngine] = None

    @classmethod
    def from_config(cls, config) -> "OcrOrchestrator":
        from .engines import make_fallback_engine, make_primary_engine
        return cls(lambda: make_primary_engine(config),
                   lambda: make_fallback_engine(config),
                   min_text_length=config.min_text_length)

    @property
    def primary(self) -> TextEngine:
        if self._primary is None:
            self._primary = self._primary_factory()
        return self._primary

    @property
    def fallback(self) -> TextEngine:
        if self._fallback is None:
            self._fallback = self._fallback_factory()
        return self._fallback

    def _run(self, which: str, image_path: Path, errors: List[ReceiptProcessingFailure]) -> str:
        try:
            engine = self.primary if which == "primary" else self.fallback
            return (engine.extract_text(image_path) or "").strip()
        except ReceiptProcessingFailure as e:
            log.warning(f"{which} engine failed: {e}")
            errors.append(e)
        except Exception as e:
            log.warning(f"{which} engine failed: {e}")
            errors.append(OcrExtractionFailure(f"{which} engine failed: {e}",
                                               image_path=str(image_path), original_error=e))
        return ""

    def extract_text(self, image_path: Union[str, Path]) -> str:
        """
        Return the best available text for an image.

        Raises:
            OcrExtractionFailure: the image does not exist
            EmptyTextFailure: neither engine produced text; an engine
                configuration error, if any, is attached as the cause
        """
        image_path = Path(image_path)
        if not image_path.is_file():
            raise OcrExtractionFailure("Image file not found", image_path=str(image_path))

        errors: List[ReceiptProcessingFailure] = []
        primary_text = self._run("primary", image_path, errors)

        if primary_text and not needs_fallback(primary_text, self.min_text_length):
            log.debug(f"Using primary engine result ({len(primary_text)} chars)")
            return primary_text

        log.info("Primary OCR result is weak; running fallback engine")
        fallback_text = self._run("fallback", image_path, errors)

        if not primary_text and not fallback_text:
            config_errors = [e for e in errors if isinstance(e, EngineConfigFailure)]
            for e in config_errors:
                log.error(f"OCR engine unavailable: {e}")
            cause = config_errors[-1] if config_errors else (errors[-1] if errors else None)
            raise EmptyTextFailure(original_error=cause)

        if not fallback_text:
            return primary_text
        if not primary_text:
            return fallback_text

        primary_score = score_text(primary_text)
        fallback_score = score_text(fallback_text)
        log.debug(f"OCR scores: primary={primary_score:.1f} fallback={fallback_score:.1f}")
        if fallback_score > primary_score:
            return fallback_text
        return primary_text

    def close(self) -> None:
        """Dispose the engines; they are rebuilt on next use."""
        for engine in (self._primary, self._fallback):
            if engine is not None:
                engine.close()
        self._primary = None
        self._fallback = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
