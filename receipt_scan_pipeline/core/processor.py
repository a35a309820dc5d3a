"""
Scan session orchestration.

ScanSessionController is the state machine behind a "scan receipt" action:

    Idle -> Processing("rendering")      (PDF only)
         -> Processing("extracting")
         -> Processing("parsing")
         -> Result | Error
    Result -> Idle                       (saved, or cleared)
    Error  -> Idle                       (cleared)

A parse without an amount ends in Error(ParsingFailure) that still carries
the partial receipt, so the amount can be typed in instead of rescanning.
"""

import datetime as dt
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Union

from ..logging import get_logger
from .categorization import load_rules
from .config import PipelineConfig
from .database import TransactionStore
from .failures import (EmptyTextFailure, FileOperationFailure, OcrExtractionFailure,
                       ParsingFailure, ReceiptProcessingFailure, StorageFailure)
from .models import (Error, ExpenseCategory, Idle, ParsedReceipt, Processing, ReceiptSource,
                     Result, ScanSessionState, TransactionRecord)
from .ocr import OcrOrchestrator
from .parsers import calculate_confidence, parse_receipt, source_hint_from_filename
from .pdf import cleanup_temp_file, render_pdf_to_image
from .utils import to_decimal

log = get_logger(__name__)

STATUS_RENDERING = "rendering"
STATUS_EXTRACTING = "extracting"
STATUS_PARSING = "parsing"

MISSING_AMOUNT_MESSAGE = "Amount not recognized. Enter it manually or take a closer photo."

# Imported PDFs with no bank name in the file name or text are Kaspi exports.
PDF_DEFAULT_SOURCE = ReceiptSource.PDF_KASPI


class ScanSessionController:
    """Runs one receipt scan at a time and hands confirmed results to storage."""

    def __init__(self, orchestrator: OcrOrchestrator, store: Optional[TransactionStore] = None,
                 parser: Callable[..., ParsedReceipt] = parse_receipt,
                 renderer: Callable[[Path], Path] = render_pdf_to_image,
                 cleanup: Callable[[Path], None] = cleanup_temp_file,
                 clock: Callable[[], dt.datetime] = dt.datetime.now,
                 on_state_change: Optional[Callable[[ScanSessionState], None]] = None):
        """
        Args:
            orchestrator: OCR orchestrator producing raw text for an image
            store: Persistence collaborator with an add(**fields) -> TransactionRecord method
            parser: parse(raw_text, source_hint) -> ParsedReceipt
            renderer: render(pdf_path) -> temporary image path
            cleanup: cleanup(image_path), must not raise
            clock: Used for the transaction date when the receipt has none
            on_state_change: Called with every new state
        """
        self.orchestrator = orchestrator
        self.store = store
        self.parser = parser
        self.renderer = renderer
        self.cleanup = cleanup
        self.clock = clock
        self.on_state_change = on_state_change

        self._state: ScanSessionState = Idle()
        # Bumped by every new scan and by clear(); steps that finish under an
        # older value drop their result.
        self._session = 0

    @classmethod
    def from_config(cls, config: PipelineConfig, store=None, **kwargs) -> "ScanSessionController":
        """Build a controller with Tesseract engines and the configured rules."""
        rules = load_rules(config.rules_path)
        if rules:
            log.info(f"Using {len(rules)} category rule(s) from {config.rules_path}")
        return cls(
            OcrOrchestrator.from_config(config),
            store=store,
            parser=partial(parse_receipt, category_rules=rules),
            renderer=partial(render_pdf_to_image, temp_dir=config.temp_dir, scale=config.render_scale),
            **kwargs,
        )

    @property
    def state(self) -> ScanSessionState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return isinstance(self._state, Processing)

    def _set_state(self, state: ScanSessionState, session: Optional[int] = None) -> bool:
        if session is not None and session != self._session:
            log.debug(f"Discarding {type(state).__name__} from a cleared scan")
            return False
        self._state = state
        log.debug(f"Scan state -> {state}")
        if self.on_state_change is not None:
            self.on_state_change(state)
        return True

    def _begin(self) -> Optional[int]:
        if self.is_processing:
            log.warning("A scan is already in progress; ignoring new scan request")
            return None
        self._session += 1
        return self._session

    def scan_image(self, image_path: Optional[Union[str, Path]],
                   source_hint: Optional[ReceiptSource] = ReceiptSource.CAMERA) -> ScanSessionState:
        """
        Scan a photo from the camera or gallery.

        A None path means the user cancelled picking and is not an error.
        """
        if image_path is None:
            if not self.is_processing:
                self._set_state(Idle())
            return self._state

        session = self._begin()
        if session is None:
            return self._state

        try:
            self._process_image(Path(image_path), source_hint, session)
        except ReceiptProcessingFailure as e:
            self._fail(e, session)
        except Exception as e:
            self._fail(OcrExtractionFailure(f"Processing failed: {e}", image_path=str(image_path),
                                            original_error=e), session)
        return self._state

    def scan_pdf(self, pdf_path: Optional[Union[str, Path]],
                 filename: Optional[str] = None) -> ScanSessionState:
        """
        Scan a bank statement PDF (Kaspi/Halyk export).

        The file name, or the path's name when none is given, biases the
        source detection; a PDF with no bank name in either the file name or
        the text is tagged as a Kaspi export. The rendered page image is
        always removed.
        """
        if pdf_path is None:
            if not self.is_processing:
                self._set_state(Idle())
            return self._state

        session = self._begin()
        if session is None:
            return self._state

        pdf_path = Path(pdf_path)
        source_hint = source_hint_from_filename(filename or pdf_path.name)
        image_path = None
        try:
            if self._set_state(Processing(STATUS_RENDERING), session):
                image_path = self.renderer(pdf_path)
                self._process_image(image_path, source_hint, session,
                                    default_source=PDF_DEFAULT_SOURCE)
        except ReceiptProcessingFailure as e:
            self._fail(e, session)
        except Exception as e:
            self._fail(FileOperationFailure(f"PDF processing failed: {e}", file_path=str(pdf_path),
                                            original_error=e), session)
        finally:
            if image_path is not None:
                self.cleanup(image_path)
        return self._state

    def scan_text(self, raw_text: str,
                  source_hint: Optional[ReceiptSource] = None) -> ScanSessionState:
        """Parse text that was already recognized elsewhere (no OCR step)."""
        session = self._begin()
        if session is None:
            return self._state

        try:
            if not (raw_text or "").strip():
                raise EmptyTextFailure()
            self._process_text(raw_text, source_hint, session)
        except ReceiptProcessingFailure as e:
            self._fail(e, session)
        except Exception as e:
            self._fail(ParsingFailure(f"Parsing failed: {e}", raw_text=raw_text, original_error=e), session)
        return self._state

    def _process_image(self, image_path: Path, source_hint: Optional[ReceiptSource], session: int,
                       default_source: Optional[ReceiptSource] = None):
        if not self._set_state(Processing(STATUS_EXTRACTING), session):
            return
        raw_text = self.orchestrator.extract_text(image_path)
        log.debug(f"OCR text from {image_path.name} ({len(raw_text)} chars):\n{raw_text}")

        if not raw_text.strip():
            raise EmptyTextFailure("Text not recognized. Try a sharper photo.")

        self._process_text(raw_text, source_hint, session, default_source)

    def _process_text(self, raw_text: str, source_hint: Optional[ReceiptSource], session: int,
                      default_source: Optional[ReceiptSource] = None):
        if not self._set_state(Processing(STATUS_PARSING), session):
            return
        receipt = self.parser(raw_text, source_hint)
        if default_source is not None and receipt.detected_source == ReceiptSource.CAMERA:
            receipt = replace(receipt, detected_source=default_source)
        log.info(f"Parsed receipt: {receipt}")

        if receipt.amount is None:
            failure = ParsingFailure(MISSING_AMOUNT_MESSAGE, raw_text=raw_text, partial_result=receipt)
            self._set_state(Error(failure, receipt=receipt), session)
            return

        self._set_state(Result(receipt), session)

    def _fail(self, failure: ReceiptProcessingFailure, session: int):
        log.error(f"Scan failed: {failure}")
        receipt = getattr(failure, "partial_result", None)
        self._set_state(Error(failure, receipt=receipt), session)

    def _current_receipt(self) -> Optional[ParsedReceipt]:
        state = self._state
        if isinstance(state, Result):
            return state.receipt
        if isinstance(state, Error):
            return state.receipt
        return None

    def apply_manual_amount(self, amount) -> Optional[ParsedReceipt]:
        """
        Replace the amount of the current (possibly partial) receipt.

        Moves to Result with the confidence recomputed. Returns None when
        there is no receipt to correct.
        """
        receipt = self._current_receipt()
        if receipt is None:
            log.warning("No receipt to correct")
            return None

        value = to_decimal(str(amount))
        if value is None or value <= 0:
            raise ValueError(f"amount must be a positive number, got {amount!r}")

        updated = replace(
            receipt,
            amount=value,
            confidence=calculate_confidence(value, receipt.merchant, receipt.date, receipt.receipt_number),
        )
        self._set_state(Result(updated))
        return updated

    def save_transaction(self, category: ExpenseCategory,
                         note: Optional[str] = None) -> Optional[TransactionRecord]:
        """
        Hand the current valid receipt to the store.

        On success the session resets to Idle and the stored record is
        returned. Storage errors move to Error(StorageFailure) keeping the
        receipt, so saving can be retried.
        """
        state = self._state
        receipt = self._current_receipt()
        savable = isinstance(state, Result) or (isinstance(state, Error)
                                                and isinstance(state.failure, StorageFailure))
        if not savable or receipt is None or not receipt.is_valid:
            log.warning("Nothing valid to save")
            return None

        try:
            if self.store is None:
                raise StorageFailure("No transaction store configured")
            record = self.store.add(
                amount=receipt.amount,
                category=category,
                date=receipt.date or self.clock(),
                source=receipt.detected_source,
                merchant=receipt.merchant,
                receipt_number=receipt.receipt_number,
                raw_text=receipt.raw_text,
                note=note,
            )
        except StorageFailure as e:
            self._set_state(Error(e, receipt=receipt))
            return None
        except Exception as e:
            failure = StorageFailure(f"Could not save transaction: {e}", original_error=e)
            self._set_state(Error(failure, receipt=receipt))
            return None

        self._session += 1
        self._set_state(Idle())
        return record

    def clear(self) -> None:
        """Drop the current result or error; an in-flight scan's result is discarded."""
        self._session += 1
        self._set_state(Idle())

    def close(self) -> None:
        self.orchestrator.close()
