"""Shared pytest fixtures and test doubles for the receipt scan pipeline tests."""

import datetime as dt
from types import SimpleNamespace

import pytest

from receipt_scan_pipeline.core.models import TransactionRecord

GOOD_RECEIPT_TEXT = (
    "ТОО Магнум Кэш энд Керри\n"
    "Хлеб 250.00\n"
    "Молоко 480.00\n"
    "ИТОГО: 730.00\n"
    "12.01.2026 11:36\n"
    "Спасибо за покупку!"
)


class FakeEngine:
    """Text engine double that counts calls."""

    def __init__(self, name="fake", text="", error=None, on_call=None):
        self.name = name
        self.text = text
        self.error = error
        self.on_call = on_call
        self.calls = 0
        self.closed = False

    def extract_text(self, image_path):
        self.calls += 1
        if self.on_call is not None:
            self.on_call()
        if self.error is not None:
            raise self.error
        return self.text

    def close(self):
        self.closed = True


class FakeOrchestrator:
    """Orchestrator double returning fixed text."""

    def __init__(self, text="", error=None, on_call=None):
        self.text = text
        self.error = error
        self.on_call = on_call
        self.paths = []
        self.closed = False

    def extract_text(self, image_path):
        self.paths.append(image_path)
        if self.on_call is not None:
            self.on_call()
        if self.error is not None:
            raise self.error
        return self.text

    def close(self):
        self.closed = True


class FakeStore:
    """Persistence collaborator double."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def add(self, **fields):
        self.calls.append(fields)
        if self.error is not None:
            raise self.error
        return TransactionRecord(
            id=f"tx-{len(self.calls)}",
            amount=fields["amount"],
            category=fields["category"],
            date=fields["date"],
            source=fields["source"],
            merchant=fields["merchant"],
            receipt_number=fields["receipt_number"],
            raw_text=fields["raw_text"],
            note=fields["note"],
            created_at=dt.datetime(2026, 1, 20, 9, 0),
        )


class FakeDocument:
    """Stand-in for a PyMuPDF document."""

    def __init__(self, page_count=1, render_error=None):
        self.page_count = page_count
        self.render_error = render_error
        self.is_closed = False
        self.pixmap_calls = []

    def load_page(self, index):
        return FakePage(self, index)

    def close(self):
        self.is_closed = True


class FakePage:
    def __init__(self, doc, index):
        self.doc = doc
        self.index = index

    def get_pixmap(self, matrix=None, alpha=True):
        self.doc.pixmap_calls.append({"page": self.index, "matrix": matrix, "alpha": alpha})
        if self.doc.render_error is not None:
            raise self.doc.render_error
        return FakePixmap()


class FakePixmap:
    def save(self, path):
        with open(path, "wb") as f:
            f.write(b"\x89PNG fake")


def make_fake_fitz(document=None, open_error=None):
    opened = []

    def _open(path):
        opened.append(path)
        if open_error is not None:
            raise open_error
        return document

    return SimpleNamespace(
        open=_open,
        Matrix=lambda a, b: ("matrix", a, b),
        opened=opened,
    )


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "receipt.jpg"
    path.write_bytes(b"not really a jpeg")
    return path


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "statement.pdf"
    path.write_bytes(b"%PDF-1.4 fake")
    return path
