"""
Unit tests for the local blob store and the manual payment provider.
"""

import logging
from decimal import Decimal
from pathlib import Path

import pytest

from src.adapters.payments.manual import ManualPaymentProvider
from src.adapters.storage.local import LocalBlobStore


class TestLocalBlobStore:
    def test_put_then_open(self, tmp_path: Path) -> None:
        store = LocalBlobStore(tmp_path)

        ref = store.put("ebooks/soil.pdf", b"%PDF-1.7")
        handle = store.open(ref, "Soil Science.pdf")

        assert ref == "ebooks/soil.pdf"
        assert handle.path.read_bytes() == b"%PDF-1.7"
        assert handle.filename == "Soil Science.pdf"
        assert handle.media_type == "application/pdf"

    def test_unknown_extension_is_octet_stream(self, tmp_path: Path) -> None:
        store = LocalBlobStore(tmp_path)
        store.put("ebooks/book.mobi-x", b"data")

        assert store.open("ebooks/book.mobi-x", "book.unknownext").media_type == (
            "application/octet-stream"
        )

    def test_delete_removes_file(self, tmp_path: Path) -> None:
        store = LocalBlobStore(tmp_path)
        ref = store.put("student-documents/id.pdf", b"%PDF-1.4")

        store.delete(ref)
        store.delete(ref)

        assert store.open(ref, "id.pdf") is None
        assert not (tmp_path / "student-documents" / "id.pdf").exists()

    def test_delete_ignores_escaping_reference(self, tmp_path: Path) -> None:
        root = tmp_path / "storage"
        root.mkdir()
        outside = tmp_path / "keep.txt"
        outside.write_text("outside")

        LocalBlobStore(root).delete("../keep.txt")

        assert outside.exists()

    def test_missing_file_returns_none(self, tmp_path: Path) -> None:
        assert LocalBlobStore(tmp_path).open("ebooks/missing.pdf", "x.pdf") is None

    def test_escaping_reference_refused(self, tmp_path: Path) -> None:
        root = tmp_path / "storage"
        root.mkdir()
        (tmp_path / "secret.txt").write_text("outside")
        store = LocalBlobStore(root)

        assert store.open("../secret.txt", "secret.txt") is None
        with pytest.raises(ValueError):
            store.put("../../escape.pdf", b"data")


class TestManualPaymentProvider:
    def test_reference_derived_from_order(self, caplog: pytest.LogCaptureFixture) -> None:
        provider = ManualPaymentProvider()

        with caplog.at_level(logging.INFO):
            session = provider.create_payment(
                "ORD-20260301-0000ABCD", Decimal("17.00"), "USD", "buyer@example.com"
            )

        assert provider.name == "manual"
        assert session.reference == "manual_ORD-20260301-0000ABCD"
        assert session.redirect_url is None
        assert "[PAYMENT]" in caplog.text
        assert "17.00 USD" in caplog.text
