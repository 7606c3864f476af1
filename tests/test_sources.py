"""Tests for input collection, media-kind detection and the lossless encoder."""

from __future__ import annotations

import asyncio
import base64
from pathlib import Path

import pytest

from conftest import image_bytes, oversized_bmp
from ocr_batch.encoder import encode
from ocr_batch.errors import IoError, SubmissionError
from ocr_batch.sources import (
    collect_inputs,
    find_documents,
    load_source_file,
    media_kind_for,
    select_supported,
)
from ocr_batch.types import MediaKind, SourceFile


class TestMediaKind:
    @pytest.mark.parametrize(
        "name,kind",
        [
            ("a.pdf", MediaKind.PDF),
            ("a.JPG", MediaKind.JPEG),
            ("a.jpeg", MediaKind.JPEG),
            ("a.png", MediaKind.PNG),
            ("a.gif", MediaKind.GIF),
            ("a.tif", MediaKind.TIFF),
            ("a.tiff", MediaKind.TIFF),
        ],
    )
    def test_by_extension(self, tmp_path: Path, name, kind):
        assert media_kind_for(tmp_path / name) is kind

    def test_sniffed_without_extension(self, tmp_path: Path):
        img = tmp_path / "scan"
        img.write_bytes(image_bytes("PNG"))
        pdf = tmp_path / "doc"
        pdf.write_bytes(b"%PDF-1.7\n")
        assert media_kind_for(img) is MediaKind.PNG
        assert media_kind_for(pdf) is MediaKind.PDF

    def test_webp_and_bmp(self, tmp_path: Path):
        for fmt, kind in (("WEBP", MediaKind.WEBP), ("BMP", MediaKind.BMP)):
            p = tmp_path / f"img.{fmt.lower()}"
            p.write_bytes(image_bytes(fmt))
            assert media_kind_for(p) is kind

    def test_unsupported(self, tmp_path: Path):
        p = tmp_path / "notes.txt"
        p.write_text("hello")
        assert media_kind_for(p) is None

    def test_oversized_image_without_extension(self, tmp_path: Path):
        p = tmp_path / "scan"
        p.write_bytes(oversized_bmp())
        assert media_kind_for(p) is None

    def test_flags(self):
        assert MediaKind.PDF.is_document and MediaKind.PDF.label == "PDF"
        assert not MediaKind.TIFF.is_document and MediaKind.TIFF.label == "image"


class TestSubmission:
    def test_find_documents_recursive_sorted(self, sample_dir: Path):
        found = find_documents(str(sample_dir))
        assert [p.name for p in found] == ["facture.pdf", "recu.png", "scan.bmp", "ticket.jpg"]

    def test_select_supported_keeps_order(self, sample_dir: Path):
        paths = [sample_dir / "recu.png", sample_dir / "notes.txt", sample_dir / "facture.pdf"]
        accepted, rejected = select_supported(paths)
        assert [f.name for f in accepted] == ["recu.png", "facture.pdf"]
        assert [f.media_kind for f in accepted] == [MediaKind.PNG, MediaKind.PDF]
        assert rejected == [sample_dir / "notes.txt"]

    def test_missing_path_is_rejected(self, sample_dir: Path):
        accepted, rejected = select_supported([sample_dir / "absent.pdf", sample_dir / "recu.png"])
        assert [f.name for f in accepted] == ["recu.png"]
        assert rejected == [sample_dir / "absent.pdf"]

    def test_nothing_supported(self, sample_dir: Path):
        with pytest.raises(SubmissionError, match="PDF, JPG, PNG, GIF, WEBP, BMP, TIFF"):
            select_supported([sample_dir / "notes.txt", sample_dir / "absent.pdf"])

    def test_collect_inputs_mixes_files_and_dirs(self, sample_dir: Path):
        paths = collect_inputs([str(sample_dir / "notes.txt"), str(sample_dir / "sub")])
        assert [p.name for p in paths] == ["notes.txt", "ticket.jpg"]

    def test_load_source_file(self, sample_dir: Path):
        f = load_source_file(sample_dir / "facture.pdf")
        assert (f.name, f.media_kind) == ("facture.pdf", MediaKind.PDF)
        with pytest.raises(SubmissionError):
            load_source_file(sample_dir / "notes.txt")


class TestEncoder:
    def test_lossless_from_path(self, sample_dir: Path):
        path = sample_dir / "scan.bmp"
        out = asyncio.run(encode(load_source_file(path)))
        assert base64.b64decode(out.data) == path.read_bytes()
        assert out.media_kind is MediaKind.BMP

    def test_lossless_from_memory(self):
        raw = bytes(range(256))
        out = asyncio.run(encode(SourceFile(name="x.png", media_kind=MediaKind.PNG, data=raw)))
        assert base64.b64decode(out.data) == raw
        out.data.encode("ascii")

    def test_missing_file(self, tmp_path: Path):
        f = SourceFile(name="gone.pdf", media_kind=MediaKind.PDF, path=tmp_path / "gone.pdf")
        with pytest.raises(IoError, match="gone.pdf"):
            asyncio.run(encode(f))

    def test_no_content(self):
        with pytest.raises(IoError):
            asyncio.run(encode(SourceFile(name="x.png", media_kind=MediaKind.PNG)))
