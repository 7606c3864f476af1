"""Shared fixtures for the ocr_batch test suite.

No network: the OCR service is replaced by a scripted fake, and the OpenAI client
by an object exposing an async `responses.create`.
"""

from __future__ import annotations

import asyncio
import io
import logging
import struct
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Union

import pytest
from PIL import Image

from ocr_batch.ocr_service import OCRService
from ocr_batch.types import ContentBlock, EncodedPayload, MediaKind, OcrResponse, SourceFile

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    stream=sys.stderr,
    force=True,
)

TABLE_JSON = '{"headers": ["Produit", "Prix"], "rows": [["Café", "2.50"], ["Thé", "3.00"]]}'


class ScriptedOCRService(OCRService):
    """Returns a canned text (or raises a canned exception) per file name."""

    def __init__(self, script: Dict[str, Union[str, BaseException]], events: List[str] | None = None):
        self.script = script
        self.calls: List[str] = []
        self.events = events if events is not None else []

    async def extract(self, payload: EncodedPayload, media_kind: MediaKind, file_name: str) -> OcrResponse:
        self.calls.append(file_name)
        self.events.append(f"extract:{file_name}")
        await asyncio.sleep(0)
        result = self.script.get(file_name, TABLE_JSON)
        if isinstance(result, BaseException):
            raise result
        return OcrResponse(blocks=(ContentBlock(type="text", text=result),))


class FakeResponses:
    def __init__(self, result):
        self.result = result
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


class FakeOpenAIClient:
    def __init__(self, result):
        self.responses = FakeResponses(result)


def text_response(*texts: str) -> SimpleNamespace:
    """Mimics an OpenAI Responses API result with one message of output_text parts."""
    parts = [SimpleNamespace(type="output_text", text=t) for t in texts]
    return SimpleNamespace(output=[SimpleNamespace(type="message", content=parts)])


def image_bytes(fmt: str = "PNG", size=(8, 6)) -> bytes:
    with io.BytesIO() as buf:
        Image.new("RGB", size, color=(200, 30, 30)).save(buf, format=fmt)
        return buf.getvalue()


def memory_file(name: str, kind: MediaKind = MediaKind.PNG, data: bytes = b"\x89PNG fake") -> SourceFile:
    return SourceFile(name=name, media_kind=kind, data=data)


@pytest.fixture
def make_files():
    def _make(*names: str) -> List[SourceFile]:
        return [memory_file(n) for n in names]

    return _make


@pytest.fixture
def sample_dir(tmp_path: Path) -> Path:
    """A folder with a PDF, two images, a nested image and an unsupported text file."""
    root = tmp_path / "inbox"
    (root / "sub").mkdir(parents=True)
    (root / "facture.pdf").write_bytes(b"%PDF-1.4\n%fake\n")
    (root / "recu.png").write_bytes(image_bytes("PNG"))
    (root / "scan.bmp").write_bytes(image_bytes("BMP"))
    (root / "sub" / "ticket.jpg").write_bytes(image_bytes("JPEG"))
    (root / "notes.txt").write_text("pas un document")
    return root


def oversized_bmp(width: int = 30000, height: int = 30000) -> bytes:
    """A bare 54-byte BMP header whose declared size exceeds Pillow's decompression-bomb limit."""
    file_header = struct.pack("<2sIHHI", b"BM", 54, 0, 0, 54)
    info_header = struct.pack("<IiiHHIIiiII", 40, width, height, 1, 24, 0, 0, 2835, 2835, 0, 0)
    return file_header + info_header
