import asyncio
import base64

from .errors import IoError
from .types import EncodedPayload, SourceFile


async def read_bytes(file: SourceFile) -> bytes:
    if file.data is not None:
        return file.data
    if file.path is None:
        raise IoError(f"Aucun contenu associé au fichier {file.name}")
    try:
        return await asyncio.to_thread(file.path.read_bytes)
    except OSError as exc:
        raise IoError(f"Lecture impossible de {file.name}: {exc}") from exc


async def encode(file: SourceFile) -> EncodedPayload:
    """Encode les octets exacts du fichier en base64 (texte sûr pour un corps JSON)."""
    raw = await read_bytes(file)
    b64 = base64.b64encode(raw).decode("ascii")
    return EncodedPayload(data=b64, media_kind=file.media_kind)
