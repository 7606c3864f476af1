import logging
import mimetypes
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import SubmissionError
from .types import MediaKind, SourceFile

logger = logging.getLogger(__name__)

SUPPORTED_EXTS = {".pdf", ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff"}
SUPPORTED_LABEL = "PDF, JPG, PNG, GIF, WEBP, BMP, TIFF"

# Formats Pillow → type MIME accepté
_PIL_FORMATS = {
    "JPEG": MediaKind.JPEG,
    "MPO": MediaKind.JPEG,
    "PNG": MediaKind.PNG,
    "GIF": MediaKind.GIF,
    "WEBP": MediaKind.WEBP,
    "BMP": MediaKind.BMP,
    "TIFF": MediaKind.TIFF,
}


def _sniff_media_kind(path: Path) -> Optional[MediaKind]:
    try:
        with path.open("rb") as fh:
            if fh.read(5) == b"%PDF-":
                return MediaKind.PDF
        with Image.open(str(path)) as img:
            return _PIL_FORMATS.get(img.format or "")
    except (OSError, ValueError, UnidentifiedImageError, Image.DecompressionBombError):
        return None


def media_kind_for(path: Path) -> Optional[MediaKind]:
    """
    Détermine le type déclaré d'un fichier :
    - d'abord d'après l'extension (mimetypes) ;
    - sinon en inspectant le contenu (signature PDF, puis Pillow pour les images).
    """
    mime, _ = mimetypes.guess_type(path.name)
    kind = MediaKind.from_mime(mime)
    if kind is None and mime == "image/x-ms-bmp":
        kind = MediaKind.BMP
    if kind is not None:
        return kind
    if path.suffix.lower() in SUPPORTED_EXTS or not path.suffix:
        return _sniff_media_kind(path)
    return None


def find_documents(input_dir: str) -> List[Path]:
    """Retourne, triés, tous les fichiers d'extension supportée sous le dossier d'entrée."""
    root = Path(input_dir).expanduser().resolve()
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in SUPPORTED_EXTS)


def load_source_file(path: Path, media_kind: Optional[MediaKind] = None) -> SourceFile:
    kind = media_kind or media_kind_for(path)
    if kind is None:
        raise SubmissionError(f"Type de fichier non supporté: {path.name} (formats acceptés: {SUPPORTED_LABEL})")
    return SourceFile(name=path.name, media_kind=kind, path=path)


def select_supported(paths: Iterable[Path]) -> Tuple[List[SourceFile], List[Path]]:
    """
    Sépare les fichiers acceptés des fichiers rejetés, dans l'ordre de soumission.

    Lève `SubmissionError` si aucun fichier n'est d'un type supporté.
    """
    accepted: List[SourceFile] = []
    rejected: List[Path] = []
    for path in paths:
        if not path.is_file():
            logger.info("Fichier introuvable: %s", path)
            rejected.append(path)
            continue
        kind = media_kind_for(path)
        if kind is None:
            logger.info("Fichier ignoré (type non supporté): %s", path)
            rejected.append(path)
            continue
        accepted.append(SourceFile(name=path.name, media_kind=kind, path=path))

    if not accepted:
        raise SubmissionError(f"Aucun fichier supporté trouvé ({SUPPORTED_LABEL})")
    return accepted, rejected


def collect_inputs(inputs: Iterable[str]) -> List[Path]:
    """Développe les arguments d'entrée : les dossiers sont parcourus récursivement, les fichiers gardés tels quels."""
    paths: List[Path] = []
    for raw in inputs:
        p = Path(raw).expanduser().resolve()
        if p.is_dir():
            paths.extend(find_documents(str(p)))
        else:
            paths.append(p)
    return paths
