import json
import logging
import re
from typing import Any, List, Optional, Sequence

from .errors import MalformedResultError
from .types import OcrResponse, Table

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: Sequence[str] = ("Élément", "Valeur")

# Balise ouvrante en début de ligne (langue optionnelle), puis toute autre balise ```
_OPEN_FENCE_RE = re.compile(r"^[ \t]*```[A-Za-z0-9_+-]*[ \t]*(?:\n|$)", re.MULTILINE)
_FENCE_RE = re.compile(r"```\n?")
_THINK_RE = re.compile(r"<think>[\s\S]*?</think>")


def strip_code_fences(raw: str) -> str:
    """Supprime les balises ```/```json (ouvrantes et fermantes, où qu'elles soient) et les blocs <think>."""
    s = _THINK_RE.sub("", raw)
    s = _OPEN_FENCE_RE.sub("", s)
    s = _FENCE_RE.sub("", s)
    return s.strip()


def _extract_json_object(s: str) -> Optional[str]:
    start = s.find("{")
    end = s.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return s[start : end + 1]


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as first_exc:
        # Le modèle ajoute parfois de la prose autour du JSON
        candidate = _extract_json_object(text)
        if candidate is None or candidate == text:
            raise first_exc
        return json.loads(candidate)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return json.dumps(value) if isinstance(value, bool) else str(value)
    return json.dumps(value, ensure_ascii=False)


def _headers_from(parsed: dict) -> List[str]:
    headers = parsed.get("headers")
    if headers is None or headers == []:
        return list(DEFAULT_HEADERS)
    if not isinstance(headers, list):
        raise MalformedResultError("le champ 'headers' doit être un tableau")
    return [_cell(h) for h in headers]


def _rows_from(parsed: dict) -> List[List[str]]:
    rows = parsed.get("rows")
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise MalformedResultError("le champ 'rows' doit être un tableau de tableaux")

    out: List[List[str]] = []
    for idx, row in enumerate(rows, start=1):
        if not isinstance(row, list):
            # On ignore les entrées non-tableau au lieu de tout faire échouer.
            logger.warning("Ligne %d ignorée: %s au lieu d'un tableau", idx, type(row).__name__)
            continue
        out.append([_cell(c) for c in row])
    return out


def response_text(response: OcrResponse) -> str:
    return "\n".join(response.text_blocks())


def normalize(response: OcrResponse) -> Table:
    """
    Convertit la réponse OCR brute en tableau rectangulaire (en-têtes + lignes).

    Tolère le bruit autour du JSON (balises Markdown, prose) ; tout champ est optionnel
    et sa forme est vérifiée avant usage. Sans en-têtes, le couple (Élément, Valeur) est utilisé.
    """
    cleaned = strip_code_fences(response_text(response))
    try:
        parsed = _load_json(cleaned)
        if not isinstance(parsed, dict):
            raise MalformedResultError(f"objet JSON attendu, reçu {type(parsed).__name__}")
        headers = _headers_from(parsed)
        rows = _rows_from(parsed)
        if not rows:
            raise MalformedResultError("Aucune donnée extraite")
    except (ValueError, MalformedResultError) as exc:
        raise MalformedResultError(f"Échec de l'analyse des données: {exc}") from exc

    return Table.build(headers, rows)
