import io
import re
from typing import Iterable, List, Set

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .errors import EmptyResultError, InvalidStateError
from .types import BatchLedger, ProcessingOutcome, Table

SINGLE_SHEET_NAME = "Données OCR extraites"
MAX_SHEET_NAME = 31
MAX_COLUMN_WIDTH = 50

SUPPORTED_EXT_RE = re.compile(r"\.(pdf|jpg|jpeg|png|gif|webp|bmp|tiff?)$", re.IGNORECASE)
_INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")


def column_widths(table: Table) -> List[int]:
    """Largeur par colonne : min(longueur max des cellules + 2, 50), en-têtes compris."""
    widths: List[int] = []
    for col in range(table.width):
        longest = max(len(row[col]) for row in table.padded_rows())
        widths.append(min(longest + 2, MAX_COLUMN_WIDTH))
    return widths


def sheet_name_for(file_name: str, taken: Iterable[str] = ()) -> str:
    """
    Nom de feuille dérivé du nom de fichier : extension retirée, caractères interdits par Excel
    remplacés, tronqué à 31 caractères et rendu unique parmi `taken`.
    """
    base = _INVALID_SHEET_CHARS.sub("_", SUPPORTED_EXT_RE.sub("", file_name)).strip("'") or "Sheet"
    name = base[:MAX_SHEET_NAME]
    used: Set[str] = {t.lower() for t in taken}
    n = 2
    while name.lower() in used:
        suffix = f"_{n}"
        name = base[: MAX_SHEET_NAME - len(suffix)] + suffix
        n += 1
    return name


def _fill_sheet(ws: Worksheet, table: Table) -> None:
    for row in table.padded_rows():
        # Caractères de contrôle refusés par openpyxl (fréquents dans le texte OCR)
        ws.append([ILLEGAL_CHARACTERS_RE.sub("", c) for c in row])
    for idx, width in enumerate(column_widths(table), start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width


def _to_bytes(wb: Workbook) -> bytes:
    with io.BytesIO() as buf:
        wb.save(buf)
        return buf.getvalue()


def export_one(outcome: ProcessingOutcome) -> bytes:
    """Classeur à une feuille pour un fichier traité avec succès."""
    if not outcome.ok or outcome.table is None:
        raise InvalidStateError(f"Export impossible: {outcome.file_name} n'a pas été traité avec succès")

    wb = Workbook()
    ws = wb.active
    ws.title = SINGLE_SHEET_NAME
    _fill_sheet(ws, outcome.table)
    return _to_bytes(wb)


def export_all(ledger: BatchLedger) -> bytes:
    """Classeur fusionné : une feuille par fichier réussi, les échecs sont exclus."""
    successes = ledger.successes()
    if not successes:
        raise EmptyResultError("Aucun fichier traité avec succès à exporter")

    wb = Workbook()
    wb.remove(wb.active)
    taken: List[str] = []
    for outcome in successes:
        name = sheet_name_for(outcome.file_name, taken)
        taken.append(name)
        ws = wb.create_sheet(title=name)
        _fill_sheet(ws, outcome.table)
    return _to_bytes(wb)
