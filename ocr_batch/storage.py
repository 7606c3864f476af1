import json
from pathlib import Path
from typing import Any, Dict, Set

from .types import BatchLedger
from .writer import SUPPORTED_EXT_RE

MERGED_EXPORT_NAME = "all_ocr_data.xlsx"
SINGLE_EXPORT_SUFFIX = "_OCR.xlsx"


def _safe_file_name(name: str) -> str:
    return "".join(c if c.isalnum() or c in ("_", "-", ".", " ") else "_" for c in name).strip() or "document"


def single_export_name(file_name: str) -> str:
    """`facture.pdf` → `facture_OCR.xlsx` ; extension non reconnue : le suffixe est ajouté."""
    stem = SUPPORTED_EXT_RE.sub("", file_name)
    return _safe_file_name(stem) + SINGLE_EXPORT_SUFFIX


def dedupe_name(name: str, taken: Set[str]) -> str:
    """Ajoute un suffixe numérique si `name` a déjà été écrit pendant ce lot (ex.: a.pdf et a.png)."""
    candidate = name
    n = 2
    while candidate in taken:
        candidate = f"{Path(name).stem}_{n}{Path(name).suffix}"
        n += 1
    taken.add(candidate)
    return candidate


def write_workbook(out_dir: Path, name: str, data: bytes) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    p = out_dir / name
    p.write_bytes(data)
    return p


def write_json(path: Path, data: Dict[str, Any]) -> None:
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def ledger_report(ledger: BatchLedger) -> Dict[str, Any]:
    return {
        "summary": ledger.summary(),
        "succeeded": ledger.success_count,
        "total": len(ledger),
        "files": [
            {
                "file": o.file_name,
                "media_kind": o.media_kind.value,
                "status": o.status.value,
                "rows": len(o.table.rows) if o.table is not None else 0,
                "error": o.error,
            }
            for o in ledger
        ],
    }


def write_report(out_dir: Path, ledger: BatchLedger) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    p = out_dir / "report.json"
    write_json(p, ledger_report(ledger))
    return p
