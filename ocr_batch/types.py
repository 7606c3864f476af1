from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class MediaKind(str, enum.Enum):
    """Types de fichiers acceptés en entrée (type MIME déclaré)."""

    PDF = "application/pdf"
    JPEG = "image/jpeg"
    PNG = "image/png"
    GIF = "image/gif"
    WEBP = "image/webp"
    BMP = "image/bmp"
    TIFF = "image/tiff"

    @property
    def is_document(self) -> bool:
        return self is MediaKind.PDF

    @property
    def label(self) -> str:
        return "PDF" if self.is_document else "image"

    @classmethod
    def from_mime(cls, mime: Optional[str]) -> Optional["MediaKind"]:
        for kind in cls:
            if kind.value == mime:
                return kind
        return None


@dataclass(frozen=True)
class SourceFile:
    """Fichier soumis au lot : contenu binaire (chemin ou octets), type déclaré et nom affiché."""
    name: str
    media_kind: MediaKind
    path: Optional[Path] = None
    data: Optional[bytes] = field(default=None, repr=False)


@dataclass(frozen=True)
class EncodedPayload:
    data: str = field(repr=False)
    media_kind: MediaKind


@dataclass(frozen=True)
class ContentBlock:
    type: str
    text: Optional[str] = None


@dataclass(frozen=True)
class OcrResponse:
    blocks: Tuple[ContentBlock, ...]

    def text_blocks(self) -> List[str]:
        return [b.text or "" for b in self.blocks if b.type == "text"]


@dataclass(frozen=True)
class Table:
    """
    Tableau rectangulaire : une ligne d'en-têtes puis les lignes de données.

    La largeur est fixée par les en-têtes :
    - une ligne plus longue est tronquée à la construction (via `Table.build`, avec un warning) ;
    - une ligne plus courte est conservée telle quelle et lue comme complétée par des cellules
      vides (`cell`, `padded_rows`), ce que voient tous les exports.
    """
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]

    @classmethod
    def build(cls, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> "Table":
        width = len(headers)
        kept: List[Tuple[str, ...]] = []
        for idx, row in enumerate(rows, start=1):
            if len(row) > width:
                logger.warning(
                    "Ligne %d tronquée à %d colonnes (%d cellule(s) ignorée(s))",
                    idx,
                    width,
                    len(row) - width,
                )
                row = row[:width]
            kept.append(tuple(row))
        return cls(headers=tuple(headers), rows=tuple(kept))

    @property
    def width(self) -> int:
        return len(self.headers)

    def cell(self, row: int, col: int) -> str:
        cells = self.headers if row == 0 else self.rows[row - 1]
        return cells[col] if col < len(cells) else ""

    def padded_rows(self) -> Iterator[Tuple[str, ...]]:
        yield self.headers
        for row in self.rows:
            yield row + ("",) * (self.width - len(row))

    def as_lists(self) -> List[List[str]]:
        return [list(self.headers)] + [list(r) for r in self.rows]


class OutcomeStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ProcessingOutcome:
    """Résultat d'un fichier du lot : soit un tableau, soit un message d'erreur."""
    file_name: str
    media_kind: MediaKind
    status: OutcomeStatus
    table: Optional[Table] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status is OutcomeStatus.SUCCESS and (self.table is None or self.error is not None):
            raise ValueError("Un résultat 'success' doit porter un tableau et aucune erreur")
        if self.status is OutcomeStatus.ERROR and (self.error is None or self.table is not None):
            raise ValueError("Un résultat 'error' doit porter un message et aucun tableau")

    @classmethod
    def succeeded(cls, file: SourceFile, table: Table) -> "ProcessingOutcome":
        return cls(file_name=file.name, media_kind=file.media_kind, status=OutcomeStatus.SUCCESS, table=table)

    @classmethod
    def failed(cls, file: SourceFile, error: str) -> "ProcessingOutcome":
        return cls(file_name=file.name, media_kind=file.media_kind, status=OutcomeStatus.ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS


@dataclass(frozen=True)
class BatchLedger:
    outcomes: Tuple[ProcessingOutcome, ...] = ()

    def appended(self, outcome: ProcessingOutcome) -> "BatchLedger":
        return BatchLedger(outcomes=self.outcomes + (outcome,))

    def successes(self) -> List[ProcessingOutcome]:
        return [o for o in self.outcomes if o.ok]

    def failures(self) -> List[ProcessingOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def success_count(self) -> int:
        return len(self.successes())

    def summary(self) -> str:
        return f"{self.success_count} succeeded of {len(self.outcomes)}"

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self) -> Iterator[ProcessingOutcome]:
        return iter(self.outcomes)

    def __getitem__(self, index: int) -> ProcessingOutcome:
        return self.outcomes[index]


@dataclass(frozen=True)
class ProgressState:
    current: int
    total: int
    file_name: Optional[str] = None


class BatchStatus(str, enum.Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class BatchSnapshot:
    """Vue en lecture seule de l'état de l'orchestrateur."""
    status: BatchStatus
    progress: ProgressState
    ledger: BatchLedger
    error_message: Optional[str] = None


@dataclass
class ProcessConfig:
    """Configuration de haut niveau pour exécuter le lot."""
    out_root: Path
    model: str = "gpt-4o"
    max_output_tokens: int = 4000
    timeout: float = 300.0
    api_key: Optional[str] = field(default=None, repr=False)
    base_url: Optional[str] = None
    per_file: bool = True
    merged: bool = True
