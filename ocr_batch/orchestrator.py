import logging
import time
from typing import Callable, Optional, Sequence

from .encoder import encode
from .errors import InvalidStateError, ProcessingError, SubmissionError
from .normalizer import normalize
from .ocr_service import OCRService
from .types import (
    BatchLedger,
    BatchSnapshot,
    BatchStatus,
    ProcessingOutcome,
    ProgressState,
    SourceFile,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressState], None]


class BatchOrchestrator:
    """
    Traite un lot de fichiers séquentiellement : lecture → OCR → normalisation.

    États : idle → processing → completed ; `error` uniquement pour une soumission invalide,
    avant le début du traitement. Une fois lancé, le lot va toujours jusqu'au bout : l'échec
    d'un fichier est consigné dans le registre et le fichier suivant est traité.
    """

    def __init__(self, ocr: OCRService):
        self.ocr = ocr
        self._status = BatchStatus.IDLE
        self._progress = ProgressState(current=0, total=0)
        self._ledger = BatchLedger()
        self._error_message: Optional[str] = None

    def snapshot(self) -> BatchSnapshot:
        return BatchSnapshot(
            status=self._status,
            progress=self._progress,
            ledger=self._ledger,
            error_message=self._error_message,
        )

    def _publish(self, progress: ProgressState, on_progress: Optional[ProgressCallback]) -> None:
        self._progress = progress
        if on_progress is not None:
            on_progress(progress)

    async def _process_one(self, file: SourceFile) -> ProcessingOutcome:
        t0 = time.time()
        try:
            payload = await encode(file)
            response = await self.ocr.extract(payload, file.media_kind, file.name)
            table = normalize(response)
        except ProcessingError as e:
            logger.warning("Échec %s (%.1fs): %s", file.name, time.time() - t0, e)
            return ProcessingOutcome.failed(file, str(e))

        logger.info("OK %s (%.1fs): %d ligne(s) × %d colonne(s)", file.name, time.time() - t0, len(table.rows), table.width)
        return ProcessingOutcome.succeeded(file, table)

    async def run(self, files: Sequence[SourceFile], on_progress: Optional[ProgressCallback] = None) -> BatchLedger:
        if self._status is BatchStatus.PROCESSING:
            raise InvalidStateError("Un lot est déjà en cours de traitement")

        batch = tuple(files)
        if not batch:
            self._status = BatchStatus.ERROR
            self._error_message = "Aucun fichier à traiter"
            raise SubmissionError(self._error_message)

        total = len(batch)
        self._status = BatchStatus.PROCESSING
        self._error_message = None
        self._ledger = BatchLedger()
        logger.info("Début du lot: %d fichier(s)", total)

        try:
            for i, file in enumerate(batch, start=1):
                self._publish(ProgressState(current=i, total=total, file_name=file.name), on_progress)
                outcome = await self._process_one(file)
                self._ledger = self._ledger.appended(outcome)
        except Exception as e:
            # Erreur de programmation : le lot s'arrête et l'exception remonte à l'appelant
            self._status = BatchStatus.ERROR
            self._error_message = f"Lot interrompu: {e}"
            raise

        self._status = BatchStatus.COMPLETED
        self._publish(ProgressState(current=total, total=total, file_name=None), on_progress)
        logger.info("Lot terminé: %s", self._ledger.summary())
        return self._ledger
