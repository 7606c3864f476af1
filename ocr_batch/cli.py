import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Set

from dotenv import find_dotenv, load_dotenv

from .config import load_config
from .errors import OcrBatchError
from .logging_config import configure_logging
from .ocr_service import OpenAIOCRService
from .orchestrator import BatchOrchestrator
from .sources import SUPPORTED_LABEL, collect_inputs, select_supported
from .storage import MERGED_EXPORT_NAME, dedupe_name, single_export_name, write_report, write_workbook
from .types import BatchLedger, ProcessConfig, ProgressState
from .writer import export_all, export_one

logger = logging.getLogger(__name__)


def _print_progress(progress: ProgressState) -> None:
    if progress.file_name:
        print(f"[{progress.current}/{progress.total}] {progress.file_name}")


def export_results(ledger: BatchLedger, cfg: ProcessConfig) -> List[str]:
    written: List[str] = []
    taken: Set[str] = {MERGED_EXPORT_NAME}
    if cfg.per_file:
        for outcome in ledger.successes():
            name = dedupe_name(single_export_name(outcome.file_name), taken)
            written.append(str(write_workbook(cfg.out_root, name, export_one(outcome))))
    if cfg.merged:
        if ledger.success_count == 0:
            print("Aucun fichier traité avec succès : pas d'export fusionné.")
        else:
            written.append(str(write_workbook(cfg.out_root, MERGED_EXPORT_NAME, export_all(ledger))))
    return written


async def run_batch(inputs: List[str], cfg: ProcessConfig) -> BatchLedger:
    files, rejected = select_supported(collect_inputs(inputs))
    for path in rejected:
        if path.is_file():
            print(f"Ignoré (type non supporté): {path}")
        else:
            print(f"Introuvable: {path}")
    print(f"{len(files)} fichier(s) ({SUPPORTED_LABEL}) détecté(s) → sortie: {cfg.out_root}")

    orchestrator = BatchOrchestrator(OpenAIOCRService.from_config(cfg))
    return await orchestrator.run(files, on_progress=_print_progress)


def main(argv: Optional[List[str]] = None) -> None:
    load_dotenv(find_dotenv(usecwd=True), override=False)

    parser = argparse.ArgumentParser(description="OCR par lot de PDF/images → Excel (un classeur par fichier et/ou fusionné).")
    parser.add_argument("--input", required=True, nargs="+", help="Fichiers ou dossiers (parcourus récursivement).")
    parser.add_argument("--out-root", required=False, help="Dossier de sortie (défaut: env OCR_OUT_ROOT ou ocr_output)")
    parser.add_argument("--model", required=False, help="Modèle OCR (défaut: env OCR_MODEL ou gpt-4o)")
    parser.add_argument("--max-tokens", required=False, type=int, default=None, help="Budget de tokens de sortie (défaut: 4000)")
    parser.add_argument("--per-file", action=argparse.BooleanOptionalAction, default=True, help="Un classeur par fichier réussi")
    parser.add_argument("--merged", action=argparse.BooleanOptionalAction, default=True, help="Classeur fusionné (une feuille par fichier)")
    parser.add_argument("--verbose", action="store_true", help="Logs DEBUG")
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        cfg = load_config(
            out_root=args.out_root,
            model=args.model,
            max_output_tokens=args.max_tokens,
            per_file=args.per_file,
            merged=args.merged,
        )
        logger.debug("Configuration: %s", cfg)
        ledger = asyncio.run(run_batch(args.input, cfg))
    except KeyboardInterrupt:
        print("Interrompu par l'utilisateur.")
        sys.exit(130)
    except OcrBatchError as e:
        print(f"❌ {e}")
        sys.exit(1)

    for outcome in ledger:
        if outcome.ok:
            print(f"✅ {outcome.file_name} ({len(outcome.table.rows)} ligne(s))")
        else:
            print(f"❌ {outcome.file_name} → {outcome.error}")
    print(ledger.summary())

    try:
        for path in export_results(ledger, cfg):
            print(f"Écrit: {path}")
    except OcrBatchError as e:
        print(f"❌ Échec export → {e}")
        sys.exit(1)
    print(f"Rapport: {write_report(cfg.out_root, ledger)}")


if __name__ == "__main__":
    main()
