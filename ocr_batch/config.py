import os
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError
from .types import ProcessConfig


def _azure_base_url() -> Optional[str]:
    endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
    if not endpoint:
        return None
    return endpoint.rstrip('/') + "/openai/v1/"


def load_config(
    out_root: Optional[str] = None,
    model: Optional[str] = None,
    max_output_tokens: Optional[int] = None,
    timeout: Optional[float] = None,
    per_file: bool = True,
    merged: bool = True,
) -> ProcessConfig:
    """
    Construit la configuration du lot : arguments explicites d'abord, variables d'environnement ensuite.

    Avec `AZURE_OPENAI_ENDPOINT`, le client vise l'endpoint Azure v1 (clé `AZURE_OPENAI_API_KEY`,
    modèle = nom du déploiement) ; sinon l'API OpenAI (`OPENAI_API_KEY`).
    """
    root = Path(out_root or os.getenv("OCR_OUT_ROOT", "ocr_output")).expanduser().resolve()
    root.mkdir(parents=True, exist_ok=True)

    base_url = _azure_base_url()
    if base_url:
        api_key = os.getenv("AZURE_OPENAI_API_KEY")
        default_model = os.getenv("AZURE_OPENAI_DEPLOYMENT") or os.getenv("OCR_MODEL", "gpt-4o")
    else:
        api_key = os.getenv("OPENAI_API_KEY")
        default_model = os.getenv("OCR_MODEL", "gpt-4o")

    cfg = ProcessConfig(
        out_root=root,
        model=model or default_model,
        max_output_tokens=int(max_output_tokens or int(os.getenv("OCR_MAX_OUTPUT_TOKENS", "4000"))),
        timeout=float(timeout or float(os.getenv("OCR_API_TIMEOUT", "300"))),
        api_key=api_key,
        base_url=base_url,
        per_file=per_file,
        merged=merged,
    )
    return cfg


def require_credentials(cfg: ProcessConfig) -> str:
    if not cfg.api_key:
        if cfg.base_url:
            raise ConfigurationError("AZURE_OPENAI_API_KEY non défini (requis avec AZURE_OPENAI_ENDPOINT)")
        raise ConfigurationError("OPENAI_API_KEY non défini")
    return cfg.api_key
