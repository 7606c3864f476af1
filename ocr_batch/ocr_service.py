import base64
import io
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI
from PIL import Image, UnidentifiedImageError

from .config import require_credentials
from .errors import EmptyResponseError, IoError, RemoteError
from .types import ContentBlock, EncodedPayload, MediaKind, OcrResponse, ProcessConfig

logger = logging.getLogger(__name__)

# Formats que le modèle n'accepte pas en entrée image : convertis en PNG avant l'envoi
_TRANSCODE_TO_PNG = {MediaKind.BMP, MediaKind.TIFF}


class OCRService:
    async def extract(self, payload: EncodedPayload, media_kind: MediaKind, file_name: str) -> OcrResponse:
        raise NotImplementedError


def get_openai_client(cfg: ProcessConfig) -> AsyncOpenAI:
    api_key = require_credentials(cfg)
    # Un seul appel par fichier : pas de nouvelle tentative côté SDK
    return AsyncOpenAI(api_key=api_key, base_url=cfg.base_url, timeout=cfg.timeout, max_retries=0)


def build_instructions(file_name: str, media_kind: MediaKind) -> str:
    return f"""Extrais toutes les informations textuelles et numériques de ce fichier {media_kind.label} « {file_name} ».

Règles à respecter :
1. Si le document contient un tableau, conserve sa structure (colonnes et lignes).
2. N'extrais que le texte et les nombres (ignore les décorations, logos et éléments graphiques).
3. Reconnais fidèlement le texte quelle que soit la langue, ainsi que les chiffres.
4. Pour un reçu, une facture ou un formulaire, extrais les éléments et leurs valeurs.
5. Réponds UNIQUEMENT avec un objet JSON, sans Markdown ni explication.

Format JSON :
{{
  "headers": ["Colonne 1", "Colonne 2", "Colonne 3", ...],
  "rows": [
    ["valeur 1-1", "valeur 1-2", "valeur 1-3", ...],
    ["valeur 2-1", "valeur 2-2", "valeur 2-3", ...],
    ...
  ]
}}

S'il n'y a pas de tableau ou s'il s'agit de texte simple :
{{
  "headers": ["Élément", "Valeur"],
  "rows": [
    ["élément 1", "valeur 1"],
    ["élément 2", "valeur 2"],
    ...
  ]
}}"""


def _transcode_to_png(payload: EncodedPayload, file_name: str) -> str:
    raw = base64.b64decode(payload.data)
    try:
        with Image.open(io.BytesIO(raw)) as img:
            # TIFF multi-pages : seule la première page est envoyée
            img.seek(0)
            frame = img if img.mode in ("RGB", "RGBA", "L", "LA", "P") else img.convert("RGB")
            with io.BytesIO() as buf:
                frame.save(buf, format="PNG")
                png_bytes = buf.getvalue()
    except (OSError, ValueError, UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise IoError(f"Image illisible {file_name}: {exc}") from exc
    return base64.b64encode(png_bytes).decode("ascii")


def build_file_part(payload: EncodedPayload, media_kind: MediaKind, file_name: str) -> Dict[str, Any]:
    """Partie « fichier » du message : `document` (input_file) pour un PDF, `image` (input_image) sinon."""
    if media_kind.is_document:
        return {
            "type": "input_file",
            "filename": file_name,
            "file_data": f"data:{media_kind.value};base64,{payload.data}",
        }
    if media_kind in _TRANSCODE_TO_PNG:
        data_url = f"data:{MediaKind.PNG.value};base64,{_transcode_to_png(payload, file_name)}"
    else:
        data_url = f"data:{media_kind.value};base64,{payload.data}"
    return {"type": "input_image", "image_url": data_url}


def build_request_content(payload: EncodedPayload, media_kind: MediaKind, file_name: str) -> List[Dict[str, Any]]:
    return [
        build_file_part(payload, media_kind, file_name),
        {"type": "input_text", "text": build_instructions(file_name, media_kind)},
    ]


def _status_error_message(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if body.get("message"):
            return str(body["message"])
    reason = getattr(exc.response, "reason_phrase", "") or ""
    return reason or exc.message


def _to_ocr_response(resp: Any) -> OcrResponse:
    blocks: List[ContentBlock] = []
    for item in getattr(resp, "output", None) or []:
        if getattr(item, "type", None) != "message":
            blocks.append(ContentBlock(type=str(getattr(item, "type", "unknown"))))
            continue
        for part in getattr(item, "content", None) or []:
            if part.type == "output_text":
                blocks.append(ContentBlock(type="text", text=part.text))
            else:
                blocks.append(ContentBlock(type=part.type, text=getattr(part, "refusal", None)))
    return OcrResponse(blocks=tuple(blocks))


class OpenAIOCRService(OCRService):
    """
    Client OCR : un seul appel à l'API Responses par fichier, sans reprise ni conversation.
    """

    def __init__(self, client: AsyncOpenAI, model: str, max_output_tokens: int = 4000):
        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_config(cls, cfg: ProcessConfig, client: Optional[AsyncOpenAI] = None) -> "OpenAIOCRService":
        return cls(client or get_openai_client(cfg), model=cfg.model, max_output_tokens=cfg.max_output_tokens)

    async def extract(self, payload: EncodedPayload, media_kind: MediaKind, file_name: str) -> OcrResponse:
        content = build_request_content(payload, media_kind, file_name)
        logger.debug("Appel OCR model=%s file=%s kind=%s b64_chars=%d", self.model, file_name, media_kind.value, len(payload.data))
        try:
            resp = await self.client.responses.create(
                model=self.model,
                max_output_tokens=self.max_output_tokens,
                input=[{"role": "user", "content": content}],
            )
        except openai.APIStatusError as exc:
            raise RemoteError(exc.status_code, _status_error_message(exc)) from exc
        except openai.APIConnectionError as exc:
            raise RemoteError(None, str(exc) or exc.__class__.__name__) from exc
        except openai.APIError as exc:
            # Réponse 2xx illisible (proxy, corps HTML...)
            raise RemoteError(None, str(exc) or exc.__class__.__name__) from exc

        response = _to_ocr_response(resp)
        if not response.blocks:
            raise EmptyResponseError("L'API n'a renvoyé aucun contenu")
        return response
