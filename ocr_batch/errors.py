from typing import Optional


class OcrBatchError(RuntimeError):
    """Erreur de base du paquet ocr_batch."""


class ProcessingError(OcrBatchError):
    """
    Erreur levée dans la chaîne de traitement d'un fichier (lecture → OCR → normalisation).

    L'orchestrateur capture uniquement ces erreurs et les transforme en résultat `error`
    dans le registre du lot ; toute autre exception interrompt le lot.
    """


class IoError(ProcessingError):
    """Les octets du fichier source ne peuvent pas être lus."""


class RemoteError(ProcessingError):
    """Échec de l'appel au service OCR distant (HTTP non-2xx ou transport)."""

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        if status is None:
            super().__init__(f"Erreur API: {message}")
        else:
            super().__init__(f"Erreur API ({status}): {message}")


class EmptyResponseError(ProcessingError):
    """Le service a répondu avec succès mais sans aucun bloc de contenu."""


class MalformedResultError(ProcessingError):
    """Contenu présent mais impossible à convertir en tableau exploitable."""


class InvalidStateError(OcrBatchError):
    """Opération appelée sur des données dans le mauvais état du cycle de vie."""


class EmptyResultError(OcrBatchError):
    """Export fusionné demandé alors qu'aucun fichier n'a été traité avec succès."""


class SubmissionError(OcrBatchError):
    """Soumission de lot vide ou sans aucun fichier de type supporté."""


class ConfigurationError(OcrBatchError):
    """Configuration ou identifiants manquants pour joindre le service OCR."""
