"""ocr_batch : OCR par lot de PDF/images → tableaux normalisés → classeurs Excel.

Ce paquet fournit :
- Les types du lot (fichiers source, réponses OCR, tableaux, registre des résultats)
- Le client OCR (API Responses d'OpenAI ou Azure OpenAI)
- La normalisation tolérante de la réponse JSON du modèle en tableau rectangulaire
- Un orchestrateur séquentiel qui isole l'échec de chaque fichier
- L'export Excel (un classeur par fichier ou un classeur fusionné)
- Une CLI pour traiter des fichiers ou des dossiers
"""

__all__ = [
    "config",
    "errors",
    "types",
    "sources",
    "encoder",
    "ocr_service",
    "normalizer",
    "orchestrator",
    "writer",
    "storage",
]
