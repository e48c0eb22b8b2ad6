import re
import unicodedata

_WS = re.compile(r"\s+")


def clean_label(text: str | None) -> str | None:
    """Libellé tel qu'affiché : espaces superflus retirés, ``None`` si vide."""
    if text is None:
        return None
    text = _WS.sub(" ", str(text)).strip()
    return text or None


def normalize_label(text: str) -> str:
    """
    Clé de comparaison d'un libellé : sans accents, casse repliée,
    espaces normalisés. "Électricité  CFO" et "electricite cfo" donnent
    la même clé.
    """
    text = unicodedata.normalize("NFD", str(text))
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    return _WS.sub(" ", text).strip().casefold()
