# File: docsearch/domain/query.py
import re
import unicodedata
from typing import List, Tuple

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_SEPARATORS = re.compile(r"[_\-.]")

MIN_TOKEN_LENGTH = 2


def _strip_punctuation(text: str) -> str:
    return "".join(
        " " if ch != "'" and unicodedata.category(ch).startswith("P") else ch
        for ch in text
    )


def preprocess_query(raw: str) -> Tuple[str, List[str]]:
    """
    Normaliza el texto de busqueda.

    "myDocument_Name.pdf" -> ("my document name pdf", ["my", "document", "name", "pdf"])

    Un resultado vacio significa que la peticion es un listado, no una busqueda.
    """
    if not raw:
        return "", []
    text = _CAMEL_BOUNDARY.sub(r"\1 \2", raw)
    text = _SEPARATORS.sub(" ", text)
    text = _strip_punctuation(text).lower()
    tokens = [t for t in text.split() if len(t) >= MIN_TOKEN_LENGTH]
    return " ".join(tokens), tokens
