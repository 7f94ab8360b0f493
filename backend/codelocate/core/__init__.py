"""Core functionality for codelocate."""

from .models import CodeUnit
from .languages import EXT_TO_LANG, LANGUAGES, SUPPORTED_EXTENSIONS, LanguageSpec, get_language_for_file
from .extraction import UnitExtractor, extract_units, make_unit_id
from .embeddings import Embedder, SentenceTransformersEmbedder, make_embedder

__all__ = [
    "CodeUnit",
    "EXT_TO_LANG",
    "LANGUAGES",
    "SUPPORTED_EXTENSIONS",
    "LanguageSpec",
    "get_language_for_file",
    "UnitExtractor",
    "extract_units",
    "make_unit_id",
    "Embedder",
    "SentenceTransformersEmbedder",
    "make_embedder",
]
