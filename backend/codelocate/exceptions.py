"""Error taxonomy for codelocate."""

from __future__ import annotations


class CodeIndexError(Exception):
    """Base class for every error raised by the indexing and query pipeline."""


class SourceReadError(CodeIndexError, OSError):
    """A project directory or source file could not be read."""


class ParseError(CodeIndexError):
    """A file claimed by its extension could not be parsed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class UnsupportedLanguageError(ParseError):
    """No grammar is registered for the requested language tag."""


class EmbeddingServiceError(CodeIndexError):
    """The embedding backend could not be loaded or rejected a call."""


class IndexServiceError(CodeIndexError):
    """The vector index is unavailable or rejected a call."""


class IndexBusyError(CodeIndexError):
    """Another indexing pass already holds the project."""

    def __init__(self, project: str) -> None:
        super().__init__(f"Indexing already in progress for project: {project}")
        self.project = project
