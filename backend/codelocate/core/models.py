"""Data models for codelocate."""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Optional


@dataclasses.dataclass
class CodeUnit:
    """A function, method or class span extracted from one source file."""

    id: str
    file_path: str
    filename: str
    language: str
    token: str
    symbol_path: str
    code_text: str
    ordinal: int
    start_byte: int
    end_byte: int
    start_line: int
    end_line: int
    embedding: Optional[List[float]] = None

    @property
    def index_key(self) -> str:
        return f"{self.file_path}::{self.id}"

    def metadata(self, project: str = "", indexed_at: str = "") -> Dict[str, str]:
        """Payload stored beside the vector so a match is self-describing."""
        return {
            "unit_id": self.id,
            "file_path": self.file_path,
            "filename": self.filename,
            "language": self.language,
            "token": self.token,
            "symbol_path": self.symbol_path,
            "code": self.code_text,
            "ordinal": str(self.ordinal),
            "start_byte": str(self.start_byte),
            "end_byte": str(self.end_byte),
            "start_line": str(self.start_line),
            "end_line": str(self.end_line),
            "project": project,
            "indexed_at": indexed_at,
        }
