"""Code unit extraction: parse a file with tree-sitter and emit function/class spans."""

from __future__ import annotations

import functools
import hashlib
import logging
import os
from collections import Counter
from typing import List, Tuple, Union

import tree_sitter_language_pack

from ..exceptions import ParseError, UnsupportedLanguageError
from .languages import LanguageSpec, get_language_spec
from .models import CodeUnit

logger = logging.getLogger(__name__)

ID_SCHEMES = ("ordinal", "structural")


@functools.lru_cache(maxsize=None)
def _get_parser(grammar: str):
    return tree_sitter_language_pack.get_parser(grammar)


def make_unit_id(filename: str, token: str, ordinal: int) -> str:
    """Positional id: shifts when units are inserted or removed earlier in the file."""
    return f"{filename}_{token}_{ordinal}"


def make_structural_id(file_path: str, filename: str, token: str, symbol_path: str, occurrence: int) -> str:
    """Id derived from the unit's enclosing path, unaffected by edits elsewhere."""
    digest = hashlib.sha1(
        f"{file_path}\x00{symbol_path}\x00{occurrence}".encode("utf-8")
    ).hexdigest()[:16]
    return f"{filename}_{token}_{digest}"


def _node_text(source: bytes, node) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def _first_leaf_of_kind(node, kinds: Tuple[str, ...]):
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in kinds:
            return current
        stack.extend(reversed(current.children))
    return None


def _innermost_field(node, field_name: str):
    """Follow ``field_name`` down a chain of nested nodes and return the last one found."""
    current = node.child_by_field_name(field_name)
    while current is not None:
        inner = current.child_by_field_name(field_name)
        if inner is None:
            break
        current = inner
    return current


class UnitExtractor:
    """Extract code units from source text, one language grammar at a time."""

    def __init__(self, id_scheme: str = "ordinal", strict: bool = True) -> None:
        if id_scheme not in ID_SCHEMES:
            raise ValueError(f"Unknown id scheme {id_scheme!r}, expected one of {ID_SCHEMES}")
        self.id_scheme = id_scheme
        self.strict = strict

    def extract(
        self,
        source: Union[str, bytes],
        language: str,
        file_path: str,
    ) -> List[CodeUnit]:
        """Return the units of one file in pre-order, with ordinals 0..U-1.

        Args:
            source: File content. Bytes must be valid UTF-8.
            language: Language tag from the extension table.
            file_path: Path recorded on every unit (relative to the project root).

        Raises:
            UnsupportedLanguageError: No grammar is registered for ``language``.
            ParseError: Invalid UTF-8, grammar load failure, or (strict mode)
                a syntax tree containing errors.
        """
        spec = get_language_spec(language)
        if spec is None:
            raise UnsupportedLanguageError(f"No grammar registered for language {language!r}", file_path)

        if isinstance(source, str):
            source_bytes = source.encode("utf-8")
        else:
            source_bytes = source
            try:
                source_bytes.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ParseError(f"{file_path} is not valid UTF-8: {e}", file_path) from e

        if not source_bytes:
            return []

        try:
            parser = _get_parser(spec.grammar)
        except Exception as e:
            raise ParseError(f"Grammar {spec.grammar!r} could not be loaded: {e}", file_path) from e

        tree = parser.parse(source_bytes)
        root = tree.root_node
        if root.has_error:
            if self.strict:
                raise ParseError(f"Syntax errors in {file_path} ({language})", file_path)
            logger.debug(f"Syntax errors in {file_path}, extracting what parsed")

        filename = os.path.basename(file_path)
        occurrences: Counter = Counter()
        units: List[CodeUnit] = []
        for ordinal, (node, token, symbol_path) in enumerate(self._iter_units(root, spec, source_bytes)):
            if self.id_scheme == "structural":
                unit_id = make_structural_id(file_path, filename, token, symbol_path, occurrences[symbol_path])
                occurrences[symbol_path] += 1
            else:
                unit_id = make_unit_id(filename, token, ordinal)
            units.append(
                CodeUnit(
                    id=unit_id,
                    file_path=file_path,
                    filename=filename,
                    language=language,
                    token=token,
                    symbol_path=symbol_path,
                    code_text=source_bytes[node.start_byte:node.end_byte].decode("utf-8"),
                    ordinal=ordinal,
                    start_byte=node.start_byte,
                    end_byte=node.end_byte,
                    start_line=node.start_point[0] + 1,
                    end_line=node.end_point[0] + 1,
                )
            )

        logger.debug(f"Extracted {len(units)} units from {file_path}")
        return units

    def _iter_units(self, root, spec: LanguageSpec, source: bytes):
        """Pre-order walk yielding (node, token, symbol_path) for every unit node."""
        stack = [(root, ())]
        while stack:
            node, scope = stack.pop()
            child_scope = scope
            if self._is_unit(node, spec):
                token = self._extract_token(node, spec, source)
                child_scope = scope + (token,)
                yield node, token, ".".join(child_scope)
            stack.extend((child, child_scope) for child in reversed(node.children))

    @staticmethod
    def _is_unit(node, spec: LanguageSpec) -> bool:
        kind = node.type
        if kind in spec.bound_kinds:
            return node.parent is not None and node.parent.type in spec.binding_parents
        if kind not in spec.unit_kinds:
            return False
        if kind in spec.body_required:
            return node.child_by_field_name("body") is not None
        return True

    @staticmethod
    def _extract_token(node, spec: LanguageSpec, source: bytes) -> str:
        if spec.name_field:
            name = node.child_by_field_name(spec.name_field)
            if name is not None:
                return _node_text(source, name)

        parent = node.parent
        if node.type in spec.bound_kinds and parent is not None:
            name = parent.child_by_field_name("name")
            if name is not None:
                return _node_text(source, name)

        if spec.identifier_kinds:
            scope = _innermost_field(node, spec.search_field) if spec.search_field else node
            if scope is not None:
                leaf = _first_leaf_of_kind(scope, spec.identifier_kinds)
                if leaf is not None:
                    return _node_text(source, leaf)

        return spec.fallback_token


def extract_units(
    source: Union[str, bytes],
    language: str,
    file_path: str,
    id_scheme: str = "ordinal",
    strict: bool = True,
) -> List[CodeUnit]:
    """Extract code units from one file (Functional Wrapper)."""
    extractor = UnitExtractor(id_scheme=id_scheme, strict=strict)
    return extractor.extract(source, language, file_path)
