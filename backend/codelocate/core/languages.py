"""Grammar registry: which tree-sitter grammar and node kinds each language uses."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class LanguageSpec:
    """Per-language parsing rules for unit extraction.

    ``unit_kinds`` are the node types emitted as code units. ``bound_kinds``
    are only emitted when their parent is one of ``binding_parents`` (for
    example ``const f = () => {}``), and take their token from the parent.
    Kinds in ``body_required`` are skipped when they have no ``body`` field,
    which drops forward declarations.

    Token resolution order: ``name_field`` on the node, the binding parent's
    ``name`` field, the first leaf of ``identifier_kinds`` below the innermost
    node of the ``search_field`` chain (or the node itself), then
    ``fallback_token``.
    """

    tag: str
    grammar: str
    unit_kinds: FrozenSet[str]
    name_field: Optional[str] = "name"
    search_field: Optional[str] = None
    identifier_kinds: Tuple[str, ...] = ()
    bound_kinds: FrozenSet[str] = frozenset()
    binding_parents: FrozenSet[str] = frozenset()
    body_required: FrozenSet[str] = frozenset()
    fallback_token: str = "unknown_func"
    extensions: Tuple[str, ...] = field(default=())


_JS_BOUND = frozenset({"arrow_function", "function_expression"})
_JS_BINDINGS = frozenset({"variable_declarator"})

LANGUAGES: Dict[str, LanguageSpec] = {
    spec.tag: spec
    for spec in (
        LanguageSpec(
            tag="python",
            grammar="python",
            unit_kinds=frozenset({"function_definition", "class_definition"}),
            fallback_token="unknown_python_func",
            extensions=(".py",),
        ),
        LanguageSpec(
            tag="javascript",
            grammar="javascript",
            unit_kinds=frozenset({
                "function_declaration",
                "generator_function_declaration",
                "method_definition",
                "class_declaration",
            }),
            bound_kinds=_JS_BOUND,
            binding_parents=_JS_BINDINGS,
            extensions=(".js", ".jsx", ".mjs", ".cjs"),
        ),
        LanguageSpec(
            tag="typescript",
            grammar="typescript",
            unit_kinds=frozenset({
                "function_declaration",
                "generator_function_declaration",
                "method_definition",
                "class_declaration",
                "abstract_class_declaration",
            }),
            bound_kinds=_JS_BOUND,
            binding_parents=_JS_BINDINGS,
            extensions=(".ts",),
        ),
        LanguageSpec(
            tag="tsx",
            grammar="tsx",
            unit_kinds=frozenset({
                "function_declaration",
                "generator_function_declaration",
                "method_definition",
                "class_declaration",
                "abstract_class_declaration",
            }),
            bound_kinds=_JS_BOUND,
            binding_parents=_JS_BINDINGS,
            extensions=(".tsx",),
        ),
        LanguageSpec(
            tag="java",
            grammar="java",
            unit_kinds=frozenset({
                "method_declaration",
                "constructor_declaration",
                "class_declaration",
            }),
            extensions=(".java",),
        ),
        LanguageSpec(
            tag="c",
            grammar="c",
            unit_kinds=frozenset({"function_definition"}),
            name_field=None,
            search_field="declarator",
            identifier_kinds=("identifier",),
            extensions=(".c", ".h"),
        ),
        LanguageSpec(
            tag="cpp",
            grammar="cpp",
            unit_kinds=frozenset({"function_definition", "class_specifier", "struct_specifier"}),
            search_field="declarator",
            identifier_kinds=("identifier", "field_identifier", "operator_name", "destructor_name"),
            body_required=frozenset({"class_specifier", "struct_specifier"}),
            extensions=(".cpp", ".cc", ".cxx", ".hpp", ".hh"),
        ),
        LanguageSpec(
            tag="csharp",
            grammar="csharp",
            unit_kinds=frozenset({
                "method_declaration",
                "constructor_declaration",
                "class_declaration",
            }),
            extensions=(".cs",),
        ),
        LanguageSpec(
            tag="go",
            grammar="go",
            unit_kinds=frozenset({"function_declaration", "method_declaration"}),
            extensions=(".go",),
        ),
        LanguageSpec(
            tag="rust",
            grammar="rust",
            unit_kinds=frozenset({"function_item", "struct_item", "enum_item", "trait_item"}),
            extensions=(".rs",),
        ),
    )
}

EXT_TO_LANG: Dict[str, str] = {
    ext: spec.tag for spec in LANGUAGES.values() for ext in spec.extensions
}

SUPPORTED_EXTENSIONS: FrozenSet[str] = frozenset(EXT_TO_LANG)


def get_language_for_file(filename: str) -> Optional[str]:
    """Get language tag from file extension."""
    _, ext = os.path.splitext(filename)
    return EXT_TO_LANG.get(ext.lower())


def get_language_spec(tag: str) -> Optional[LanguageSpec]:
    return LANGUAGES.get(tag)
