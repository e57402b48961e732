"""Token frontend built on tree-sitter grammars.

Each language has a table mapping grammar node types onto token kinds.
Nested constructs emit a ``*_BEGIN`` token when entered and a ``*_END``
token when left; flat constructs emit a single token. Node types not in
the table emit nothing, but their children are still visited.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TypeAlias
from pathlib import Path

import tree_sitter

from codetile.constants import FILE_END
from codetile.errors import ConfigError
from codetile.frontends.base import ParseResult
from codetile.tokens.schemas import Token, TokenSequence

logger = logging.getLogger(__name__)

KindPair: TypeAlias = tuple[str, str | None]


def _nested(kind: str) -> KindPair:
    return (f"{kind}_BEGIN", f"{kind}_END")


def _flat(kind: str) -> KindPair:
    return (kind, None)


_PYTHON_KINDS: dict[str, KindPair] = {
    "class_definition": _nested("CLASS"),
    "function_definition": _nested("METHOD"),
    "if_statement": _nested("IF"),
    "elif_clause": _flat("ELIF"),
    "else_clause": _flat("ELSE"),
    "for_statement": _nested("FOR"),
    "while_statement": _nested("WHILE"),
    "try_statement": _nested("TRY"),
    "except_clause": _flat("EXCEPT"),
    "finally_clause": _flat("FINALLY"),
    "with_statement": _nested("WITH"),
    "lambda": _flat("LAMBDA"),
    "list_comprehension": _flat("COMPREHENSION"),
    "dictionary_comprehension": _flat("COMPREHENSION"),
    "set_comprehension": _flat("COMPREHENSION"),
    "generator_expression": _flat("COMPREHENSION"),
    "assignment": _flat("ASSIGN"),
    "augmented_assignment": _flat("ASSIGN"),
    "call": _flat("APPLY"),
    "return_statement": _flat("RETURN"),
    "yield": _flat("YIELD"),
    "raise_statement": _flat("THROW"),
    "assert_statement": _flat("ASSERT"),
    "break_statement": _flat("BREAK"),
    "continue_statement": _flat("CONTINUE"),
    "import_statement": _flat("IMPORT"),
    "import_from_statement": _flat("IMPORT"),
    "decorator": _flat("DECORATOR"),
    "global_statement": _flat("GLOBAL"),
    "delete_statement": _flat("DEL"),
}

_JAVA_KINDS: dict[str, KindPair] = {
    "class_declaration": _nested("CLASS"),
    "interface_declaration": _nested("INTERFACE"),
    "enum_declaration": _nested("ENUM"),
    "record_declaration": _nested("RECORD"),
    "method_declaration": _nested("METHOD"),
    "constructor_declaration": _nested("CONSTRUCTOR"),
    "if_statement": _nested("IF"),
    "for_statement": _nested("FOR"),
    "enhanced_for_statement": _nested("FOR"),
    "while_statement": _nested("WHILE"),
    "do_statement": _nested("DO"),
    "switch_expression": _nested("SWITCH"),
    "switch_label": _flat("CASE"),
    "try_statement": _nested("TRY"),
    "try_with_resources_statement": _nested("TRY"),
    "catch_clause": _flat("CATCH"),
    "finally_clause": _flat("FINALLY"),
    "lambda_expression": _flat("LAMBDA"),
    "local_variable_declaration": _flat("VARDEF"),
    "field_declaration": _flat("VARDEF"),
    "assignment_expression": _flat("ASSIGN"),
    "method_invocation": _flat("APPLY"),
    "object_creation_expression": _flat("NEWCLASS"),
    "array_creation_expression": _flat("NEWARRAY"),
    "return_statement": _flat("RETURN"),
    "throw_statement": _flat("THROW"),
    "break_statement": _flat("BREAK"),
    "continue_statement": _flat("CONTINUE"),
    "import_declaration": _flat("IMPORT"),
}

_C_KINDS: dict[str, KindPair] = {
    "function_definition": _nested("FUNCTION"),
    "struct_specifier": _nested("STRUCT"),
    "union_specifier": _nested("UNION"),
    "enum_specifier": _nested("ENUM"),
    "if_statement": _nested("IF"),
    "else_clause": _flat("ELSE"),
    "for_statement": _nested("FOR"),
    "while_statement": _nested("WHILE"),
    "do_statement": _nested("DO"),
    "switch_statement": _nested("SWITCH"),
    "case_statement": _flat("CASE"),
    "declaration": _flat("VARDEF"),
    "assignment_expression": _flat("ASSIGN"),
    "update_expression": _flat("ASSIGN"),
    "call_expression": _flat("APPLY"),
    "return_statement": _flat("RETURN"),
    "break_statement": _flat("BREAK"),
    "continue_statement": _flat("CONTINUE"),
    "goto_statement": _flat("GOTO"),
}

_CPP_KINDS: dict[str, KindPair] = {
    **_C_KINDS,
    "class_specifier": _nested("CLASS"),
    "namespace_definition": _nested("NAMESPACE"),
    "template_declaration": _flat("TEMPLATE"),
    "for_range_loop": _nested("FOR"),
    "try_statement": _nested("TRY"),
    "catch_clause": _flat("CATCH"),
    "throw_statement": _flat("THROW"),
    "lambda_expression": _flat("LAMBDA"),
    "new_expression": _flat("NEWCLASS"),
    "delete_expression": _flat("DELETE"),
    "field_declaration": _flat("VARDEF"),
}

_JAVASCRIPT_KINDS: dict[str, KindPair] = {
    "class_declaration": _nested("CLASS"),
    "function_declaration": _nested("FUNCTION"),
    "generator_function_declaration": _nested("FUNCTION"),
    "method_definition": _nested("METHOD"),
    "arrow_function": _flat("LAMBDA"),
    "if_statement": _nested("IF"),
    "else_clause": _flat("ELSE"),
    "for_statement": _nested("FOR"),
    "for_in_statement": _nested("FOR"),
    "while_statement": _nested("WHILE"),
    "do_statement": _nested("DO"),
    "switch_statement": _nested("SWITCH"),
    "switch_case": _flat("CASE"),
    "try_statement": _nested("TRY"),
    "catch_clause": _flat("CATCH"),
    "finally_clause": _flat("FINALLY"),
    "variable_declaration": _flat("VARDEF"),
    "lexical_declaration": _flat("VARDEF"),
    "assignment_expression": _flat("ASSIGN"),
    "augmented_assignment_expression": _flat("ASSIGN"),
    "call_expression": _flat("APPLY"),
    "new_expression": _flat("NEWCLASS"),
    "return_statement": _flat("RETURN"),
    "throw_statement": _flat("THROW"),
    "break_statement": _flat("BREAK"),
    "continue_statement": _flat("CONTINUE"),
    "import_statement": _flat("IMPORT"),
}


@dataclass(frozen=True)
class TreeSitterLanguage:
    """A :class:`~codetile.frontends.base.Language` backed by tree-sitter."""

    name: str
    short_name: str
    grammar_module: str
    suffixes: tuple[str, ...]
    minimum_token_match: int
    node_kinds: Mapping[str, KindPair] = field(repr=False)
    supports_columns: bool = True
    is_preformatted: bool = True
    uses_index: bool = False
    use_view_files: bool = False
    expects_submission_order: bool = False

    def customize_submission_order(
        self, submissions: list[Path]
    ) -> list[Path]:
        return submissions

    def parse(self, directory: Path, files: Sequence[Path]) -> ParseResult:
        """Tokenize ``files`` (relative to ``directory``) in the given order.

        Unreadable or syntactically broken files flag the result as
        erroneous; their tokens are still returned.
        """
        parser = _get_parser(self.grammar_module)
        tokens: list[Token] = []
        errors: list[str] = []

        for rel in files:
            path = directory / rel
            try:
                source = path.read_bytes()
                source.decode("utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                errors.append(f"{rel}: {exc}")
                continue

            tree = parser.parse(source)
            if tree.root_node.has_error:
                errors.append(f"{rel}: syntax error")
            file_tokens = self._tokenize(tree.root_node, str(rel))
            tokens.extend(file_tokens)
            last_line = file_tokens[-1].line if file_tokens else 1
            tokens.append(Token(kind=FILE_END, file=str(rel), line=last_line))

        for error in errors:
            logger.debug("event=parse_error language=%s detail=%s", self.short_name, error)
        return ParseResult(
            tokens=TokenSequence(tuple(tokens)),
            has_errors=bool(errors),
            errors=tuple(errors),
        )

    def _tokenize(self, root: tree_sitter.Node, file: str) -> list[Token]:
        """Depth-first walk emitting begin/end tokens from the kind table."""
        tokens: list[Token] = []
        # (node, exit_kind): exit entries carry the node to close.
        stack: list[tuple[tree_sitter.Node, str | None]] = [(root, None)]
        while stack:
            node, exit_kind = stack.pop()
            if exit_kind is not None:
                # 1-based column just past the node
                row, col = node.end_point
                tokens.append(
                    Token(kind=exit_kind, file=file, line=row + 1, column=col + 1)
                )
                continue

            pair = self.node_kinds.get(node.type)
            if pair is not None:
                enter_kind, close_kind = pair
                row, col = node.start_point
                end_row, end_col = node.end_point
                length = end_col - col if end_row == row else 0
                tokens.append(
                    Token(
                        kind=enter_kind,
                        file=file,
                        line=row + 1,
                        column=col + 1,
                        length=length,
                    )
                )
                if close_kind is not None:
                    stack.append((node, close_kind))
            stack.extend((child, None) for child in reversed(node.children))
        return tokens


# ---------------------------------------------------------------------------
# Parser cache
# ---------------------------------------------------------------------------

_parser_cache: dict[str, tree_sitter.Parser] = {}


def _get_parser(module_name: str) -> tree_sitter.Parser:
    """Get or create a cached tree-sitter parser for a grammar module."""
    if module_name in _parser_cache:
        return _parser_cache[module_name]

    try:
        mod = importlib.import_module(module_name)
        capsule: object = mod.language()
        parser = tree_sitter.Parser(tree_sitter.Language(capsule))
    except (ImportError, AttributeError) as exc:
        raise ConfigError(
            f"tree-sitter grammar {module_name!r} is not available"
        ) from exc
    _parser_cache[module_name] = parser
    return parser


LANGUAGES: dict[str, TreeSitterLanguage] = {
    lang.short_name: lang
    for lang in (
        TreeSitterLanguage(
            name="Python 3",
            short_name="python",
            grammar_module="tree_sitter_python",
            suffixes=(".py",),
            minimum_token_match=12,
            node_kinds=_PYTHON_KINDS,
        ),
        TreeSitterLanguage(
            name="Java",
            short_name="java",
            grammar_module="tree_sitter_java",
            suffixes=(".java",),
            minimum_token_match=9,
            node_kinds=_JAVA_KINDS,
        ),
        TreeSitterLanguage(
            name="C",
            short_name="c",
            grammar_module="tree_sitter_c",
            suffixes=(".c", ".h"),
            minimum_token_match=12,
            node_kinds=_C_KINDS,
        ),
        TreeSitterLanguage(
            name="C++",
            short_name="cpp",
            grammar_module="tree_sitter_cpp",
            suffixes=(".cpp", ".cc", ".cxx", ".hpp", ".hh", ".hxx", ".h"),
            minimum_token_match=12,
            node_kinds=_CPP_KINDS,
        ),
        TreeSitterLanguage(
            name="JavaScript",
            short_name="javascript",
            grammar_module="tree_sitter_javascript",
            suffixes=(".js", ".mjs", ".cjs", ".jsx"),
            minimum_token_match=12,
            node_kinds=_JAVASCRIPT_KINDS,
        ),
    )
}
