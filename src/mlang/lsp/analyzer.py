"""
Document analysis for the mlang language server.

This module runs the full text-to-symbols pipeline for one document:
- Tokenizing
- Parsing into an AST
- Collecting references and definitions

The result is a ``DocumentSnapshot``: an immutable, point-in-time view of a
document that the workspace index swaps in whole after every analysis.
"""

from dataclasses import dataclass
from typing import Optional

from mlang.compiler.ast_nodes import Program
from mlang.compiler.lexer import MAX_TOKENS, Tokenizer
from mlang.compiler.parser import Parser
from mlang.compiler.tokens import Token
from mlang.compiler.visitor import Definition, Reference, SymbolCollector
from mlang.utils.diagnostics import Diagnostic, ErrorCode
from mlang.utils.errors import Position, Range, TokenizerError


@dataclass(frozen=True, slots=True)
class DocumentSnapshot:
    """
    The complete analysis result for one document at one point in time.

    Attributes:
        uri: Document URI
        text: The source text everything else was derived from
        version: Edit stamp the text belongs to
        tokens: Token stream, comments included
        ast: The parsed program
        references: Every name use, in document order
        definitions: Every name introduction, in document order
        diagnostics: Tokenizer and parser diagnostics
    """

    uri: str
    text: str
    version: int
    tokens: tuple[Token, ...]
    ast: Program
    references: tuple[Reference, ...]
    definitions: tuple[Definition, ...]
    diagnostics: tuple[Diagnostic, ...]

    @property
    def lines(self) -> list[str]:
        return self.text.splitlines()

    def definitions_named(self, name: str) -> list[Definition]:
        return [d for d in self.definitions if d.name == name]

    def references_named(self, name: str) -> list[Reference]:
        return [r for r in self.references if r.name == name]

    def word_at(self, line: int, character: int) -> Optional[tuple[str, Range]]:
        return get_word_at_position(self.text, line, character)


def analyze_document(
    uri: str, text: str, version: int = 0, max_tokens: int = MAX_TOKENS
) -> DocumentSnapshot:
    """
    Tokenize, parse and visit ``text``.

    Never raises for malformed input. A document that trips the tokenizer's
    token ceiling yields an empty program and a single diagnostic.

    Args:
        uri: Document URI
        text: Source text
        version: Edit stamp to record on the snapshot
        max_tokens: Token ceiling passed to the tokenizer

    Returns:
        A new DocumentSnapshot
    """
    try:
        tokens = Tokenizer(max_tokens=max_tokens).get_all_tokens(text)
    except TokenizerError as e:
        start = e.location or Position(0, 0)
        diagnostic = Diagnostic(
            ErrorCode.TOKEN_LIMIT_EXCEEDED,
            e.message,
            Range(start, start),
        )
        return DocumentSnapshot(
            uri=uri,
            text=text,
            version=version,
            tokens=(),
            ast=Program((), Range(Position(0, 0), Position(0, 0))),
            references=(),
            definitions=(),
            diagnostics=(diagnostic,),
        )

    parser = Parser(tokens)
    program = parser.parse()

    collector = SymbolCollector()
    collector.visit(program)

    return DocumentSnapshot(
        uri=uri,
        text=text,
        version=version,
        tokens=tuple(tokens),
        ast=program,
        references=tuple(collector.references),
        definitions=tuple(collector.definitions),
        diagnostics=tuple(parser.get_diagnostics()),
    )


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def get_word_at_position(
    text: str, line: int, character: int
) -> Optional[tuple[str, Range]]:
    """
    Get the name under a cursor.

    Dotted struct paths are included up to the segment the cursor is on, so
    a cursor on ``b`` in ``a.b.c`` yields ``a.b``.

    Args:
        text: Document text
        line: 0-indexed line number
        character: 0-indexed character position

    Returns:
        Tuple of (word, range), or None if the cursor is not on a name
    """
    lines = text.splitlines()
    if line < 0 or line >= len(lines):
        return None

    line_text = lines[line]
    if character < 0 or character > len(line_text):
        return None

    # Find word boundaries
    start = character
    while start > 0 and _is_word_char(line_text[start - 1]):
        start -= 1

    end = character
    while end < len(line_text) and _is_word_char(line_text[end]):
        end += 1

    if start == end or line_text[start].isdigit():
        return None

    # Walk back over the struct path
    while (
        start > 1
        and line_text[start - 1] == "."
        and _is_word_char(line_text[start - 2])
    ):
        segment = start - 1
        while segment > 0 and _is_word_char(line_text[segment - 1]):
            segment -= 1
        if line_text[segment].isdigit():
            break
        start = segment

    return line_text[start:end], Range.from_points(line, start, line, end)
