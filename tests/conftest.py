"""
Pytest configuration and shared fixtures for mlang tests.
"""

import pytest

from mlang.compiler.ast_nodes import Program
from mlang.compiler.lexer import Tokenizer
from mlang.compiler.parser import Parser
from mlang.compiler.tokens import Token
from mlang.compiler.visitor import SymbolCollector
from mlang.lsp.settings import Settings
from mlang.lsp.workspace import WorkspaceIndex
from mlang.utils.diagnostics import Diagnostic


@pytest.fixture
def tokenizer_factory():
    """Factory fixture for creating tokenizers."""

    def _create_tokenizer(source: str = "", max_tokens: int | None = None) -> Tokenizer:
        if max_tokens is None:
            return Tokenizer(source)
        return Tokenizer(source, max_tokens=max_tokens)

    return _create_tokenizer


@pytest.fixture
def tokenize(tokenizer_factory):
    """Fixture to tokenize source code."""

    def _tokenize(source: str) -> list[Token]:
        return tokenizer_factory().get_all_tokens(source)

    return _tokenize


@pytest.fixture
def parser_factory(tokenize):
    """Factory fixture for creating parsers from source."""

    def _create_parser(source: str) -> Parser:
        return Parser(tokenize(source))

    return _create_parser


@pytest.fixture
def parse_source(parser_factory):
    """Fixture to parse source code into a Program and its diagnostics."""

    def _parse(source: str) -> tuple[Program, list[Diagnostic]]:
        parser = parser_factory(source)
        program = parser.parse()
        return program, parser.get_diagnostics()

    return _parse


@pytest.fixture
def parse(parse_source):
    """Fixture to parse source code into a Program."""

    def _parse(source: str) -> Program:
        program, _ = parse_source(source)
        return program

    return _parse


@pytest.fixture
def collect_symbols(parse):
    """Fixture to run the symbol collector over source code."""

    def _collect(source: str) -> SymbolCollector:
        collector = SymbolCollector()
        collector.visit(parse(source))
        return collector

    return _collect


class PublishRecorder:
    """Publish callback that remembers every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[Diagnostic]]] = []

    def __call__(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self.calls.append((uri, diagnostics))

    def for_uri(self, uri: str) -> list[list[Diagnostic]]:
        return [diagnostics for called_uri, diagnostics in self.calls if called_uri == uri]


@pytest.fixture
def publisher() -> PublishRecorder:
    """Fixture providing a recording publish callback."""
    return PublishRecorder()


@pytest.fixture
def workspace_factory(publisher):
    """Factory fixture for creating workspace indexes wired to ``publisher``."""

    def _create_workspace(**settings) -> WorkspaceIndex:
        settings.setdefault("debounce_delay", 0.01)
        return WorkspaceIndex(Settings(**settings), publish=publisher)

    return _create_workspace
