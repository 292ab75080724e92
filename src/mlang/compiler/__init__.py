"""
mlang Compiler Package.

This package contains the front end of the analyzer:
- Tokenizer: Converts source text into position-annotated tokens
- Parser: Produces an Abstract Syntax Tree from tokens, with diagnostics
- AST: Node definitions for the syntax tree
- SymbolCollector: Extracts references and definitions from the tree
"""

from mlang.compiler.ast_nodes import ASTVisitor, Program
from mlang.compiler.lexer import Tokenizer, tokenize
from mlang.compiler.parser import Parser, parse
from mlang.compiler.tokens import Token, TokenType
from mlang.compiler.visitor import (
    Definition,
    DefinitionKind,
    Reference,
    ReferenceKind,
    SymbolCollector,
    collect_symbols,
)
from mlang.utils.diagnostics import Diagnostic


def parse_source(text: str) -> tuple[Program, list[Diagnostic]]:
    """
    Tokenize and parse source text in one step.

    Args:
        text: Octave/Matlab source text

    Returns:
        Tuple of (program, diagnostics)
    """
    parser = Parser(tokenize(text))
    program = parser.parse()
    return program, parser.get_diagnostics()


__all__ = [
    "ASTVisitor",
    "Definition",
    "DefinitionKind",
    "Parser",
    "Program",
    "Reference",
    "ReferenceKind",
    "SymbolCollector",
    "Token",
    "TokenType",
    "Tokenizer",
    "collect_symbols",
    "parse",
    "parse_source",
    "tokenize",
]
