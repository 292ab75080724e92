"""
mlang - Language intelligence for Octave/Matlab sources.

mlang turns Octave/Matlab source text into tokens, a syntax tree and a
symbol index of references and definitions, and serves them to editors
through a Language Server Protocol server.
"""

from mlang.compiler import parse_source
from mlang.compiler.lexer import Tokenizer
from mlang.compiler.parser import Parser
from mlang.compiler.visitor import SymbolCollector

__version__ = "0.1.0"
__all__ = [
    "parse_source",
    "Tokenizer",
    "Parser",
    "SymbolCollector",
]
