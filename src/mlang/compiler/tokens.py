"""
Token definitions for the mlang tokenizer.

This module holds the grammar tables the tokenizer consults: the
single-character punctuation table, the reserved keywords and the names of
functions that ship with the interpreter.
"""

from dataclasses import dataclass
from enum import Enum, auto

from mlang.utils.errors import Range


class TokenType(Enum):
    """Enumeration of all token kinds."""

    # End of input
    EOF = auto()
    # Statement separator, newlines are significant
    NL = auto()

    # Literals and names
    NUMBER = auto()
    STRING = auto()
    IDENTIFIER = auto()
    KEYWORD = auto()
    NATIVE_FUNCTION = auto()

    # Comments
    COMMENT = auto()
    CODE_BREAK = auto()  # %% or ## cell separator

    # Punctuation
    EQUALS = auto()
    ADDITION = auto()
    SUBTRACTION = auto()
    MULTIPLICATION = auto()
    DIVISION = auto()
    BACKSLASH = auto()
    MODULUS = auto()
    EXPONENTIATION = auto()
    PERIOD = auto()
    SEMICOLON = auto()
    COLON = auto()
    COMMA = auto()
    AT = auto()
    LESS_THAN = auto()
    GREATER_THAN = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LSQUIRLY = auto()
    RSQUIRLY = auto()
    LPARENT = auto()
    RPARENT = auto()

    # Postfix quote after an operand, e.g. a'
    TRANSPOSE = auto()

    # Anything the tokenizer cannot classify
    ILLEGAL = auto()


# Single character punctuation. '%' is context sensitive and is resolved by
# the tokenizer: it only becomes MODULUS after a name or a number.
SYMBOLS: dict[str, TokenType] = {
    "=": TokenType.EQUALS,
    "+": TokenType.ADDITION,
    "-": TokenType.SUBTRACTION,
    "*": TokenType.MULTIPLICATION,
    "/": TokenType.DIVISION,
    "\\": TokenType.BACKSLASH,
    "%": TokenType.MODULUS,
    "^": TokenType.EXPONENTIATION,
    ".": TokenType.PERIOD,
    ";": TokenType.SEMICOLON,
    ":": TokenType.COLON,
    ",": TokenType.COMMA,
    "@": TokenType.AT,
    "<": TokenType.LESS_THAN,
    ">": TokenType.GREATER_THAN,
    "&": TokenType.AND,
    "|": TokenType.OR,
    "~": TokenType.NOT,
    "!": TokenType.NOT,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "{": TokenType.LSQUIRLY,
    "}": TokenType.RSQUIRLY,
    "(": TokenType.LPARENT,
    ")": TokenType.RPARENT,
}

COMMENT_STARTERS = frozenset({"%", "#"})
QUOTES = frozenset({"'", '"'})

KEYWORDS: frozenset[str] = frozenset(
    {
        "for",
        "while",
        "if",
        "else",
        "elseif",
        "switch",
        "case",
        "otherwise",
        "break",
        "continue",
        "return",
        "end",
        "function",
        "endfunction",
        "endif",
        "endfor",
        "endwhile",
        "endswitch",
        "do",
        "until",
        "try",
        "catch",
        "end_try_catch",
        "global",
        "persistent",
    }
)

# Keywords that close a block, grouped by the statement they belong to
BLOCK_TERMINATORS: dict[str, frozenset[str]] = {
    "function": frozenset({"end", "endfunction"}),
    "if": frozenset({"end", "endif"}),
    "for": frozenset({"end", "endfor"}),
    "while": frozenset({"end", "endwhile"}),
    "switch": frozenset({"end", "endswitch"}),
    "try": frozenset({"end", "end_try_catch"}),
    "do": frozenset({"until"}),
}

NATIVE_FUNCTIONS: frozenset[str] = frozenset(
    {
        "quad",
        "inputParser",
        "pol2cart",
        "deg2rad",
        "length",
        "struct",
        "addpath",
        "argv",
        "hold",
        "axis",
        "printf",
        "fprintf",
        "sprintf",
        "figure",
        "set",
        "grid",
        "clc",
        "quit",
        "help",
        "stem",
        "plot",
        "abs",
        "acos",
        "acosh",
        "angle",
        "arg",
        "asin",
        "asinh",
        "atan",
        "atanh",
        "ceil",
        "conj",
        "cos",
        "cosh",
        "cot",
        "csc",
        "det",
        "diag",
        "diff",
        "disp",
        "eig",
        "eps",
        "erf",
        "erfc",
        "error",
        "exp",
        "floor",
        "isempty",
        "log",
        "max",
        "min",
        "mod",
        "numel",
        "ones",
        "round",
        "sin",
        "size",
        "sqrt",
        "sum",
        "tan",
        "warning",
        "zeros",
    }
)


@dataclass(frozen=True, slots=True)
class Token:
    """
    A single lexical unit.

    Attributes:
        type: The kind of this token
        text: The exact source text of the token (strings keep their quotes)
        range: Source span of the token
    """

    type: TokenType
    text: str
    range: Range

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.text!r}, {self.range})"

    @property
    def is_name(self) -> bool:
        """Check if this token can name a variable or function."""
        return self.type in (TokenType.IDENTIFIER, TokenType.NATIVE_FUNCTION)

    @property
    def is_comment(self) -> bool:
        """Check if this token is a comment or a cell separator."""
        return self.type in (TokenType.COMMENT, TokenType.CODE_BREAK)

    def is_keyword(self, *words: str) -> bool:
        """Check if this token is one of the given keywords."""
        return self.type == TokenType.KEYWORD and (not words or self.text in words)
