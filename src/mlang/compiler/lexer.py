"""
mlang Tokenizer.

Transforms Octave/Matlab source text into a flat stream of position
annotated tokens. Newlines are significant and comments are kept, since the
symbol collector later attaches them to function definitions as
documentation.
"""

from bisect import bisect_right
from string import ascii_letters, digits
from typing import Iterator, Optional

from mlang.compiler.tokens import (
    COMMENT_STARTERS,
    KEYWORDS,
    NATIVE_FUNCTIONS,
    QUOTES,
    SYMBOLS,
    Token,
    TokenType,
)
from mlang.utils.errors import Position, Range, TokenizerError

# Ceiling on the number of tokens a single pass may produce. Every token
# consumes at least one character, so hitting this means a tokenizer bug.
MAX_TOKENS = 1_000_000

NAME_START = frozenset(ascii_letters + "_")
NAME_CHARS = frozenset(ascii_letters + digits + "_")
WHITESPACE = frozenset(" \t\r\f")

# Tokens after which '%' is the modulus operator rather than a comment
_MODULUS_OPERANDS = (TokenType.IDENTIFIER, TokenType.NUMBER)

# Tokens after which an adjacent quote is a transpose rather than a string
_TRANSPOSE_OPERANDS = (
    TokenType.IDENTIFIER,
    TokenType.NATIVE_FUNCTION,
    TokenType.NUMBER,
    TokenType.RPARENT,
    TokenType.RBRACKET,
    TokenType.RSQUIRLY,
    TokenType.PERIOD,
    TokenType.TRANSPOSE,
)


class Tokenizer:
    """
    Tokenizer for Octave/Matlab source text.

    The tokenizer reads the input through a two character window
    (``_current_char`` and ``_peek_char``) and dispatches on the current
    character in a fixed order: punctuation, names, numbers, strings, and
    finally ILLEGAL for anything else, so every call makes progress.

    Usage:
        tokenizer = Tokenizer()
        for token in tokenizer.tokenize(text):
            ...
        # or eagerly, with the token ceiling enforced:
        tokens = tokenizer.get_all_tokens(text)
    """

    def __init__(self, text: str = "", max_tokens: int = MAX_TOKENS) -> None:
        """
        Initialize the tokenizer.

        Args:
            text: Source text to tokenize
            max_tokens: Hard ceiling enforced by ``get_all_tokens``
        """
        self.max_tokens = max_tokens
        self.reset(text)

    def reset(self, text: str) -> None:
        """Point the tokenizer at new text and forget everything about the old one."""
        self.text = text
        self.pos = 0
        self.history: list[Token] = []
        self._line_starts: list[int] = [0]

    @property
    def _current_char(self) -> Optional[str]:
        """Return the current character or None if at end."""
        if self.pos >= len(self.text):
            return None
        return self.text[self.pos]

    @property
    def _peek_char(self) -> Optional[str]:
        """Return the next character without consuming it."""
        peek_pos = self.pos + 1
        if peek_pos >= len(self.text):
            return None
        return self.text[peek_pos]

    def _advance(self) -> str:
        """Consume and return the current character."""
        char = self.text[self.pos]
        self.pos += 1
        if char == "\n":
            self._line_starts.append(self.pos)
        return char

    def _position_at(self, offset: int) -> Position:
        """Convert an absolute offset already scanned into a line/column pair."""
        line = bisect_right(self._line_starts, offset) - 1
        return Position(line, offset - self._line_starts[line])

    def _make_token(self, token_type: TokenType, start: int) -> Token:
        """Build a token spanning from ``start`` to the cursor."""
        return Token(
            token_type,
            self.text[start:self.pos],
            Range(self._position_at(start), self._position_at(self.pos)),
        )

    def _skip_whitespace(self) -> None:
        """Skip blanks. Newlines are tokens and are not skipped."""
        while self._current_char is not None and self._current_char in WHITESPACE:
            self._advance()

    def _previous_type(self) -> Optional[TokenType]:
        return self.history[-1].type if self.history else None

    def _read_comment(self, start: int) -> Token:
        """
        Read a line comment up to, but not including, the newline.

        A comment opened with ``%%`` or ``##`` is a cell separator and is
        reported as CODE_BREAK.
        """
        is_break = self._peek_char == self._current_char
        while self._current_char is not None and self._current_char != "\n":
            self._advance()
        return self._make_token(TokenType.CODE_BREAK if is_break else TokenType.COMMENT, start)

    def _read_name(self, start: int) -> Token:
        """Read an identifier and classify it as keyword, native function or identifier."""
        while self._current_char is not None and self._current_char in NAME_CHARS:
            self._advance()

        word = self.text[start:self.pos]
        if word in KEYWORDS:
            return self._make_token(TokenType.KEYWORD, start)
        if word in NATIVE_FUNCTIONS:
            return self._make_token(TokenType.NATIVE_FUNCTION, start)
        return self._make_token(TokenType.IDENTIFIER, start)

    def _read_digits(self) -> None:
        while self._current_char is not None and self._current_char.isdigit():
            self._advance()

    def _read_number(self, start: int) -> Token:
        """
        Read a numeric literal.

        Supports:
        - Integers: 100
        - Decimals: 1.5
        - Exponents: 1e-3, 2.5E+10
        """
        self._read_digits()

        if self._current_char == "." and self._peek_char is not None and self._peek_char.isdigit():
            self._advance()
            self._read_digits()

        if self._current_char is not None and self._current_char in "eE":
            following = self._peek_char
            if following is not None and following.isdigit():
                self._advance()
                self._read_digits()
            elif following is not None and following in "+-":
                exponent_digit = self.text[self.pos + 2:self.pos + 3]
                if exponent_digit.isdigit():
                    self._advance()
                    self._advance()
                    self._read_digits()

        return self._make_token(TokenType.NUMBER, start)

    def _read_string(self, start: int) -> Token:
        """
        Read a quoted string, keeping the quotes in the token text.

        The string ends at the matching quote or, when unterminated, right
        before the end of the line. A doubled quote is an escaped quote.
        """
        quote = self._advance()
        while self._current_char is not None and self._current_char != "\n":
            char = self._advance()
            if char == quote:
                if self._current_char == quote:
                    self._advance()
                    continue
                break
        return self._make_token(TokenType.STRING, start)

    def _next_token(self) -> Token:
        """Scan and return the next token."""
        previous_end = self.pos
        self._skip_whitespace()
        start = self.pos
        char = self._current_char

        if char is None:
            return self._make_token(TokenType.EOF, start)

        if char == "\n":
            self._advance()
            return self._make_token(TokenType.NL, start)

        if char in COMMENT_STARTERS:
            if char == "%" and self._previous_type() in _MODULUS_OPERANDS:
                self._advance()
                return self._make_token(TokenType.MODULUS, start)
            return self._read_comment(start)

        if char in SYMBOLS:
            self._advance()
            return self._make_token(SYMBOLS[char], start)

        if char in NAME_START:
            return self._read_name(start)

        if char.isdigit():
            return self._read_number(start)

        if char == "'" and start == previous_end and self._previous_type() in _TRANSPOSE_OPERANDS:
            self._advance()
            return self._make_token(TokenType.TRANSPOSE, start)

        if char in QUOTES:
            return self._read_string(start)

        self._advance()
        return self._make_token(TokenType.ILLEGAL, start)

    def tokenize(self, text: Optional[str] = None) -> Iterator[Token]:
        """
        Lazily yield tokens, ending with exactly one EOF token.

        Args:
            text: If given, the tokenizer is reset to this text first
        """
        if text is not None:
            self.reset(text)

        while True:
            token = self._next_token()
            self.history.append(token)
            yield token
            if token.type == TokenType.EOF:
                return

    def get_all_tokens(self, text: Optional[str] = None) -> list[Token]:
        """
        Tokenize the whole input into a list.

        Raises:
            TokenizerError: If more than ``max_tokens`` tokens are produced
        """
        tokens: list[Token] = []
        for token in self.tokenize(text):
            tokens.append(token)
            if len(tokens) > self.max_tokens:
                raise TokenizerError(
                    f"Token limit of {self.max_tokens} exceeded",
                    token.range.start,
                )
        return tokens

    def __iter__(self) -> Iterator[Token]:
        """Iterate over the tokens of the current text."""
        return self.tokenize(self.text)


def tokenize(text: str) -> list[Token]:
    """
    Convenience function to tokenize source text.

    Args:
        text: Octave/Matlab source text

    Returns:
        List of tokens ending with EOF
    """
    return Tokenizer().get_all_tokens(text)
