"""
mlang Parser.

A recursive descent parser that turns the token stream into a ``Program``.
Expressions use precedence climbing. The parser never raises on malformed
input: every problem is recorded as a ``Diagnostic`` and parsing resumes at
the next statement boundary (a newline, a semicolon or a block keyword).
"""

from typing import Callable, Optional

from mlang.compiler.ast_nodes import (
    AnonymousFunctionDefinition,
    Assignment,
    ControlStatement,
    Declaration,
    DefaultValueArgument,
    DoUntilStatement,
    ElseIfClause,
    Expression,
    ExpressionStatement,
    ForStatement,
    FunctionCall,
    FunctionDefinition,
    FunctionHandle,
    Identifier,
    IfStatement,
    MultiOutputAssignment,
    NumberLiteral,
    Placeholder,
    Program,
    Statement,
    StringLiteral,
    StructLiteral,
    SwitchCase,
    SwitchStatement,
    TryStatement,
    UnaryOperation,
    VariableVector,
    WhileStatement,
    BinaryOperation,
)
from mlang.compiler.tokens import BLOCK_TERMINATORS, Token, TokenType
from mlang.utils.diagnostics import Diagnostic, DiagnosticLevel, ErrorCode
from mlang.utils.errors import Position, Range

# Ceiling on statements in a single block
MAX_STATEMENTS = 5000


class Precedence:
    """Operator precedence levels."""

    NONE = 0
    OR_ELSE = 1         # ||
    AND_THEN = 2        # &&
    OR = 3              # |
    AND = 4             # &
    COMPARISON = 5      # == ~= < <= > >=
    RANGE = 6           # :
    ADDITIVE = 7        # + -
    MULTIPLICATIVE = 8  # * / \ % .* ./ .\
    UNARY = 9           # - + ~
    POWER = 10          # ^ .^


PRECEDENCE_MAP: dict[str, int] = {
    "||": Precedence.OR_ELSE,
    "&&": Precedence.AND_THEN,
    "|": Precedence.OR,
    "&": Precedence.AND,
    "==": Precedence.COMPARISON,
    "~=": Precedence.COMPARISON,
    "!=": Precedence.COMPARISON,
    "<": Precedence.COMPARISON,
    "<=": Precedence.COMPARISON,
    ">": Precedence.COMPARISON,
    ">=": Precedence.COMPARISON,
    ":": Precedence.RANGE,
    "+": Precedence.ADDITIVE,
    "-": Precedence.ADDITIVE,
    "*": Precedence.MULTIPLICATIVE,
    "/": Precedence.MULTIPLICATIVE,
    "\\": Precedence.MULTIPLICATIVE,
    "%": Precedence.MULTIPLICATIVE,
    ".*": Precedence.MULTIPLICATIVE,
    "./": Precedence.MULTIPLICATIVE,
    ".\\": Precedence.MULTIPLICATIVE,
    "^": Precedence.POWER,
    ".^": Precedence.POWER,
}

# Single token binary operators
BINARY_OPERATORS = frozenset(
    {
        TokenType.ADDITION,
        TokenType.SUBTRACTION,
        TokenType.MULTIPLICATION,
        TokenType.DIVISION,
        TokenType.BACKSLASH,
        TokenType.MODULUS,
        TokenType.EXPONENTIATION,
        TokenType.LESS_THAN,
        TokenType.GREATER_THAN,
        TokenType.AND,
        TokenType.OR,
        TokenType.COLON,
    }
)

# Operators spelled with two adjacent tokens, e.g. '=' '=' for '=='
COMPOUND_OPERATORS = frozenset(
    {
        (TokenType.EQUALS, TokenType.EQUALS),
        (TokenType.LESS_THAN, TokenType.EQUALS),
        (TokenType.GREATER_THAN, TokenType.EQUALS),
        (TokenType.NOT, TokenType.EQUALS),
        (TokenType.AND, TokenType.AND),
        (TokenType.OR, TokenType.OR),
        (TokenType.PERIOD, TokenType.MULTIPLICATION),
        (TokenType.PERIOD, TokenType.DIVISION),
        (TokenType.PERIOD, TokenType.BACKSLASH),
        (TokenType.PERIOD, TokenType.EXPONENTIATION),
    }
)

PREFIX_OPERATORS = frozenset({TokenType.SUBTRACTION, TokenType.ADDITION, TokenType.NOT})

STATEMENT_ENDS = (TokenType.NL, TokenType.SEMICOLON, TokenType.COMMA, TokenType.EOF)

# Keywords that close or split a block and therefore end any statement
BLOCK_CLOSERS = frozenset(
    {
        "end",
        "endfunction",
        "endif",
        "endfor",
        "endwhile",
        "endswitch",
        "end_try_catch",
        "else",
        "elseif",
        "case",
        "otherwise",
        "catch",
        "until",
    }
)

# A function body also ends where the next function starts, for files
# that do not close their functions
FUNCTION_BODY_END = BLOCK_TERMINATORS["function"] | {"function"}
IF_BRANCH_END = BLOCK_TERMINATORS["if"] | {"elseif", "else"}
SWITCH_BRANCH_END = BLOCK_TERMINATORS["switch"] | {"case", "otherwise"}
TRY_BODY_END = BLOCK_TERMINATORS["try"] | {"catch"}

_GROUP_CLOSERS = {
    TokenType.LPARENT: TokenType.RPARENT,
    TokenType.LBRACKET: TokenType.RBRACKET,
    TokenType.LSQUIRLY: TokenType.RSQUIRLY,
}


def _adjacent(first: Token, second: Token) -> bool:
    """Check that no blank separates two tokens."""
    return first.range.end == second.range.start


def _comment_text(token: Token) -> str:
    return token.text.lstrip("%#").strip()


def _prepare_tokens(tokens: list[Token]) -> tuple[list[Token], list[Token]]:
    """
    Split a raw token stream into code tokens and comment tokens.

    Line continuations (``...``) are removed together with the rest of their
    line, and the code stream is guaranteed to end with EOF.
    """
    code: list[Token] = []
    comments: list[Token] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.is_comment:
            comments.append(token)
            i += 1
            continue

        if (
            token.type == TokenType.PERIOD
            and i + 2 < len(tokens)
            and tokens[i + 1].type == TokenType.PERIOD
            and tokens[i + 2].type == TokenType.PERIOD
            and _adjacent(token, tokens[i + 1])
            and _adjacent(tokens[i + 1], tokens[i + 2])
        ):
            i += 3
            while i < len(tokens) and tokens[i].type not in (TokenType.NL, TokenType.EOF):
                if tokens[i].is_comment:
                    comments.append(tokens[i])
                i += 1
            if i < len(tokens) and tokens[i].type == TokenType.NL:
                i += 1
            continue

        code.append(token)
        i += 1

    if not code or code[-1].type != TokenType.EOF:
        end = code[-1].range.end if code else Position(0, 0)
        code.append(Token(TokenType.EOF, "", Range(end, end)))
    return code, comments


class Parser:
    """
    Recursive descent parser for Octave/Matlab source.

    Usage:
        parser = Parser(tokens)
        program = parser.parse()
        errors = parser.get_errors()
        warnings = parser.get_warnings()
    """

    def __init__(self, tokens: list[Token]) -> None:
        """
        Initialize the parser with a token list.

        Args:
            tokens: Tokens from the tokenizer, comments included
        """
        self.tokens, self.comments = _prepare_tokens(tokens)
        self.pos = 0
        self.diagnostics: list[Diagnostic] = []

        # Open groupings, innermost last: LPARENT, LBRACKET or LSQUIRLY
        self._groups: list[TokenType] = []

        code_lines = {
            token.range.start.line
            for token in self.tokens
            if token.type not in (TokenType.NL, TokenType.EOF)
        }
        # Lines holding nothing but a comment, usable as documentation
        self._doc_comments: dict[int, Token] = {
            comment.range.start.line: comment
            for comment in self.comments
            if comment.type == TokenType.COMMENT and comment.range.start.line not in code_lines
        }
        self._used_lines = code_lines | {comment.range.start.line for comment in self.comments}
        self._last_line = self.tokens[-1].range.end.line

        self._keyword_parsers: dict[str, Callable[[], Optional[Statement]]] = {
            "function": self._parse_function_definition,
            "if": self._parse_if_statement,
            "for": self._parse_for_statement,
            "while": self._parse_while_statement,
            "do": self._parse_do_until_statement,
            "switch": self._parse_switch_statement,
            "try": self._parse_try_statement,
            "break": self._parse_control_statement,
            "continue": self._parse_control_statement,
            "return": self._parse_control_statement,
            "global": self._parse_declaration,
            "persistent": self._parse_declaration,
        }

    # -------------------------------------------------------------------------
    # Token Navigation
    # -------------------------------------------------------------------------

    @property
    def _current(self) -> Token:
        """Get the current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[self.pos]

    @property
    def _previous(self) -> Token:
        """Get the previous token."""
        return self.tokens[self.pos - 1] if self.pos > 0 else self.tokens[0]

    def _peek(self, offset: int = 1) -> Token:
        """Peek at a token ahead of the current position."""
        pos = self.pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[pos]

    def _is_at_end(self) -> bool:
        """Check if we've reached the end of tokens."""
        return self._current.type == TokenType.EOF

    def _check(self, *types: TokenType) -> bool:
        """Check if the current token is one of the given types."""
        return self._current.type in types

    def _check_keyword(self, *words: str) -> bool:
        return self._current.is_keyword(*words)

    def _advance(self) -> Token:
        """Consume and return the current token."""
        token = self._current
        if not self._is_at_end():
            self.pos += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        """Consume current token if it matches one of the given types."""
        if self._check(*types):
            self._advance()
            return True
        return False

    def _at_statement_end(self) -> bool:
        return self._check(*STATEMENT_ENDS) or self._at_block_closer()

    def _at_block_closer(self) -> bool:
        return self._current.type == TokenType.KEYWORD and self._current.text in BLOCK_CLOSERS

    def _is_assignment_equals(self, index: int) -> bool:
        """Check that the EQUALS token at ``index`` is not part of '==', '<=', '>=' or '~='."""
        token = self.tokens[index]
        following = self.tokens[index + 1] if index + 1 < len(self.tokens) else None
        if following is not None and following.type == TokenType.EQUALS and _adjacent(token, following):
            return False
        if index > 0:
            before = self.tokens[index - 1]
            if before.type in (
                TokenType.EQUALS,
                TokenType.LESS_THAN,
                TokenType.GREATER_THAN,
                TokenType.NOT,
            ) and _adjacent(before, token):
                return False
        return True

    @property
    def _in_matrix(self) -> bool:
        return bool(self._groups) and self._groups[-1] in (TokenType.LBRACKET, TokenType.LSQUIRLY)

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def _error(
        self,
        code: ErrorCode,
        message: str,
        range: Optional[Range] = None,
        level: DiagnosticLevel = DiagnosticLevel.ERROR,
    ) -> None:
        """Record a diagnostic, located at the current token by default."""
        self.diagnostics.append(Diagnostic(code, message, range or self._current.range, level))

    def _unexpected(self, token: Token) -> None:
        """Record an unexpected token, with a dedicated code for illegal characters."""
        if token.type == TokenType.ILLEGAL:
            self._error(ErrorCode.ILLEGAL_CHARACTER, f"illegal character '{token.text}'", token.range)
        elif token.type == TokenType.KEYWORD:
            self._error(ErrorCode.UNEXPECTED_TOKEN, f"unexpected keyword '{token.text}'", token.range)
        else:
            self._error(ErrorCode.UNEXPECTED_TOKEN, f"unexpected '{token.text}'", token.range)

    def _expected_expression(self, after: Token) -> None:
        """Record a missing operand following ``after``."""
        if self._check(*STATEMENT_ENDS):
            self._error(
                ErrorCode.UNEXPECTED_NL,
                f"unexpected end of statement after '{after.text}'",
                after.range,
            )
        else:
            self._error(
                ErrorCode.UNEXPECTED_TOKEN_EXPR,
                f"unexpected '{self._current.text}' in expression",
            )

    def _synchronize(self) -> None:
        """
        Recover from a parse error by skipping to the end of the statement.

        Stops before a newline, semicolon, comma or block keyword so the
        enclosing block can carry on from there.
        """
        self._groups.clear()
        while not self._at_statement_end():
            self._advance()

    def _finish_statement(self) -> bool:
        """
        Consume the statement terminator.

        Returns:
            True when the statement ends with ';' and its output is suppressed
        """
        if self._match(TokenType.SEMICOLON):
            return True
        if self._match(TokenType.COMMA):
            return False
        if self._check(TokenType.NL, TokenType.EOF) or self._at_block_closer():
            return False

        self._unexpected(self._current)
        self._synchronize()
        return self._match(TokenType.SEMICOLON)

    def _warn_output(self, range: Range) -> None:
        self._error(
            ErrorCode.OUTPUT_NOT_SUPPRESSED,
            "Will output to the console",
            range,
            DiagnosticLevel.WARNING,
        )

    def get_diagnostics(self) -> list[Diagnostic]:
        """Get every diagnostic produced by the last parse."""
        return list(self.diagnostics)

    def get_errors(self) -> list[Diagnostic]:
        """Get the error diagnostics produced by the last parse."""
        return [d for d in self.diagnostics if d.level == DiagnosticLevel.ERROR]

    def get_warnings(self) -> list[Diagnostic]:
        """Get the warning diagnostics produced by the last parse."""
        return [d for d in self.diagnostics if d.level == DiagnosticLevel.WARNING]

    # -------------------------------------------------------------------------
    # Program and Block Parsing
    # -------------------------------------------------------------------------

    def parse(self) -> Program:
        """
        Parse the entire program.

        Returns:
            The Program node. Statements that could not be parsed are left
            out and reported through the diagnostics.
        """
        self.pos = 0
        self.diagnostics = []
        self._groups = []

        body = self._parse_block(frozenset())
        while not self._is_at_end():
            # Only reachable when the statement ceiling was hit
            self._advance()

        return Program(tuple(body), Range(Position(0, 0), self.tokens[-1].range.end))

    def _parse_block(self, terminators: frozenset[str]) -> list[Statement]:
        """
        Parse statements until EOF or one of the ``terminators`` keywords.

        The terminator itself is left for the caller to consume.
        """
        statements: list[Statement] = []

        while True:
            self._match_separators()
            if self._is_at_end():
                break
            if terminators and self._check_keyword(*terminators):
                break
            if len(statements) >= MAX_STATEMENTS:
                self._error(
                    ErrorCode.AST_MAX_STMNT_REACHED,
                    f"maximum of {MAX_STATEMENTS} statements in a block reached",
                )
                break

            start = self.pos
            statement = self._parse_statement()
            if statement is not None:
                statements.append(statement)
            if self.pos == start:
                token = self._advance()
                self._unexpected(token)

        return statements

    def _match_separators(self) -> None:
        while self._match(TokenType.NL, TokenType.SEMICOLON, TokenType.COMMA):
            pass

    # -------------------------------------------------------------------------
    # Statement Parsing
    # -------------------------------------------------------------------------

    def _parse_statement(self) -> Optional[Statement]:
        """Parse a single statement."""
        token = self._current

        if token.type == TokenType.KEYWORD:
            handler = self._keyword_parsers.get(token.text)
            if handler is not None:
                return handler()
            self._advance()
            self._unexpected(token)
            return None

        if token.type == TokenType.LBRACKET and self._is_multi_output_assignment():
            return self._parse_multi_output_assignment()

        if token.is_name:
            if self._find_assignment() is not None:
                return self._parse_assignment()
            if self._is_command_syntax():
                return self._parse_command()

        return self._parse_expression_statement()

    def _find_assignment(self) -> Optional[int]:
        """
        Find the index of an assignment '=' in the current statement.

        Only an '=' outside of any parentheses, brackets or braces counts.
        The search stops at the end of the statement.
        """
        groups: list[TokenType] = []
        for index in range(self.pos, len(self.tokens)):
            token = self.tokens[index]
            if token.type in _GROUP_CLOSERS:
                groups.append(token.type)
            elif token.type in (TokenType.RPARENT, TokenType.RBRACKET, TokenType.RSQUIRLY):
                if groups:
                    groups.pop()
            elif token.type in (TokenType.NL, TokenType.EOF):
                if token.type == TokenType.EOF or not groups or groups[-1] == TokenType.LPARENT:
                    return None
            elif groups:
                continue
            elif token.type in (TokenType.SEMICOLON, TokenType.COMMA, TokenType.KEYWORD):
                return None
            elif token.type == TokenType.EQUALS and self._is_assignment_equals(index):
                return index
        return None

    def _is_multi_output_assignment(self) -> bool:
        """Check for '[ ... ] =' at the current position."""
        depth = 0
        for index in range(self.pos, len(self.tokens)):
            token = self.tokens[index]
            if token.type in _GROUP_CLOSERS:
                depth += 1
            elif token.type in (TokenType.RPARENT, TokenType.RBRACKET, TokenType.RSQUIRLY):
                depth -= 1
                if depth == 0:
                    following = index + 1
                    return (
                        following < len(self.tokens)
                        and self.tokens[following].type == TokenType.EQUALS
                        and self._is_assignment_equals(following)
                    )
            elif token.type == TokenType.EOF:
                return False
        return False

    def _is_command_syntax(self) -> bool:
        """
        Check for a command style call such as ``hold on`` or ``pkg load x``.

        The name must be followed on the same line, after a blank, by a word.
        """
        name = self._current
        following = self._peek()
        if following.range.start.line != name.range.start.line or _adjacent(name, following):
            return False
        if following.type not in (
            TokenType.IDENTIFIER,
            TokenType.NATIVE_FUNCTION,
            TokenType.NUMBER,
            TokenType.STRING,
        ):
            return False
        after = self._peek(2)
        return after.type not in (TokenType.EQUALS, TokenType.LPARENT) or not _adjacent(following, after)

    def _parse_command(self) -> FunctionCall:
        """Parse a command style call. Every word becomes a string argument."""
        name = self._advance()
        words: list[StringLiteral] = []
        previous = name

        while not self._check(*STATEMENT_ENDS):
            token = self._advance()
            if words and _adjacent(previous, token):
                last = words[-1]
                words[-1] = StringLiteral(last.text + token.text, last.range.merge(token.range))
            else:
                words.append(StringLiteral(token.text, token.range))
            previous = token

        end = words[-1].range.end if words else name.range.end
        call = Identifier(
            name.text,
            Range(name.range.start, end),
            args=tuple(words),
            native=name.type == TokenType.NATIVE_FUNCTION,
            command_syntax=True,
        )
        suppress = self._finish_statement()
        return FunctionCall(call, call.range, suppress)

    def _parse_assignment(self) -> Optional[Statement]:
        """Parse ``target = value``."""
        target = self._parse_name()

        if not self._check(TokenType.EQUALS):
            self._error(ErrorCode.UNEXPECTED_TOKEN, "invalid assignment target", target.range)
            self._synchronize()
            self._finish_statement()
            return None

        equals = self._advance()
        value = self._parse_expression()
        if value is None:
            self._expected_expression(equals)
            self._synchronize()

        end = value.range.end if value is not None else equals.range.end
        range = Range(target.range.start, end)
        suppress = self._finish_statement()
        if not suppress:
            self._warn_output(range)
        return Assignment(target, value, range, suppress)

    def _parse_multi_output_assignment(self) -> MultiOutputAssignment:
        """Parse ``[a, b, ~] = value``."""
        open_bracket = self._advance()
        targets: list[Expression] = []

        while not self._check(TokenType.RBRACKET, TokenType.EOF):
            if self._current.is_name:
                targets.append(self._parse_name())
            elif self._check(TokenType.NOT):
                token = self._advance()
                targets.append(Placeholder("~", token.range))
            elif self._match(TokenType.COMMA, TokenType.NL):
                continue
            else:
                token = self._advance()
                self._error(
                    ErrorCode.EXPECTED_COMMA_OUTPUTS,
                    f"unexpected '{token.text}' in output list",
                    token.range,
                )

        if not self._match(TokenType.RBRACKET):
            self._error(ErrorCode.MISSING_RBRACKET, "missing ']'", open_bracket.range)

        equals = self._advance()
        value = self._parse_expression()
        if value is None:
            self._expected_expression(equals)
            self._synchronize()

        end = value.range.end if value is not None else equals.range.end
        range = Range(open_bracket.range.start, end)
        suppress = self._finish_statement()
        if not suppress:
            self._warn_output(range)
        return MultiOutputAssignment(tuple(targets), value, range, suppress)

    def _parse_expression_statement(self) -> Optional[Statement]:
        """Parse a bare call, a name or any other expression used as a statement."""
        start = self.pos
        expr = self._parse_expression()
        if expr is None:
            if self.pos == start and not self._at_statement_end():
                self._unexpected(self._advance())
            self._synchronize()
            return None

        suppress = self._finish_statement()
        if isinstance(expr, Identifier):
            return FunctionCall(expr, expr.range, suppress)
        return ExpressionStatement(expr, expr.range, suppress)

    def _parse_control_statement(self) -> ControlStatement:
        """Parse ``break``, ``continue`` or ``return``."""
        token = self._advance()
        self._finish_statement()
        return ControlStatement(token.text, token.range)

    def _parse_declaration(self) -> Declaration:
        """Parse ``global a b`` or ``persistent n = 0``."""
        keyword = self._advance()
        names: list[Identifier] = []

        while self._current.is_name:
            token = self._advance()
            names.append(Identifier(token.text, token.range))
            if self._check(TokenType.EQUALS):
                equals = self._advance()
                if self._parse_expression() is None:
                    self._expected_expression(equals)

        end = names[-1].range.end if names else keyword.range.end
        self._finish_statement()
        return Declaration(keyword.text, tuple(names), Range(keyword.range.start, end))

    # -------------------------------------------------------------------------
    # Function Definitions
    # -------------------------------------------------------------------------

    def _parse_function_definition(self) -> FunctionDefinition:
        """
        Parse a function definition.

        Handles:
            function name
            function name(a, b = 1)
            function out = name(...)
            function [o1, o2] = name(...)
        """
        keyword = self._advance()
        outputs: tuple[Expression, ...] = ()

        if self._check(TokenType.LBRACKET):
            outputs = self._parse_output_list()
        elif self._current.is_name and self._peek().type == TokenType.EQUALS:
            token = self._advance()
            outputs = (Identifier(token.text, token.range),)
            self._advance()

        if self._current.is_name:
            name_token = self._advance()
            name, name_range = name_token.text, name_token.range
        else:
            self._error(ErrorCode.EXPECTED_FN_IDENT, "expected function identifier", keyword.range)
            name, name_range = "", keyword.range

        params: tuple[Expression, ...] = ()
        if self._check(TokenType.LPARENT):
            params = self._parse_parameters()

        header_end = self._previous.range.end
        if not self._check(*STATEMENT_ENDS):
            self._unexpected(self._current)
            self._synchronize()

        documentation = self._documentation_for(keyword.range.start.line, header_end.line)
        body = self._parse_block(FUNCTION_BODY_END)

        has_end = self._check_keyword(*BLOCK_TERMINATORS["function"])
        if has_end:
            end = self._advance().range.end
        else:
            self._error(
                ErrorCode.FN_DEF_MISSING_END,
                f"missing 'end' for function '{name}'",
                name_range,
            )
            end = self._previous.range.end

        return FunctionDefinition(
            name=name,
            name_range=name_range,
            outputs=outputs,
            params=params,
            body=tuple(body),
            range=Range(keyword.range.start, end),
            documentation=documentation,
            has_end=has_end,
        )

    def _parse_output_list(self) -> tuple[Expression, ...]:
        """Parse ``[o1, o2] =`` in a function header."""
        open_bracket = self._advance()
        outputs: list[Expression] = []

        while not self._check(TokenType.RBRACKET, TokenType.EQUALS, TokenType.NL, TokenType.EOF):
            token = self._advance()
            if token.is_name:
                outputs.append(Identifier(token.text, token.range))
            elif token.type == TokenType.NOT:
                outputs.append(Placeholder("~", token.range))
            elif token.type != TokenType.COMMA:
                self._error(
                    ErrorCode.OUTPUT_VECTOR,
                    f"unexpected '{token.text}' in output list",
                    token.range,
                )

        if not self._match(TokenType.RBRACKET):
            self._error(ErrorCode.OUTPUT_VECTOR, "missing ']' in output list", open_bracket.range)
        if not self._match(TokenType.EQUALS):
            self._error(ErrorCode.OUTPUT_VECTOR, "expected '=' after output list")
        return tuple(outputs)

    def _parse_parameters(self) -> tuple[Expression, ...]:
        """Parse the parenthesized parameter list of a function header."""
        open_paren = self._advance()
        params: list[Expression] = []

        while not self._match(TokenType.RPARENT):
            if self._check(TokenType.NL, TokenType.EOF):
                self._error(ErrorCode.MISSING_PAREN, "missing ')' in function header", open_paren.range)
                break

            if self._current.is_name:
                token = self._advance()
                if self._check(TokenType.EQUALS):
                    equals = self._advance()
                    value = self._parse_expression()
                    if value is None:
                        self._error(
                            ErrorCode.INVALID_DEFAULT_VALUE,
                            f"invalid default value for '{token.text}'",
                            equals.range,
                        )
                    end = value.range.end if value is not None else equals.range.end
                    params.append(
                        DefaultValueArgument(
                            token.text, value, Range(token.range.start, end), token.range
                        )
                    )
                else:
                    params.append(Identifier(token.text, token.range))
            elif self._check(TokenType.NOT):
                token = self._advance()
                params.append(Placeholder("~", token.range))
            else:
                token = self._advance()
                self._error(
                    ErrorCode.INVALID_FN_DEF_ARGUMENT,
                    f"invalid argument '{token.text}' in function definition",
                    token.range,
                )
                continue

            if self._match(TokenType.COMMA) or self._check(
                TokenType.RPARENT, TokenType.NL, TokenType.EOF
            ):
                continue
            token = self._advance()
            self._error(ErrorCode.EXPECTED_COMMA_PAREN, "expected ',' or ')'", token.range)

        return tuple(params)

    def _documentation_for(self, keyword_line: int, header_line: int) -> str:
        """
        Collect the comment block documenting a function.

        The comment block above the header wins. Without one, the block
        below the header is used. Blank lines between the header and the
        block are skipped.
        """
        lines: list[str] = []
        line = keyword_line - 1
        while line >= 0 and line not in self._used_lines:
            line -= 1
        while line in self._doc_comments:
            lines.append(_comment_text(self._doc_comments[line]))
            line -= 1
        lines.reverse()

        if not lines:
            line = header_line + 1
            while line <= self._last_line and line not in self._used_lines:
                line += 1
            while line in self._doc_comments:
                lines.append(_comment_text(self._doc_comments[line]))
                line += 1

        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Compound Statements
    # -------------------------------------------------------------------------

    def _parse_condition(self, keyword: Token, code: ErrorCode) -> Optional[Expression]:
        """Parse the condition that follows a block keyword."""
        if self._at_statement_end():
            self._error(code, f"expected a condition after '{keyword.text}'", keyword.range)
            self._match(TokenType.COMMA, TokenType.SEMICOLON)
            return None

        condition = self._parse_expression()
        if condition is None:
            self._error(code, f"invalid condition for '{keyword.text}'")
            self._synchronize()
        self._match(TokenType.COMMA, TokenType.SEMICOLON)
        return condition

    def _close_block(self, keyword: Token, code: ErrorCode) -> Position:
        """Consume the closing keyword of a block, or report it missing."""
        if self._check_keyword(*BLOCK_TERMINATORS[keyword.text]):
            return self._advance().range.end
        self._error(code, f"missing 'end' for '{keyword.text}' statement", keyword.range)
        return self._previous.range.end

    def _parse_if_statement(self) -> IfStatement:
        """Parse an if/elseif/else statement."""
        keyword = self._advance()
        condition = self._parse_condition(keyword, ErrorCode.EXPECTED_VALID_IF_STMNT)
        then_body = self._parse_block(IF_BRANCH_END)

        clauses: list[ElseIfClause] = []
        while self._check_keyword("elseif"):
            elseif = self._advance()
            clause_condition = self._parse_condition(elseif, ErrorCode.EXPECTED_VALID_IF_STMNT)
            clause_body = self._parse_block(IF_BRANCH_END)
            clauses.append(
                ElseIfClause(
                    clause_condition,
                    tuple(clause_body),
                    Range(elseif.range.start, self._previous.range.end),
                )
            )

        else_body: Optional[tuple[Statement, ...]] = None
        if self._check_keyword("else"):
            self._advance()
            else_body = tuple(self._parse_block(BLOCK_TERMINATORS["if"]))

        end = self._close_block(keyword, ErrorCode.MISSING_END_IF_STMNT)
        return IfStatement(
            condition,
            tuple(then_body),
            tuple(clauses),
            else_body,
            Range(keyword.range.start, end),
        )

    def _parse_for_statement(self) -> ForStatement:
        """Parse ``for i = expr ... end``, with or without parentheses around the header."""
        keyword = self._advance()
        parenthesized = (
            self._check(TokenType.LPARENT)
            and self._peek().is_name
            and self._peek(2).type == TokenType.EQUALS
        )
        if parenthesized:
            open_paren = self._advance()
            self._groups.append(TokenType.LPARENT)

        variable: Optional[Identifier] = None
        iterable: Optional[Expression] = None
        if self._current.is_name:
            token = self._advance()
            variable = Identifier(token.text, token.range)
            if self._check(TokenType.EQUALS):
                equals = self._advance()
                iterable = self._parse_expression()
                if iterable is None:
                    self._error(
                        ErrorCode.EXPECTED_VALID_FOR_STMNT,
                        "expected an expression to iterate over",
                        equals.range,
                    )
            else:
                self._error(ErrorCode.EXPECTED_VALID_FOR_STMNT, "expected '=' after loop variable")
        else:
            self._error(ErrorCode.EXPECTED_VALID_FOR_STMNT, "expected loop variable after 'for'", keyword.range)

        if parenthesized:
            self._groups.pop()
            if not self._match(TokenType.RPARENT):
                self._error(ErrorCode.MISSING_PAREN, "missing ')'", open_paren.range)
        if variable is None or iterable is None:
            self._synchronize()
        self._match(TokenType.COMMA, TokenType.SEMICOLON)

        body = self._parse_block(BLOCK_TERMINATORS["for"])
        end = self._close_block(keyword, ErrorCode.MISSING_END_FOR_STMNT)
        return ForStatement(variable, iterable, tuple(body), Range(keyword.range.start, end))

    def _parse_while_statement(self) -> WhileStatement:
        """Parse a while loop."""
        keyword = self._advance()
        condition = self._parse_condition(keyword, ErrorCode.EXPECTED_VALID_WHILE_STMNT)
        body = self._parse_block(BLOCK_TERMINATORS["while"])
        end = self._close_block(keyword, ErrorCode.MISSING_END_WHILE_STMNT)
        return WhileStatement(condition, tuple(body), Range(keyword.range.start, end))

    def _parse_do_until_statement(self) -> DoUntilStatement:
        """Parse a do/until loop."""
        keyword = self._advance()
        body = self._parse_block(BLOCK_TERMINATORS["do"])

        condition: Optional[Expression] = None
        if self._check_keyword("until"):
            until = self._advance()
            condition = self._parse_condition(until, ErrorCode.EXPECTED_VALID_DO_UNTIL_STMNT)
            end = condition.range.end if condition is not None else until.range.end
        else:
            self._error(ErrorCode.MISSING_UNTIL_DO_STMNT, "missing 'until' for 'do' statement", keyword.range)
            end = self._previous.range.end

        return DoUntilStatement(tuple(body), condition, Range(keyword.range.start, end))

    def _parse_switch_statement(self) -> SwitchStatement:
        """Parse a switch/case/otherwise statement."""
        keyword = self._advance()
        subject = self._parse_condition(keyword, ErrorCode.EXPECTED_VALID_SWITCH_STMNT)

        cases: list[SwitchCase] = []
        otherwise: Optional[tuple[Statement, ...]] = None
        while True:
            self._match_separators()
            if self._check_keyword("case"):
                case = self._advance()
                value = self._parse_expression()
                if value is None:
                    self._error(
                        ErrorCode.EXPECTED_VALID_SWITCH_STMNT,
                        "expected a value after 'case'",
                        case.range,
                    )
                    self._synchronize()
                self._match(TokenType.COMMA, TokenType.SEMICOLON)
                body = self._parse_block(SWITCH_BRANCH_END)
                cases.append(
                    SwitchCase(value, tuple(body), Range(case.range.start, self._previous.range.end))
                )
            elif self._check_keyword("otherwise"):
                self._advance()
                otherwise = tuple(self._parse_block(SWITCH_BRANCH_END))
            elif self._is_at_end() or self._check_keyword(*BLOCK_TERMINATORS["switch"]):
                break
            else:
                token = self._advance()
                self._unexpected(token)
                self._synchronize()

        end = self._close_block(keyword, ErrorCode.MISSING_END_SWITCH_STMNT)
        return SwitchStatement(subject, tuple(cases), otherwise, Range(keyword.range.start, end))

    def _parse_try_statement(self) -> TryStatement:
        """Parse a try/catch statement."""
        keyword = self._advance()
        self._match(TokenType.COMMA, TokenType.SEMICOLON)
        body = self._parse_block(TRY_BODY_END)

        error_variable: Optional[Identifier] = None
        catch_body: list[Statement] = []
        if self._check_keyword("catch"):
            catch = self._advance()
            following = self._peek()
            if (
                self._current.is_name
                and self._current.range.start.line == catch.range.start.line
                and following.type in (TokenType.NL, TokenType.SEMICOLON, TokenType.EOF)
            ):
                token = self._advance()
                error_variable = Identifier(token.text, token.range)
            catch_body = self._parse_block(BLOCK_TERMINATORS["try"])

        end = self._close_block(keyword, ErrorCode.MISSING_END_TRY_STMNT)
        return TryStatement(
            tuple(body), error_variable, tuple(catch_body), Range(keyword.range.start, end)
        )

    # -------------------------------------------------------------------------
    # Expression Parsing
    # -------------------------------------------------------------------------

    def _peek_operator(self) -> Optional[tuple[str, int]]:
        """
        Look at the binary operator at the current position.

        Returns:
            The operator text and the number of tokens it spans, or None
        """
        token = self._current
        following = self._peek()
        if (token.type, following.type) in COMPOUND_OPERATORS and _adjacent(token, following):
            return token.text + following.text, 2
        if token.type in BINARY_OPERATORS:
            return token.text, 1
        return None

    def _is_element_separator(self) -> bool:
        """
        Inside a matrix, ``[1 -2]`` holds two elements: a sign preceded by a
        blank and directly followed by its operand starts a new element.
        """
        if not self._in_matrix or not self._check(TokenType.ADDITION, TokenType.SUBTRACTION):
            return False
        token = self._current
        return not _adjacent(self._previous, token) and _adjacent(token, self._peek())

    def _parse_expression(self, min_precedence: int = Precedence.NONE) -> Optional[Expression]:
        """
        Parse an expression using precedence climbing.

        Returns None, without consuming anything, when the current token
        cannot start an expression.
        """
        left = self._parse_unary()
        if left is None:
            return None

        while True:
            operator = self._peek_operator()
            if operator is None:
                break
            text, width = operator
            precedence = PRECEDENCE_MAP[text]
            if precedence <= min_precedence or self._is_element_separator():
                break

            operator_token = self._current
            for _ in range(width):
                self._advance()

            right = self._parse_expression(precedence)
            if right is None:
                self._expected_expression(operator_token)
                break
            left = BinaryOperation(text, left, right, left.range.merge(right.range))

        return left

    def _parse_unary(self) -> Optional[Expression]:
        """Parse prefix operators, then a primary with its postfix transposes."""
        if self._check(*PREFIX_OPERATORS):
            operator = self._advance()
            operand = self._parse_expression(Precedence.UNARY)
            if operand is None:
                self._expected_expression(operator)
                return None
            return UnaryOperation(operator.text, operand, operator.range.merge(operand.range))

        expr = self._parse_primary()
        if expr is None:
            return None

        while True:
            if self._check(TokenType.TRANSPOSE):
                token = self._advance()
                expr = UnaryOperation("'", expr, expr.range.merge(token.range), postfix=True)
            elif (
                self._check(TokenType.PERIOD)
                and self._peek().type == TokenType.TRANSPOSE
                and _adjacent(self._current, self._peek())
            ):
                self._advance()
                token = self._advance()
                expr = UnaryOperation(".'", expr, expr.range.merge(token.range), postfix=True)
            else:
                return expr

    def _parse_primary(self) -> Optional[Expression]:
        """Parse literals, names, groupings and function handles."""
        token = self._current

        if token.type == TokenType.NUMBER:
            self._advance()
            return NumberLiteral(token.text, token.range)

        if token.type == TokenType.STRING:
            self._advance()
            if len(token.text) < 2 or token.text[-1] != token.text[0]:
                self._error(ErrorCode.UNTERMINATED_STRING, "unterminated string", token.range)
            return StringLiteral(token.text, token.range)

        if token.is_name:
            return self._parse_name()

        if token.type == TokenType.LPARENT:
            return self._parse_grouping()

        if token.type == TokenType.LBRACKET:
            return self._parse_matrix(VariableVector)

        if token.type == TokenType.LSQUIRLY:
            return self._parse_matrix(StructLiteral)

        if token.type == TokenType.AT:
            return self._parse_at()

        if self._groups and (token.is_keyword("end") or token.type == TokenType.COLON):
            # 'x(end)' and 'x(:)' index forms
            self._advance()
            return Placeholder(token.text, token.range)

        return None

    def _parse_grouping(self) -> Optional[Expression]:
        """Parse a parenthesized expression."""
        open_paren = self._advance()
        self._groups.append(TokenType.LPARENT)
        inner = self._parse_expression()
        self._groups.pop()

        if inner is None:
            self._expected_expression(open_paren)
            return None
        if not self._match(TokenType.RPARENT):
            self._error(ErrorCode.MISSING_RPAREN_EXPR, "missing ')'", open_paren.range)
        return inner

    def _parse_name(self) -> Identifier:
        """
        Parse a name with its field accesses and argument lists.

        Handles:
            x, s.a.b, f(a, b), c{1}, s(2).field
        """
        token = self._advance()
        name = token.text
        end = token.range.end
        args: Optional[list[Expression]] = None

        while True:
            following = self._peek()
            if (
                self._check(TokenType.PERIOD)
                and _adjacent(self._previous, self._current)
                and following.is_name
                and _adjacent(self._current, following)
            ):
                self._advance()
                field = self._advance()
                name = f"{name}.{field.text}"
                end = field.range.end
            elif self._check(TokenType.LPARENT, TokenType.LSQUIRLY) and (
                not self._in_matrix or _adjacent(self._previous, self._current)
            ):
                group_args, end = self._parse_arguments()
                args = (args or []) + group_args
            else:
                break

        return Identifier(
            name,
            Range(token.range.start, end),
            args=tuple(args) if args is not None else None,
            native=token.type == TokenType.NATIVE_FUNCTION,
        )

    def _parse_arguments(self) -> tuple[list[Expression], Position]:
        """
        Parse a call or index argument list.

        Returns:
            The arguments and the end position of the list
        """
        open_token = self._advance()
        closer = _GROUP_CLOSERS[open_token.type]
        self._groups.append(open_token.type)
        args: list[Expression] = []
        end = open_token.range.end

        try:
            while True:
                if self._check(closer):
                    end = self._advance().range.end
                    break
                if self._check(TokenType.NL, TokenType.EOF):
                    self._error(ErrorCode.MISSING_PAREN, f"missing '{_closing_text(closer)}'", open_token.range)
                    break

                if (
                    self._current.is_name
                    and self._peek().type == TokenType.EQUALS
                    and self._is_assignment_equals(self.pos + 1)
                ):
                    args.append(self._parse_default_value_argument())
                else:
                    start = self.pos
                    arg = self._parse_expression()
                    if arg is not None:
                        args.append(arg)
                        end = arg.range.end
                    elif self.pos != start:
                        self._skip_argument(closer)
                    elif self._check(TokenType.COMMA, closer):
                        self._error(ErrorCode.INVALID_ARGUMENT, "expected an argument")
                    else:
                        token = self._advance()
                        self._error(ErrorCode.INVALID_ARGUMENT, f"invalid argument '{token.text}'", token.range)
                        self._skip_argument(closer)

                if self._match(TokenType.COMMA) or self._check(closer, TokenType.NL, TokenType.EOF):
                    continue
                self._error(
                    ErrorCode.EXPECTED_COMMA_PAREN,
                    f"expected ',' or '{_closing_text(closer)}'",
                )
                self._skip_argument(closer)
                self._match(TokenType.COMMA)
        finally:
            self._groups.pop()

        return args, end

    def _skip_argument(self, closer: TokenType) -> None:
        while not self._check(TokenType.COMMA, closer, TokenType.NL, TokenType.EOF):
            self._advance()

    def _parse_default_value_argument(self) -> DefaultValueArgument:
        """Parse ``name = value`` inside an argument list."""
        token = self._advance()
        equals = self._advance()
        value = self._parse_expression()
        if value is None:
            self._error(
                ErrorCode.INVALID_DEFAULT_VALUE,
                f"invalid default value for '{token.text}'",
                equals.range,
            )
        end = value.range.end if value is not None else equals.range.end
        return DefaultValueArgument(token.text, value, Range(token.range.start, end), token.range)

    def _parse_matrix(self, node_type: type) -> Expression:
        """
        Parse a ``[...]`` vector or a ``{...}`` literal.

        Rows are split by ';' or newlines and elements by ',' or blanks.
        """
        open_token = self._advance()
        closer = _GROUP_CLOSERS[open_token.type]
        is_braced = open_token.type == TokenType.LSQUIRLY
        self._groups.append(open_token.type)

        rows: list[tuple[Expression, ...]] = []
        row: list[Expression] = []
        end = open_token.range.end
        expect_element = True

        while True:
            if self._check(closer):
                end = self._advance().range.end
                break
            # An unclosed literal ends before the next keyword, which
            # belongs to the enclosing block
            if self._is_at_end() or self._check(TokenType.KEYWORD) or self._keyword_on_next_line():
                self._error(
                    ErrorCode.MISSING_RBRACKET,
                    f"missing '{_closing_text(closer)}'",
                    open_token.range,
                )
                break
            if self._match(TokenType.SEMICOLON, TokenType.NL):
                if row:
                    rows.append(tuple(row))
                    row = []
                expect_element = True
                continue
            if self._check(TokenType.COMMA):
                comma = self._advance()
                if expect_element:
                    if is_braced:
                        self._error(ErrorCode.STRUCT_BAD_COMMA, "unexpected ','", comma.range)
                    else:
                        self._error(ErrorCode.UNEXPECTED_VECTOR_VALUE, "unexpected ','", comma.range)
                expect_element = True
                continue

            start = self.pos
            element = self._parse_expression()
            if element is None:
                if self.pos == start:
                    token = self._advance()
                    code = ErrorCode.STRUCT_BAD_ARGS if is_braced else ErrorCode.UNEXPECTED_VECTOR_VALUE
                    self._error(code, f"unexpected '{token.text}'", token.range)
                continue
            row.append(element)
            end = element.range.end
            expect_element = False

        self._groups.pop()
        if row:
            rows.append(tuple(row))
        return node_type(tuple(rows), Range(open_token.range.start, end))

    def _keyword_on_next_line(self) -> bool:
        """Check whether the current newline is followed by a line starting with a keyword."""
        if not self._check(TokenType.NL):
            return False
        offset = 1
        while self._peek(offset).type in (TokenType.NL, TokenType.SEMICOLON):
            offset += 1
        return self._peek(offset).type == TokenType.KEYWORD

    def _parse_at(self) -> Optional[Expression]:
        """
        Parse what follows '@'.

        Handles:
            @(x, y) x + y
            @name
        """
        at = self._advance()

        if self._check(TokenType.LPARENT):
            open_paren = self._advance()
            params: list[str] = []
            while not self._match(TokenType.RPARENT):
                if self._check(TokenType.NL, TokenType.EOF):
                    self._error(ErrorCode.MISSING_PAREN, "missing ')'", open_paren.range)
                    break
                token = self._advance()
                if token.is_name:
                    params.append(token.text)
                elif token.type not in (TokenType.COMMA, TokenType.NOT):
                    self._error(ErrorCode.INVALID_ARGUMENT, f"invalid argument '{token.text}'", token.range)

            body = self._parse_expression()
            if body is None:
                self._expected_expression(self._previous)
            end = body.range.end if body is not None else self._previous.range.end
            return AnonymousFunctionDefinition(tuple(params), body, Range(at.range.start, end))

        if self._current.is_name:
            name = self._advance()
            return FunctionHandle(name.text, at.range.merge(name.range), name.range)

        self._error(
            ErrorCode.UNEXPECTED_TOKEN_EXPR,
            "expected '(' or a function name after '@'",
            at.range,
        )
        return None


def _closing_text(closer: TokenType) -> str:
    return {TokenType.RPARENT: ")", TokenType.RBRACKET: "]", TokenType.RSQUIRLY: "}"}[closer]


def parse(tokens: list[Token]) -> Program:
    """
    Convenience function to parse tokens into a Program.

    Args:
        tokens: Tokens produced by the tokenizer

    Returns:
        The Program node
    """
    return Parser(tokens).parse()
