"""
Abstract Syntax Tree (AST) node definitions for mlang.

Each statement and expression kind is its own immutable dataclass carrying
exactly the fields it needs, plus the source range it covers. Children are
held in tuples, so a tree never shares nodes and never has cycles.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from mlang.utils.errors import Range


class ASTNode(ABC):
    """Base class for all AST nodes."""

    range: Range

    @abstractmethod
    def accept(self, visitor: "ASTVisitor") -> Any:
        """Accept a visitor for tree traversal."""
        pass


class ASTVisitor(ABC):
    """
    Visitor pattern base class for AST traversal.

    Subclasses implement one ``visit_*`` method per node kind.
    """

    def visit(self, node: ASTNode) -> Any:
        """Dispatch to the appropriate visit method."""
        return node.accept(self)


# -----------------------------------------------------------------------------
# Expressions
# -----------------------------------------------------------------------------


class Expression(ASTNode):
    """Base class for all expressions."""

    pass


@dataclass(frozen=True, slots=True)
class Identifier(Expression):
    """
    A name, optionally followed by a parenthesized argument list.

    ``args`` is None for a plain reference (``x``) and a tuple, possibly
    empty, for call or index syntax (``f()``, ``x(1, 2)``). Field access
    is folded into the name, so ``s.a.b`` has ``name == "s.a.b"``.

    Examples:
        x, f(a, b), s.field, v(end)
    """

    name: str
    range: Range
    args: Optional[tuple[Expression, ...]] = None
    native: bool = False
    command_syntax: bool = False

    @property
    def root(self) -> str:
        """The leading name of a dotted access path."""
        return self.name.split(".", 1)[0]

    @property
    def is_call(self) -> bool:
        return self.args is not None

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_identifier(self)


@dataclass(frozen=True, slots=True)
class NumberLiteral(Expression):
    """A numeric literal as written in the source."""

    text: str
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_number_literal(self)


@dataclass(frozen=True, slots=True)
class StringLiteral(Expression):
    """A string literal. ``text`` keeps the surrounding quotes."""

    text: str
    range: Range

    @property
    def content(self) -> str:
        """The text between the quotes."""
        body = self.text[1:]
        if body.endswith(self.text[0]):
            body = body[:-1]
        return body

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_string_literal(self)


@dataclass(frozen=True, slots=True)
class BinaryOperation(Expression):
    """
    A binary operation such as ``a + b``, ``x .* y`` or ``1:n``.
    """

    operator: str
    left: Expression
    right: Expression
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_binary_operation(self)


@dataclass(frozen=True, slots=True)
class UnaryOperation(Expression):
    """
    A prefix (``-x``, ``~x``) or postfix (``x'``) operation.
    """

    operator: str
    operand: Expression
    range: Range
    postfix: bool = False

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_unary_operation(self)


@dataclass(frozen=True, slots=True)
class VariableVector(Expression):
    """
    A bracketed vector or matrix literal.

    Rows are separated by ``;`` or newlines, elements by ``,`` or blanks.

    Examples:
        [1, 2, 3], [a b; c d], [[1, 2], x]
    """

    rows: tuple[tuple[Expression, ...], ...]
    range: Range

    @property
    def elements(self) -> tuple[Expression, ...]:
        """All elements in reading order."""
        return tuple(element for row in self.rows for element in row)

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_variable_vector(self)


@dataclass(frozen=True, slots=True)
class StructLiteral(Expression):
    """
    A braced literal ``{...}``, laid out in rows like a vector.
    """

    rows: tuple[tuple[Expression, ...], ...]
    range: Range

    @property
    def elements(self) -> tuple[Expression, ...]:
        return tuple(element for row in self.rows for element in row)

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_struct_literal(self)


@dataclass(frozen=True, slots=True)
class AnonymousFunctionDefinition(Expression):
    """
    An anonymous function.

    Example:
        @(x, y) x + y
    """

    params: tuple[str, ...]
    body: Optional[Expression]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_anonymous_function_definition(self)


@dataclass(frozen=True, slots=True)
class FunctionHandle(Expression):
    """A handle to a named function, e.g. ``@sin``."""

    name: str
    range: Range
    name_range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_function_handle(self)


@dataclass(frozen=True, slots=True)
class DefaultValueArgument(Expression):
    """
    A ``name = value`` argument.

    Appears as a function parameter with a default value, and as a named
    argument in a call, e.g. ``myFunction(a = 'value')``.
    """

    name: str
    value: Optional[Expression]
    range: Range
    name_range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_default_value_argument(self)


@dataclass(frozen=True, slots=True)
class Placeholder(Expression):
    """
    A bare ``:`` index, an ``end`` index or a ``~`` ignored output.
    """

    text: str
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_placeholder(self)


# -----------------------------------------------------------------------------
# Statements
# -----------------------------------------------------------------------------


class Statement(ASTNode):
    """Base class for all statements."""

    pass


@dataclass(frozen=True, slots=True)
class Assignment(Statement):
    """
    A single target assignment.

    Example:
        x = 1 + 2;
    """

    target: Expression
    value: Optional[Expression]
    range: Range
    suppress_output: bool = False

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_assignment(self)


@dataclass(frozen=True, slots=True)
class MultiOutputAssignment(Statement):
    """
    An assignment to a bracketed list of targets.

    Example:
        [q, r] = deconv(y, a);
    """

    targets: tuple[Expression, ...]
    value: Optional[Expression]
    range: Range
    suppress_output: bool = False

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_multi_output_assignment(self)


@dataclass(frozen=True, slots=True)
class FunctionCall(Statement):
    """
    A statement consisting of a name, with or without arguments.

    Examples:
        disp("done");
        hold on
        x
    """

    call: Identifier
    range: Range
    suppress_output: bool = False

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_function_call(self)


@dataclass(frozen=True, slots=True)
class ExpressionStatement(Statement):
    """A statement consisting of any other expression, e.g. ``1 + 2``."""

    expression: Expression
    range: Range
    suppress_output: bool = False

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_expression_statement(self)


@dataclass(frozen=True, slots=True)
class FunctionDefinition(Statement):
    """
    A named function definition.

    Example:
        function [s, p] = sum_prod(a, b = 2)
          s = a + b;
          p = a * b;
        end

    Attributes:
        name: Function name, empty when the header has no name
        name_range: Range of the name token
        outputs: Output variables, in header order
        params: Parameters, Identifier or DefaultValueArgument
        body: Statements of the body
        documentation: Comment text attached to the definition
        has_end: False when the closing keyword was synthesized
    """

    name: str
    name_range: Range
    outputs: tuple[Expression, ...]
    params: tuple[Expression, ...]
    body: tuple[Statement, ...]
    range: Range
    documentation: str = ""
    has_end: bool = True

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_function_definition(self)


@dataclass(frozen=True, slots=True)
class ElseIfClause:
    """An ``elseif`` branch of an if statement."""

    condition: Optional[Expression]
    body: tuple[Statement, ...]
    range: Range


@dataclass(frozen=True, slots=True)
class IfStatement(Statement):
    """
    An if/elseif/else statement.

    Example:
        if x > 0
          y = 1;
        elseif x < 0
          y = -1;
        else
          y = 0;
        end
    """

    condition: Optional[Expression]
    then_body: tuple[Statement, ...]
    elseif_clauses: tuple[ElseIfClause, ...]
    else_body: Optional[tuple[Statement, ...]]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_if_statement(self)


@dataclass(frozen=True, slots=True)
class ForStatement(Statement):
    """
    A for loop.

    Example:
        for i = 1:10
          total = total + i;
        end
    """

    variable: Optional[Identifier]
    iterable: Optional[Expression]
    body: tuple[Statement, ...]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_for_statement(self)


@dataclass(frozen=True, slots=True)
class WhileStatement(Statement):
    """A while loop."""

    condition: Optional[Expression]
    body: tuple[Statement, ...]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_while_statement(self)


@dataclass(frozen=True, slots=True)
class DoUntilStatement(Statement):
    """
    A do/until loop.

    Example:
        do
          n = n + 1;
        until n > 10
    """

    body: tuple[Statement, ...]
    condition: Optional[Expression]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_do_until_statement(self)


@dataclass(frozen=True, slots=True)
class SwitchCase:
    """A ``case`` branch of a switch statement."""

    value: Optional[Expression]
    body: tuple[Statement, ...]
    range: Range


@dataclass(frozen=True, slots=True)
class SwitchStatement(Statement):
    """A switch/case/otherwise statement."""

    subject: Optional[Expression]
    cases: tuple[SwitchCase, ...]
    otherwise: Optional[tuple[Statement, ...]]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_switch_statement(self)


@dataclass(frozen=True, slots=True)
class TryStatement(Statement):
    """A try/catch statement, with an optional error variable after ``catch``."""

    body: tuple[Statement, ...]
    error_variable: Optional[Identifier]
    catch_body: tuple[Statement, ...]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_try_statement(self)


@dataclass(frozen=True, slots=True)
class Declaration(Statement):
    """A ``global`` or ``persistent`` declaration of one or more names."""

    keyword: str
    names: tuple[Identifier, ...]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_declaration(self)


@dataclass(frozen=True, slots=True)
class ControlStatement(Statement):
    """``break``, ``continue`` or ``return``."""

    keyword: str
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_control_statement(self)


# -----------------------------------------------------------------------------
# Program
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Program(ASTNode):
    """The root node: every top level statement of a document."""

    body: tuple[Statement, ...]
    range: Range

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_program(self)


