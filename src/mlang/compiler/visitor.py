"""
Symbol collection for mlang programs.

``SymbolCollector`` walks a parsed ``Program`` once and records, in document
order, every use of a name (``Reference``) and every introduction of a name
(``Definition``). Definitions carry the lexical scope they were made in:
function bodies and anonymous function bodies open a new scope, control
blocks do not.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from mlang.compiler.ast_nodes import (
    AnonymousFunctionDefinition,
    Assignment,
    ASTVisitor,
    BinaryOperation,
    ControlStatement,
    Declaration,
    DefaultValueArgument,
    DoUntilStatement,
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
    SwitchStatement,
    TryStatement,
    UnaryOperation,
    VariableVector,
    WhileStatement,
)
from mlang.utils.errors import Position, Range


class ReferenceKind(Enum):
    """What a referenced name is used as."""

    FUNCTION = auto()
    VARIABLE = auto()


class DefinitionKind(Enum):
    """What a definition introduces."""

    FUNCTION = auto()
    VARIABLE = auto()
    ARGUMENT = auto()
    ANONYMOUS_FUNCTION = auto()
    DEFAULT_ARGUMENT = auto()


@dataclass(frozen=True, slots=True)
class Reference:
    """
    One occurrence of a name.

    Attributes:
        name: The referenced name
        kind: FUNCTION for calls and handles, VARIABLE otherwise
        range: Where the name occurs
        documentation: Documentation of the definition made at this site
        argument_count: Number of arguments passed, for calls
    """

    name: str
    kind: ReferenceKind
    range: Range
    documentation: str = ""
    argument_count: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Definition:
    """
    One introduction of a name.

    Attributes:
        name: The defined name
        kind: What was defined
        range: Where the name is introduced
        documentation: Attached comment block, for functions
        arguments: Parameter names of a function or anonymous function
        optional_arguments: How many of ``arguments`` have a default value
        content: Source form of a default argument's value
        scope: Names of the enclosing functions, empty at file level
    """

    name: str
    kind: DefinitionKind
    range: Range
    documentation: str = ""
    arguments: tuple[str, ...] = ()
    optional_arguments: int = 0
    content: Optional[str] = None
    scope: tuple[str, ...] = ()

    @property
    def is_top_level(self) -> bool:
        return not self.scope

    @property
    def required_arguments(self) -> int:
        return len(self.arguments) - self.optional_arguments

    @property
    def is_variadic(self) -> bool:
        return "varargin" in self.arguments


# Marker for the scope of an anonymous function, which sees the names of
# the scope it is written in
ANONYMOUS_SCOPE = "@"


@dataclass(slots=True)
class _Scope:
    name: str
    variables: set[str]


class SymbolCollector(ASTVisitor):
    """
    Extract references and definitions from a Program.

    Usage:
        collector = SymbolCollector()
        collector.visit(program)
        collector.references, collector.definitions
    """

    def __init__(self) -> None:
        self.references: list[Reference] = []
        self.definitions: list[Definition] = []
        self._scopes: list[_Scope] = []
        self._top_level_variables: set[str] = set()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @property
    def _scope_path(self) -> tuple[str, ...]:
        return tuple(scope.name for scope in self._scopes)

    def _is_variable(self, name: str) -> bool:
        """Check whether ``name`` was assigned in a visible scope."""
        for scope in reversed(self._scopes):
            if name in scope.variables:
                return True
            if scope.name != ANONYMOUS_SCOPE:
                return False
        return name in self._top_level_variables

    def _remember_variable(self, name: str) -> None:
        if self._scopes:
            self._scopes[-1].variables.add(name)
        else:
            self._top_level_variables.add(name)

    def _reference(
        self,
        name: str,
        kind: ReferenceKind,
        range: Range,
        documentation: str = "",
        argument_count: Optional[int] = None,
    ) -> None:
        self.references.append(Reference(name, kind, range, documentation, argument_count))

    def _define(
        self,
        name: str,
        kind: DefinitionKind,
        range: Range,
        scope: Optional[tuple[str, ...]] = None,
        **details,
    ) -> None:
        self.definitions.append(
            Definition(
                name,
                kind,
                range,
                scope=self._scope_path if scope is None else scope,
                **details,
            )
        )
        if kind != DefinitionKind.FUNCTION:
            self._remember_variable(name)

    def _define_target(self, target: Expression, value: Optional[Expression] = None) -> None:
        """Record the definition made by an assignment target."""
        if not isinstance(target, Identifier):
            return

        if isinstance(value, AnonymousFunctionDefinition):
            self._define(
                target.root,
                DefinitionKind.ANONYMOUS_FUNCTION,
                _root_range(target),
                arguments=value.params,
            )
        else:
            self._define(target.root, DefinitionKind.VARIABLE, _root_range(target))

    def _visit_body(self, statements: Optional[tuple[Statement, ...]]) -> None:
        for statement in statements or ():
            self.visit(statement)

    def _visit_optional(self, node: Optional[Expression]) -> None:
        if node is not None:
            self.visit(node)

    def _visit_identifier(self, node: Identifier, as_call: bool = False) -> None:
        """Reference the name, then every argument in order."""
        is_function = (
            as_call or node.is_call or node.native or node.command_syntax
        ) and not self._is_variable(node.root)
        kind = ReferenceKind.FUNCTION if is_function else ReferenceKind.VARIABLE

        argument_count = None
        if is_function and node.args is not None and node.name == node.root:
            argument_count = len(node.args)
        self._reference(node.root, kind, _root_range(node), argument_count=argument_count)
        if node.name != node.root:
            self._reference(node.name, ReferenceKind.VARIABLE, _name_range(node))

        for arg in node.args or ():
            self.visit(arg)

    # -------------------------------------------------------------------------
    # Program and Statements
    # -------------------------------------------------------------------------

    def visit_program(self, node: Program) -> None:
        self._scopes = []
        self._top_level_variables = set()
        self._visit_body(node.body)

    def visit_assignment(self, node: Assignment) -> None:
        self._define_target(node.target, node.value)
        self.visit(node.target)
        self._visit_optional(node.value)

    def visit_multi_output_assignment(self, node: MultiOutputAssignment) -> None:
        for target in node.targets:
            self._define_target(target)
            self.visit(target)
        self._visit_optional(node.value)

    def visit_function_call(self, node: FunctionCall) -> None:
        self._visit_identifier(node.call, as_call=True)

    def visit_expression_statement(self, node: ExpressionStatement) -> None:
        self.visit(node.expression)

    def visit_function_definition(self, node: FunctionDefinition) -> None:
        """
        Visit the header left to right (outputs, name, parameters), then
        the body. Outputs and parameters live in the function's own scope.
        """
        outer = self._scope_path
        inner = outer + (node.name,)
        inner_scope = _Scope(node.name, set())

        for output in node.outputs:
            if isinstance(output, Identifier):
                self.definitions.append(
                    Definition(output.name, DefinitionKind.VARIABLE, output.range, scope=inner)
                )
                inner_scope.variables.add(output.name)
                self._reference(output.name, ReferenceKind.VARIABLE, output.range)

        if node.name:
            arguments = tuple(
                param.name
                for param in node.params
                if isinstance(param, (Identifier, DefaultValueArgument))
            )
            optional = sum(isinstance(param, DefaultValueArgument) for param in node.params)
            self._define(
                node.name,
                DefinitionKind.FUNCTION,
                node.name_range,
                scope=outer,
                documentation=node.documentation,
                arguments=arguments,
                optional_arguments=optional,
            )
            self._reference(
                node.name, ReferenceKind.FUNCTION, node.name_range, node.documentation
            )

        self._scopes.append(inner_scope)
        try:
            for param in node.params:
                if isinstance(param, Identifier):
                    self._define(param.name, DefinitionKind.ARGUMENT, param.range)
                    self._reference(param.name, ReferenceKind.VARIABLE, param.range)
                elif isinstance(param, DefaultValueArgument):
                    self._define(
                        param.name,
                        DefinitionKind.DEFAULT_ARGUMENT,
                        param.name_range,
                        content=expression_text(param.value) if param.value else None,
                    )
                    self._reference(param.name, ReferenceKind.VARIABLE, param.name_range)
                    self._visit_optional(param.value)
            self._visit_body(node.body)
        finally:
            self._scopes.pop()

    def visit_if_statement(self, node: IfStatement) -> None:
        self._visit_optional(node.condition)
        self._visit_body(node.then_body)
        for clause in node.elseif_clauses:
            self._visit_optional(clause.condition)
            self._visit_body(clause.body)
        self._visit_body(node.else_body)

    def visit_for_statement(self, node: ForStatement) -> None:
        if node.variable is not None:
            self._define(node.variable.name, DefinitionKind.VARIABLE, node.variable.range)
            self._reference(node.variable.name, ReferenceKind.VARIABLE, node.variable.range)
        self._visit_optional(node.iterable)
        self._visit_body(node.body)

    def visit_while_statement(self, node: WhileStatement) -> None:
        self._visit_optional(node.condition)
        self._visit_body(node.body)

    def visit_do_until_statement(self, node: DoUntilStatement) -> None:
        self._visit_body(node.body)
        self._visit_optional(node.condition)

    def visit_switch_statement(self, node: SwitchStatement) -> None:
        self._visit_optional(node.subject)
        for case in node.cases:
            self._visit_optional(case.value)
            self._visit_body(case.body)
        self._visit_body(node.otherwise)

    def visit_try_statement(self, node: TryStatement) -> None:
        self._visit_body(node.body)
        if node.error_variable is not None:
            variable = node.error_variable
            self._define(variable.name, DefinitionKind.VARIABLE, variable.range)
            self._reference(variable.name, ReferenceKind.VARIABLE, variable.range)
        self._visit_body(node.catch_body)

    def visit_declaration(self, node: Declaration) -> None:
        for name in node.names:
            self._define(name.name, DefinitionKind.VARIABLE, name.range)
            self._reference(name.name, ReferenceKind.VARIABLE, name.range)

    def visit_control_statement(self, node: ControlStatement) -> None:
        pass

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def visit_identifier(self, node: Identifier) -> None:
        self._visit_identifier(node)

    def visit_number_literal(self, node: NumberLiteral) -> None:
        pass

    def visit_string_literal(self, node: StringLiteral) -> None:
        pass

    def visit_placeholder(self, node: Placeholder) -> None:
        pass

    def visit_binary_operation(self, node: BinaryOperation) -> None:
        self.visit(node.left)
        self.visit(node.right)

    def visit_unary_operation(self, node: UnaryOperation) -> None:
        self.visit(node.operand)

    def visit_variable_vector(self, node: VariableVector) -> None:
        for element in node.elements:
            self.visit(element)

    def visit_struct_literal(self, node: StructLiteral) -> None:
        for element in node.elements:
            self.visit(element)

    def visit_anonymous_function_definition(self, node: AnonymousFunctionDefinition) -> None:
        # Parameter positions are not tracked, they all point at the whole node
        for param in node.params:
            self._reference(param, ReferenceKind.VARIABLE, node.range)

        self._scopes.append(_Scope(ANONYMOUS_SCOPE, set()))
        try:
            for param in node.params:
                self._define(param, DefinitionKind.ARGUMENT, node.range)
            self._visit_optional(node.body)
        finally:
            self._scopes.pop()

    def visit_function_handle(self, node: FunctionHandle) -> None:
        self._reference(node.name, ReferenceKind.FUNCTION, node.name_range)

    def visit_default_value_argument(self, node: DefaultValueArgument) -> None:
        self._reference(node.name, ReferenceKind.VARIABLE, node.name_range)
        self._visit_optional(node.value)


def _root_range(node: Identifier) -> Range:
    """Range of the leading name of an identifier."""
    start = node.range.start
    return Range(start, Position(start.line, start.character + len(node.root)))


def _name_range(node: Identifier) -> Range:
    """Range of the whole dotted name of an identifier, without its arguments."""
    start = node.range.start
    return Range(start, Position(start.line, start.character + len(node.name)))


def expression_text(node: Expression) -> str:
    """
    Render an expression back into source form.

    Used to show default argument values; spacing is normalized.
    """
    if isinstance(node, (NumberLiteral, StringLiteral, Placeholder)):
        return node.text
    if isinstance(node, Identifier):
        if node.args is None:
            return node.name
        return f"{node.name}({', '.join(expression_text(arg) for arg in node.args)})"
    if isinstance(node, BinaryOperation):
        if node.operator == ":":
            return f"{expression_text(node.left)}:{expression_text(node.right)}"
        return f"{expression_text(node.left)} {node.operator} {expression_text(node.right)}"
    if isinstance(node, UnaryOperation):
        if node.postfix:
            return f"{expression_text(node.operand)}{node.operator}"
        return f"{node.operator}{expression_text(node.operand)}"
    if isinstance(node, (VariableVector, StructLiteral)):
        opening, closing = ("[", "]") if isinstance(node, VariableVector) else ("{", "}")
        rows = "; ".join(", ".join(expression_text(e) for e in row) for row in node.rows)
        return f"{opening}{rows}{closing}"
    if isinstance(node, AnonymousFunctionDefinition):
        body = expression_text(node.body) if node.body is not None else ""
        return f"@({', '.join(node.params)}) {body}"
    if isinstance(node, FunctionHandle):
        return f"@{node.name}"
    if isinstance(node, DefaultValueArgument):
        value = expression_text(node.value) if node.value is not None else ""
        return f"{node.name} = {value}"
    return ""


def collect_symbols(program: Program) -> SymbolCollector:
    """
    Convenience function to run a SymbolCollector over a program.

    Returns:
        The collector, with ``references`` and ``definitions`` filled in
    """
    collector = SymbolCollector()
    collector.visit(program)
    return collector
