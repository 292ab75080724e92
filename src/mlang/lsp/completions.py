"""
Completion item providers for the mlang language server.

Completions come from three places:
- Keywords, with snippets for the block statements
- Native functions known to the tokenizer
- Definitions in the current document and top-level functions elsewhere in the workspace

Definition items are sent without documentation. ``completionItem/resolve``
fills in the signature and attached comment block on demand.
"""

from typing import Any, Optional

from lsprotocol import types

from mlang.compiler.tokens import KEYWORDS, NATIVE_FUNCTIONS
from mlang.compiler.visitor import Definition, DefinitionKind
from mlang.lsp.workspace import WorkspaceIndex

OCTAVE_DOCS = "https://docs.octave.org/latest"
OCTAVE_FUNCTION_DOCS = "https://octave.sourceforge.io/octave/function"

# Keyword -> (snippet, documentation page)
KEYWORD_SNIPPETS: dict[str, tuple[str, str]] = {
    "for": ("for ${1:var} = ${2:range}\n\t$0\nend", "The-for-Statement.html"),
    "while": ("while ${1:condition}\n\t$0\nend", "The-while-Statement.html"),
    "if": ("if ${1:condition}\n\t$0\nend", "The-if-Statement.html"),
    "switch": (
        "switch ${1:value}\n\tcase ${2:label}\n\t\t$0\n\totherwise\nend",
        "The-switch-Statement.html",
    ),
    "do": ("do\n\t$0\nuntil ${1:condition}", "The-do_002duntil-Statement.html"),
    "try": ("try\n\t$0\ncatch ${1:err}\nend", "The-try-Statement.html"),
    "function": (
        "function ${1:output} = ${2:name}(${3:args})\n\t$0\nend",
        "Defining-Functions.html",
    ),
}

# Definition kinds offered from the current document
LOCAL_COMPLETION_KINDS = {
    DefinitionKind.FUNCTION: types.CompletionItemKind.Function,
    DefinitionKind.ANONYMOUS_FUNCTION: types.CompletionItemKind.Function,
    DefinitionKind.VARIABLE: types.CompletionItemKind.Variable,
    DefinitionKind.ARGUMENT: types.CompletionItemKind.Variable,
    DefinitionKind.DEFAULT_ARGUMENT: types.CompletionItemKind.Variable,
}


def _markdown(value: str) -> types.MarkupContent:
    return types.MarkupContent(kind=types.MarkupKind.Markdown, value=value)


def function_signature(definition: Definition, defaults: Optional[dict[str, str]] = None) -> str:
    """Render ``name(a, b = 1)`` for a function or anonymous function."""
    defaults = defaults or {}
    params = [
        f"{arg} = {defaults[arg]}" if arg in defaults else arg for arg in definition.arguments
    ]
    return f"{definition.name}({', '.join(params)})"


def function_snippet(definition: Definition, defaults: Optional[dict[str, str]] = None) -> str:
    """Render a call snippet with one tab stop per argument."""
    defaults = defaults or {}
    stops = []
    for i, arg in enumerate(definition.arguments, start=1):
        label = f"{arg} = {defaults[arg]}" if arg in defaults else arg
        stops.append(f"${{{i}:{label}}}")
    return f"{definition.name}({', '.join(stops)})"


def default_values(definitions: list[Definition], function: Definition) -> dict[str, str]:
    """Default argument values declared in the header of ``function``."""
    scope = function.scope + (function.name,)
    return {
        d.name: d.content
        for d in definitions
        if d.kind == DefinitionKind.DEFAULT_ARGUMENT and d.scope == scope and d.content is not None
    }


class CompletionProvider:
    """
    Provides completion items for the language server.

    Keyword and native function items never change and are built once.
    """

    def __init__(self, index: WorkspaceIndex) -> None:
        self.index = index
        self._keyword_completions: Optional[list[types.CompletionItem]] = None
        self._native_completions: Optional[list[types.CompletionItem]] = None

    def get_keyword_completions(self) -> list[types.CompletionItem]:
        if self._keyword_completions is not None:
            return self._keyword_completions

        completions: list[types.CompletionItem] = []
        for keyword in sorted(KEYWORDS):
            snippet = KEYWORD_SNIPPETS.get(keyword)
            if snippet:
                insert_text, page = snippet
                completions.append(
                    types.CompletionItem(
                        label=keyword,
                        kind=types.CompletionItemKind.Keyword,
                        insert_text=insert_text,
                        insert_text_format=types.InsertTextFormat.Snippet,
                        detail="keyword",
                        documentation=_markdown(f"[{keyword} statement]({OCTAVE_DOCS}/{page})"),
                    )
                )
            else:
                completions.append(
                    types.CompletionItem(
                        label=keyword,
                        kind=types.CompletionItemKind.Keyword,
                        detail="keyword",
                    )
                )

        self._keyword_completions = completions
        return completions

    def get_native_function_completions(self) -> list[types.CompletionItem]:
        if self._native_completions is not None:
            return self._native_completions

        self._native_completions = [
            types.CompletionItem(
                label=name,
                kind=types.CompletionItemKind.Function,
                detail="native function",
                documentation=_markdown(
                    f"[{name} function]({OCTAVE_FUNCTION_DOCS}/{name}.html)"
                ),
            )
            for name in sorted(NATIVE_FUNCTIONS)
        ]
        return self._native_completions

    def get_definition_completions(self, uri: str) -> list[types.CompletionItem]:
        """
        Completion items for user definitions visible from a document.

        Every name appears once. Names defined in the document shadow
        top-level functions of other documents.
        """
        items: list[types.CompletionItem] = []
        seen: set[str] = set()

        snapshot = self.index.get_snapshot(uri)
        local = list(snapshot.definitions) if snapshot is not None else []
        for definition in local:
            if definition.name in seen:
                continue
            seen.add(definition.name)
            items.append(self._definition_item(uri, definition, local))

        for other_uri, definition in self.index.top_level_functions(exclude=uri):
            if definition.name in seen:
                continue
            seen.add(definition.name)
            other = self.index.get_snapshot(other_uri)
            items.append(self._definition_item(other_uri, definition, list(other.definitions)))

        return items

    def _definition_item(
        self, uri: str, definition: Definition, definitions: list[Definition]
    ) -> types.CompletionItem:
        kind = LOCAL_COMPLETION_KINDS[definition.kind]
        data = {"uri": uri, "name": definition.name}

        if definition.kind == DefinitionKind.FUNCTION:
            return types.CompletionItem(
                label=definition.name,
                kind=kind,
                insert_text=function_snippet(definition, default_values(definitions, definition)),
                insert_text_format=types.InsertTextFormat.Snippet,
                data=data,
            )
        return types.CompletionItem(label=definition.name, kind=kind, data=data)

    def get_completions(self, uri: str) -> list[types.CompletionItem]:
        """Get every completion item for a document."""
        return [
            *self.get_definition_completions(uri),
            *self.get_keyword_completions(),
            *self.get_native_function_completions(),
        ]

    def resolve(self, item: types.CompletionItem) -> types.CompletionItem:
        """
        Fill in detail and documentation for a definition item.

        Items without definition data are returned unchanged.
        """
        data: Any = item.data
        if not isinstance(data, dict) or "uri" not in data or "name" not in data:
            return item

        uri, name = data["uri"], data["name"]
        for def_uri, definition in self.index.find_definitions(uri, name):
            snapshot = self.index.get_snapshot(def_uri)
            definitions = list(snapshot.definitions) if snapshot is not None else []

            if definition.kind in (DefinitionKind.FUNCTION, DefinitionKind.ANONYMOUS_FUNCTION):
                signature = function_signature(definition, default_values(definitions, definition))
                item.detail = f"function {signature}"
            elif definition.kind == DefinitionKind.DEFAULT_ARGUMENT:
                item.detail = f"{name} = {definition.content}"
            else:
                item.detail = definition.kind.name.lower()

            if definition.documentation:
                item.documentation = _markdown(f"```\n{definition.documentation}\n```")
            break

        return item
