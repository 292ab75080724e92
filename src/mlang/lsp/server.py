"""
mlang Language Server Protocol (LSP) Server.

This module implements a language server for Octave/Matlab sources using
pygls (Python Language Server). It provides:

- Document synchronization (open, change, close) with debounced re-analysis
- Diagnostics (parser errors and warnings, duplicate definitions, argument counts)
- Completion suggestions with lazy resolve
- Go-to-definition across the workspace
- Find references within a document

Usage:
    # Start the server in stdio mode (for IDE integration)
    mlang-lsp

    # Start in TCP mode (for debugging)
    mlang-lsp --tcp --port 2087
"""

import logging
from typing import Optional

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from mlang import __version__
from mlang.lsp.analyzer import get_word_at_position
from mlang.lsp.completions import CompletionProvider
from mlang.lsp.diagnostics import to_lsp_diagnostics, to_lsp_range
from mlang.lsp.settings import Settings
from mlang.lsp.workspace import WorkspaceIndex
from mlang.utils.diagnostics import Diagnostic

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("mlang-lsp")

COMPLETION_TRIGGER_CHARACTERS = [".", "@", "("]


class MlangLanguageServer(LanguageServer):
    """
    Language Server Protocol implementation for mlang.

    This class translates LSP requests and notifications into calls on a
    single ``WorkspaceIndex``, which owns every document snapshot.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize the mlang language server."""
        super().__init__(
            name="mlang-lsp",
            version=f"v{__version__}",
            text_document_sync_kind=types.TextDocumentSyncKind.Incremental,
        )

        self.index = WorkspaceIndex(settings, publish=self._publish_diagnostics)
        self.completions = CompletionProvider(self.index)

        # Documents the client has open, the only ones diagnostics are published for
        self._open_documents: set[str] = set()

        # Register all handlers
        self._register_handlers()

    def _register_handlers(self) -> None:
        """
        Register all LSP request and notification handlers.

        Each handler is a plain function forwarding to the matching ``_on_*``
        method, since pygls sets attributes on registered handlers.
        """

        # Document synchronization
        @self.feature(types.TEXT_DOCUMENT_DID_OPEN)
        def did_open(params: types.DidOpenTextDocumentParams) -> None:
            self._on_did_open(params)

        @self.feature(types.TEXT_DOCUMENT_DID_CHANGE)
        def did_change(params: types.DidChangeTextDocumentParams) -> None:
            self._on_did_change(params)

        @self.feature(types.TEXT_DOCUMENT_DID_CLOSE)
        def did_close(params: types.DidCloseTextDocumentParams) -> None:
            self._on_did_close(params)

        # Completion
        @self.feature(
            types.TEXT_DOCUMENT_COMPLETION,
            types.CompletionOptions(
                trigger_characters=COMPLETION_TRIGGER_CHARACTERS,
                resolve_provider=True,
            ),
        )
        def completion(params: types.CompletionParams) -> types.CompletionList:
            return self._on_completion(params)

        @self.feature(types.COMPLETION_ITEM_RESOLVE)
        def completion_resolve(item: types.CompletionItem) -> types.CompletionItem:
            return self._on_completion_resolve(item)

        # Go to definition
        @self.feature(types.TEXT_DOCUMENT_DEFINITION)
        def definition(params: types.DefinitionParams) -> Optional[list[types.Location]]:
            return self._on_definition(params)

        # Find references
        @self.feature(types.TEXT_DOCUMENT_REFERENCES)
        def references(params: types.ReferenceParams) -> Optional[list[types.Location]]:
            return self._on_references(params)

        # Configuration
        @self.feature(types.WORKSPACE_DID_CHANGE_CONFIGURATION)
        def did_change_configuration(params: types.DidChangeConfigurationParams) -> None:
            self._on_did_change_configuration(params)

    @property
    def settings(self) -> Settings:
        return self.index.settings

    def apply_settings(self, data) -> None:
        """Merge a client settings payload into the current settings."""
        self.index.settings = self.index.settings.updated(data)
        logger.debug(f"Settings: {self.index.settings}")

    def discover(self, root_path: Optional[str]) -> list[str]:
        """Index every source file under the workspace root."""
        if not root_path:
            return []
        failures = self.index.discover_workspace(root_path)
        for path in failures:
            logger.warning(f"Skipped unreadable path: {path}")
        return failures

    def _publish_diagnostics(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        """Publish diagnostics to the client."""
        if uri not in self._open_documents:
            return
        self.text_document_publish_diagnostics(
            types.PublishDiagnosticsParams(uri=uri, diagnostics=to_lsp_diagnostics(diagnostics))
        )

    def _word_at(self, uri: str, position: types.Position):
        doc = self.workspace.get_text_document(uri)
        return get_word_at_position(doc.source, position.line, position.character)

    # =========================================================================
    # Document Synchronization
    # =========================================================================

    def _on_did_open(self, params: types.DidOpenTextDocumentParams) -> None:
        """Handle document open notification."""
        document = params.text_document
        logger.info(f"Document opened: {document.uri}")
        self._open_documents.add(document.uri)

        snapshot = self.index.get_snapshot(document.uri)
        if snapshot is not None and snapshot.text != document.text:
            # The file on disk differs from the editor buffer
            self.index.update_document(document.uri, document.text)
        else:
            self.index.register_document(document.uri, document.text)
            self.index.publish(document.uri)

    def _on_did_change(self, params: types.DidChangeTextDocumentParams) -> None:
        """Handle document change notification."""
        uri = params.text_document.uri

        # pygls has already applied the incremental changes
        doc = self.workspace.get_text_document(uri)
        logger.debug(f"Document changed: {uri} (version {params.text_document.version})")
        self.index.on_text_changed(uri, doc.source)

    def _on_did_close(self, params: types.DidCloseTextDocumentParams) -> None:
        """Handle document close notification."""
        uri = params.text_document.uri
        logger.info(f"Document closed: {uri}")

        self.index.close_document(uri)

        # Clear diagnostics
        self._publish_diagnostics(uri, [])
        self._open_documents.discard(uri)

    def _on_did_change_configuration(self, params: types.DidChangeConfigurationParams) -> None:
        """Apply new settings and re-validate every open document."""
        self.apply_settings(params.settings)
        for uri in sorted(self._open_documents):
            self.index.publish(uri)

    # =========================================================================
    # Completion
    # =========================================================================

    def _on_completion(self, params: types.CompletionParams) -> types.CompletionList:
        """Handle completion request."""
        items = self.completions.get_completions(params.text_document.uri)
        return types.CompletionList(is_incomplete=False, items=items)

    def _on_completion_resolve(self, item: types.CompletionItem) -> types.CompletionItem:
        """Handle completion item resolve request."""
        return self.completions.resolve(item)

    # =========================================================================
    # Go to Definition
    # =========================================================================

    def _on_definition(self, params: types.DefinitionParams) -> Optional[list[types.Location]]:
        """Handle go-to-definition request."""
        uri = params.text_document.uri
        found = self._word_at(uri, params.position)
        if found is None:
            return None

        word, _ = found
        definitions = self.index.find_definitions(uri, word)
        if not definitions and "." in word:
            definitions = self.index.find_definitions(uri, word.split(".")[0])

        locations = [
            types.Location(uri=def_uri, range=to_lsp_range(definition.range))
            for def_uri, definition in definitions
        ]
        return locations or None

    # =========================================================================
    # Find References
    # =========================================================================

    def _on_references(self, params: types.ReferenceParams) -> Optional[list[types.Location]]:
        """Handle find-references request."""
        uri = params.text_document.uri
        found = self._word_at(uri, params.position)
        if found is None:
            return None

        word, _ = found
        references = self.index.find_references(uri, word)

        if not params.context.include_declaration:
            snapshot = self.index.get_snapshot(uri)
            declared = {d.range for d in snapshot.definitions_named(word)} if snapshot else set()
            references = [r for r in references if r.range not in declared]

        return [types.Location(uri=uri, range=to_lsp_range(r.range)) for r in references] or None


# =============================================================================
# Server Creation and Main Entry Point
# =============================================================================


def create_server(settings: Optional[Settings] = None) -> MlangLanguageServer:
    """Create and configure an mlang language server instance."""
    server = MlangLanguageServer(settings)

    @server.feature(types.INITIALIZE)
    def on_initialize(params: types.InitializeParams) -> types.InitializeResult:
        """Handle initialize request."""
        logger.info("Initializing mlang Language Server")
        server.apply_settings(params.initialization_options)

        return types.InitializeResult(
            capabilities=types.ServerCapabilities(
                # Document synchronization
                text_document_sync=types.TextDocumentSyncKind.Incremental,
                # Completion
                completion_provider=types.CompletionOptions(
                    trigger_characters=COMPLETION_TRIGGER_CHARACTERS,
                    resolve_provider=True,
                ),
                # Go to definition
                definition_provider=True,
                # Find references
                references_provider=True,
            ),
            server_info=types.ServerInfo(
                name="mlang-lsp",
                version=__version__,
            ),
        )

    @server.feature(types.INITIALIZED)
    def on_initialized(
        params: types.InitializedParams,  # noqa: ARG001
    ) -> None:
        """Handle initialized notification."""
        server.discover(server.workspace.root_path)
        logger.info("mlang Language Server initialized successfully")

    @server.feature(types.SHUTDOWN)
    def on_shutdown(
        params: None,  # noqa: ARG001
    ) -> None:
        """Handle shutdown request."""
        logger.info("Shutting down mlang Language Server")
        server.index.shutdown()

    return server


def main() -> None:
    """
    Main entry point for the mlang language server.

    Starts the server in stdio mode for IDE integration.
    """
    import argparse

    parser = argparse.ArgumentParser(
        description="mlang Language Server for Octave/Matlab",
        prog="mlang-lsp",
    )
    parser.add_argument(
        "--tcp",
        action="store_true",
        help="Start server in TCP mode instead of stdio",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to in TCP mode (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=2087,
        help="Port to listen on in TCP mode (default: 2087)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Logging level (default: info)",
    )

    args = parser.parse_args()

    # Configure logging level
    log_level = getattr(logging, args.log_level.upper())
    logging.getLogger("mlang-lsp").setLevel(log_level)

    server = create_server()

    if args.tcp:
        logger.info(f"Starting mlang LSP in TCP mode on {args.host}:{args.port}")
        server.start_tcp(args.host, args.port)
    else:
        logger.info("Starting mlang LSP in stdio mode")
        server.start_io()


if __name__ == "__main__":
    main()
