"""
Workspace index for the mlang language server.

``WorkspaceIndex`` owns one ``DocumentSnapshot`` per document URI and is the
only place snapshots are created or replaced. It answers definition and
reference lookups across documents, computes the semantic diagnostics that
need more than one snapshot, and debounces re-analysis of edited documents.

Re-analysis runs as one asyncio task per URI. A new edit cancels the pending
task for its URI and schedules a fresh one, so a burst of keystrokes costs a
single analysis. Every edit bumps a per-URI version stamp and a finished
analysis is dropped if a newer edit has arrived in the meantime.
"""

import asyncio
import logging
import os
import time
from collections.abc import Callable
from typing import Optional

from pygls.uris import from_fs_path, to_fs_path

from mlang.compiler.tokens import KEYWORDS, NATIVE_FUNCTIONS
from mlang.compiler.visitor import Definition, DefinitionKind, Reference, ReferenceKind
from mlang.lsp.analyzer import DocumentSnapshot, analyze_document
from mlang.lsp.settings import Settings
from mlang.utils.diagnostics import (
    Diagnostic,
    create_duplicate_definition_diagnostic,
    create_not_found_reference_diagnostic,
    create_wrong_arguments_diagnostic,
)
from mlang.utils.errors import Range

logger = logging.getLogger("mlang-lsp")

PublishCallback = Callable[[str, list[Diagnostic]], None]

# Location of a whole file, used when a name resolves to the file itself
FILE_START = Range.from_points(0, 0, 0, 0)


class WorkspaceIndex:
    """
    Snapshot registry and symbol resolver for a set of documents.

    Usage:
        index = WorkspaceIndex(settings, publish=callback)
        index.register_document(uri, text)
        index.on_text_changed(uri, new_text)   # inside a running event loop
        index.find_definitions(uri, "foo")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        publish: Optional[PublishCallback] = None,
    ) -> None:
        """
        Initialize an empty index.

        Args:
            settings: Analysis settings, defaults when omitted
            publish: Called with (uri, diagnostics) after every installed snapshot
        """
        self.settings = settings or Settings()
        self._publish = publish

        # Registration order is lookup order for cross-file definitions
        self._snapshots: dict[str, DocumentSnapshot] = {}
        self._versions: dict[str, int] = {}
        self._pending: dict[str, asyncio.Task] = {}

    # =========================================================================
    # Snapshot Lifecycle
    # =========================================================================

    def __contains__(self, uri: str) -> bool:
        return uri in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def uris(self) -> list[str]:
        return list(self._snapshots)

    def get_snapshot(self, uri: str) -> Optional[DocumentSnapshot]:
        return self._snapshots.get(uri)

    def register_document(self, uri: str, text: str) -> DocumentSnapshot:
        """
        Create a snapshot for a document unless one already exists.

        Returns:
            The document's current snapshot
        """
        snapshot = self._snapshots.get(uri)
        if snapshot is None:
            snapshot = self._analyze(uri, text, self._next_version(uri))
        return snapshot

    def update_document(self, uri: str, text: str) -> DocumentSnapshot:
        """Re-analyze a document immediately, dropping any pending analysis."""
        self._cancel_pending(uri)
        snapshot = self._analyze(uri, text, self._next_version(uri))
        self.publish(uri)
        return snapshot

    def on_text_changed(self, uri: str, text: str) -> asyncio.Task:
        """
        Schedule a debounced re-analysis of a document.

        Must be called with an event loop running. The pending analysis for
        ``uri``, if any, is cancelled and replaced.

        Returns:
            The scheduled task
        """
        version = self._next_version(uri)
        self._cancel_pending(uri)

        task = asyncio.ensure_future(self._debounced_analysis(uri, text, version))
        self._pending[uri] = task
        task.add_done_callback(lambda done: self._forget_task(uri, done))

        logger.debug(f"Scheduled analysis of {uri} (version {version})")
        return task

    async def flush(self, uri: str) -> None:
        """Wait for the pending analysis of a document, if there is one."""
        task = self._pending.get(uri)
        if task is not None:
            await task

    def close_document(self, uri: str) -> None:
        """Cancel pending work for a document and evict its snapshot."""
        self._cancel_pending(uri)
        self._snapshots.pop(uri, None)
        self._versions.pop(uri, None)

    def shutdown(self) -> None:
        """Cancel every pending analysis."""
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()

    def has_pending(self, uri: str) -> bool:
        return uri in self._pending

    def publish(self, uri: str) -> None:
        """Send the current diagnostics of a document to the publish callback."""
        if self._publish is not None and uri in self._snapshots:
            self._publish(uri, self.document_diagnostics(uri))

    def _next_version(self, uri: str) -> int:
        version = self._versions.get(uri, 0) + 1
        self._versions[uri] = version
        return version

    def _cancel_pending(self, uri: str) -> None:
        existing = self._pending.pop(uri, None)
        if existing is not None:
            existing.cancel()

    def _forget_task(self, uri: str, task: asyncio.Task) -> None:
        if self._pending.get(uri) is task:
            del self._pending[uri]

    async def _debounced_analysis(self, uri: str, text: str, version: int) -> None:
        await asyncio.sleep(self.settings.debounce_delay)
        if self._analyze(uri, text, version) is not None:
            self.publish(uri)

    def _analyze(self, uri: str, text: str, version: int) -> Optional[DocumentSnapshot]:
        """Build a snapshot and install it unless a newer edit has been seen."""
        started = time.perf_counter()
        snapshot = analyze_document(uri, text, version)

        if version != self._versions.get(uri):
            logger.debug(f"Dropped stale analysis of {uri} (version {version})")
            return None

        self._snapshots[uri] = snapshot
        elapsed = (time.perf_counter() - started) * 1000
        logger.debug(f"Analyzed {uri} (version {version}) in {elapsed:.1f}ms")
        return snapshot

    # =========================================================================
    # Symbol Resolution
    # =========================================================================

    def find_definitions(self, uri: str, name: str) -> list[tuple[str, Definition]]:
        """
        Find the definitions a name can resolve to.

        Local definitions come first, then top-level definitions of every
        other document in registration order, then the start of every
        document whose file name is ``name``.

        Returns:
            List of (uri, definition) pairs
        """
        results: list[tuple[str, Definition]] = []

        local = self._snapshots.get(uri)
        if local is not None:
            results.extend((uri, d) for d in local.definitions_named(name))

        for other_uri, snapshot in self._snapshots.items():
            if other_uri == uri:
                continue
            results.extend(
                (other_uri, d) for d in snapshot.definitions_named(name) if d.is_top_level
            )

        for other_uri in self._snapshots:
            if _file_stem(other_uri, self.settings.file_extension) == name:
                results.append((other_uri, Definition(name, DefinitionKind.FUNCTION, FILE_START)))

        return results

    def find_references(self, uri: str, name: str) -> list[Reference]:
        """Find the references to a name within a single document."""
        snapshot = self._snapshots.get(uri)
        if snapshot is None:
            return []
        return snapshot.references_named(name)

    def find_function(self, uri: str, name: str) -> Optional[Definition]:
        """Find the function definition a call to ``name`` in ``uri`` would reach."""
        for _, definition in self.find_definitions(uri, name):
            if definition.kind == DefinitionKind.FUNCTION and definition.range != FILE_START:
                return definition
        return None

    def top_level_functions(self, exclude: Optional[str] = None) -> list[tuple[str, Definition]]:
        """Every top-level function definition in the workspace."""
        return [
            (uri, d)
            for uri, snapshot in self._snapshots.items()
            if uri != exclude
            for d in snapshot.definitions
            if d.kind == DefinitionKind.FUNCTION and d.is_top_level
        ]

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def document_diagnostics(self, uri: str) -> list[Diagnostic]:
        """
        Collect every diagnostic for a document.

        Parser diagnostics come first, followed by duplicate definitions,
        calls with too many arguments and, when enabled, unresolved
        references. The list is truncated to ``max_number_of_problems``.
        """
        snapshot = self._snapshots.get(uri)
        if snapshot is None:
            return []

        diagnostics = list(snapshot.diagnostics)
        diagnostics.extend(self._duplicate_definitions(snapshot))
        diagnostics.extend(self._wrong_arguments(snapshot))
        if self.settings.report_unresolved_references:
            diagnostics.extend(self._unresolved_references(snapshot))

        return diagnostics[: self.settings.max_number_of_problems]

    def _duplicate_definitions(self, snapshot: DocumentSnapshot) -> list[Diagnostic]:
        seen: set[str] = set()
        diagnostics: list[Diagnostic] = []
        for definition in snapshot.definitions:
            if definition.kind != DefinitionKind.FUNCTION or not definition.is_top_level:
                continue
            if definition.name in seen:
                diagnostics.append(
                    create_duplicate_definition_diagnostic(definition.name, definition.range)
                )
            seen.add(definition.name)
        return diagnostics

    def _wrong_arguments(self, snapshot: DocumentSnapshot) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for reference in snapshot.references:
            if reference.kind != ReferenceKind.FUNCTION or reference.argument_count is None:
                continue
            function = self.find_function(snapshot.uri, reference.name)
            if function is None or function.is_variadic:
                continue
            if reference.argument_count > len(function.arguments):
                diagnostics.append(
                    create_wrong_arguments_diagnostic(
                        reference.name,
                        reference.range,
                        reference.argument_count,
                        function.required_arguments,
                        function.optional_arguments,
                    )
                )
        return diagnostics

    def _unresolved_references(self, snapshot: DocumentSnapshot) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for reference in snapshot.references:
            if reference.kind != ReferenceKind.FUNCTION:
                continue
            if reference.name in NATIVE_FUNCTIONS or reference.name in KEYWORDS:
                continue
            if not self.find_definitions(snapshot.uri, reference.name):
                diagnostics.append(
                    create_not_found_reference_diagnostic(reference.name, reference.range)
                )
        return diagnostics

    # =========================================================================
    # Workspace Discovery
    # =========================================================================

    def discover_workspace(self, root: str) -> list[str]:
        """
        Register every source file under ``root``.

        Returns:
            Paths that could not be read
        """
        started = time.perf_counter()
        paths, failures = discover_files(
            root,
            self.settings.file_extension,
            self.settings.max_files_search_depth,
        )

        registered = 0
        for path in paths:
            try:
                with open(path, encoding="utf-8") as f:
                    text = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read {path}: {e}")
                failures.append(path)
                continue
            self.register_document(from_fs_path(path), text)
            registered += 1

        elapsed = (time.perf_counter() - started) * 1000
        logger.info(
            f"Discovered {registered} files under {root} in {elapsed:.1f}ms"
        )
        return failures


def discover_files(
    root: str, extension: str = ".m", max_depth: Optional[int] = None
) -> tuple[list[str], list[str]]:
    """
    Walk a directory tree depth-first, collecting files with ``extension``.

    Symbolic links are followed once, resolved relative to the directory
    holding the link. Links found inside a followed link are not followed.
    Directories and links that cannot be read are recorded, not raised.

    Args:
        root: Directory to start from
        extension: File extension to collect, with its leading dot
        max_depth: How many directory levels below ``root`` to enter, None for no limit

    Returns:
        Tuple of (matching file paths, failed paths)
    """
    files: list[str] = []
    failures: list[str] = []

    def collect(path: str) -> None:
        if path.endswith(extension):
            files.append(path)

    def walk(directory: str, depth: int, through_link: bool) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
        except OSError as e:
            logger.warning(f"Could not list {directory}: {e}")
            failures.append(directory)
            return

        for entry in entries:
            if entry.is_symlink():
                if through_link:
                    continue
                target = os.path.join(os.path.dirname(entry.path), os.readlink(entry.path))
                if os.path.isdir(target):
                    if max_depth is None or depth < max_depth:
                        walk(target, depth + 1, True)
                elif os.path.isfile(target):
                    collect(target)
                else:
                    logger.warning(f"Broken link {entry.path} -> {target}")
                    failures.append(entry.path)
            elif entry.is_dir():
                if max_depth is None or depth < max_depth:
                    walk(entry.path, depth + 1, through_link)
            elif entry.is_file():
                collect(entry.path)

    walk(root, 0, False)
    return files, failures


def _file_stem(uri: str, extension: str) -> Optional[str]:
    path = to_fs_path(uri) or uri
    basename = os.path.basename(path)
    if not basename.endswith(extension):
        return None
    return basename[: -len(extension)]
