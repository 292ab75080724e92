"""
mlang Language Server Protocol (LSP) implementation.

This package provides an LSP server for Octave/Matlab sources, enabling
IDE features such as:
- Error diagnostics
- Autocomplete suggestions
- Go-to-definition across the workspace
- Find references

Usage:
    # Start the LSP server (stdio mode)
    mlang-lsp

    # Or run as a module
    python -m mlang.lsp
"""

from mlang.lsp.server import MlangLanguageServer, main

__all__ = [
    "MlangLanguageServer",
    "main",
]
