"""
Entry point for running the mlang LSP server as a module.

Usage:
    python -m mlang.lsp
    python -m mlang.lsp --tcp --port 2087
"""

from mlang.lsp.server import main

if __name__ == "__main__":
    main()
