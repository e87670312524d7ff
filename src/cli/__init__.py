"""Command-line interface for the Directory Search API.

Usage:
    python -m src.cli search "claude"          # Content search
    python -m src.cli search -e job "python"   # Unified search
    python -m src.cli autocomplete cl          # Suggestions
    python -m src.cli facets                   # Category facets
"""

from src.cli.main import app

__all__ = ["app"]
