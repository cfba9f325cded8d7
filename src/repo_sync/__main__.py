"""
Main entry point for the repo-sync package.

Usage:
    python -m repo_sync [--repo-url URL] [--branch NAME] [--version]
"""

import sys

from repo_sync.cli import main

if __name__ == "__main__":
    sys.exit(main())
