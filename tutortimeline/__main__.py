"""
Convenience entry point for running tutortimeline directly.

Usage: python -m tutortimeline [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
