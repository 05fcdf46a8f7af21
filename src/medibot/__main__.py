"""
Entry point for running Medibot as a module.

This allows users to run: python -m medibot
"""

from medibot.cli.main import app

if __name__ == "__main__":
    app()
