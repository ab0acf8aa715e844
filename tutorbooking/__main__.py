"""
Convenience entry point for running tutorbooking as a module.

Usage: python -m tutorbooking [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
