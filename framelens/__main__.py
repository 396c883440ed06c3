"""
Framelens CLI Entry Point

This module allows running Framelens as:
    python -m framelens [command] [options]
"""

from framelens.cli import main

if __name__ == "__main__":
    main()
