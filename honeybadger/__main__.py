"""
Allow running the client as a module.

Usage:
    python -m honeybadger login
    python -m honeybadger gifts
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
