"""Run the terminal front-end: python -m appshell."""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
