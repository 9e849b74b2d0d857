"""
Package entry point.

Allows running the application via:

    python -m unitimetable

This simply forwards execution to unitimetable.cli.main().
"""

from unitimetable.cli import main

if __name__ == "__main__":
    main()
