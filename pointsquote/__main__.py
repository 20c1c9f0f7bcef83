"""Main entry point when executing pointsquote as a package.

This allows running the package using python -m pointsquote.
"""

from pointsquote.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
