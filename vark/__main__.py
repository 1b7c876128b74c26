"""Package entry point for ``python -m vark``.

WHY: Users run the command-line tool as ``python -m vark <command>``.
Python's ``-m`` flag looks for ``__main__.py`` inside the package and
executes it.

HOW: Delegates straight to the CLI's main() function.
"""

from vark.cli import main

if __name__ == "__main__":
    main()
