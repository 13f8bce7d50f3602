"""Allow ``python -m subminer`` to run the command-line interface."""

from __future__ import annotations

import sys

from subminer import run


def main() -> None:
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
