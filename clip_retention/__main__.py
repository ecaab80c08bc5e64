"""Allow ``python -m clip_retention``."""

from __future__ import annotations

import sys


def main() -> None:
    from clip_retention import run

    raise SystemExit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
