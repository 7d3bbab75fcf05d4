# variant_preview/__main__.py
from __future__ import annotations

import sys

from .app import run_app


def main() -> int:
    return run_app(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
