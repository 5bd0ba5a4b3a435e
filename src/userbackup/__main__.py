"""Allow ``python -m userbackup``."""

from __future__ import annotations

import sys

from .cli import main

if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
