"""Allow ``python -m tsdoc_normalizer``."""

from __future__ import annotations

from tsdoc_normalizer.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
