"""Console script target.

The CLI itself is implemented in `n8n_sync.main`.
"""

from __future__ import annotations

from n8n_sync.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
