"""Module entrypoint for `python -m trackheat`."""

from __future__ import annotations

from trackheat.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
