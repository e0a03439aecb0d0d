"""Module entrypoint for `python -m canvas_cli`."""

from __future__ import annotations

from canvas_cli.cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
