"""Module entrypoint for running readalong as ``python -m readalong``."""

from __future__ import annotations

from readalong.cli import main


if __name__ == "__main__":
    main()
