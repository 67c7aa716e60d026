"""Module entrypoint for running Storia as ``python -m storia``."""

from __future__ import annotations

from storia.cli import main


if __name__ == "__main__":
    main()
