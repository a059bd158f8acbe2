"""Module entrypoint for ``python -m tuga_meta``."""
from __future__ import annotations

from .cli import main


if __name__ == "__main__":
    main()
