"""Avatar studio package.

Importing the package pulls ``HEYGEN_KEY`` and the polling/download knobs
from ``server/.env`` into the environment before ``studio.config`` reads them.
"""
from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv


_SERVER_DIR = Path(__file__).resolve().parent.parent


def load_env(root: Path = _SERVER_DIR) -> None:
    """Load ``root/.env`` and then ``root/.env.local``, the latter winning."""

    load_dotenv(root / ".env")
    load_dotenv(root / ".env.local", override=True)


load_env()
