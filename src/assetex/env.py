# src/assetex/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_dotenv_done = False


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> bool:
    """Populate ASSETEX_* variables from a .env file, at most once per process.

    The file is `dotenv_path`, else $ASSETEX_DOTENV_PATH, else ./.env.
    Variables already set in the environment are left alone. Returns True
    only when a file was found and loaded by this call.
    """
    global _dotenv_done
    if _dotenv_done:
        return False
    _dotenv_done = True

    candidate = Path(dotenv_path or os.environ.get("ASSETEX_DOTENV_PATH") or ".env").expanduser()
    if not candidate.is_file():
        return False
    load_dotenv(dotenv_path=candidate, override=False)
    return True
