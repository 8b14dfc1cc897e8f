"""
Development entry point.

    python backend/server/main.py

Production runs the ASGI app directly (see server/asgi.py).
LOG_LEVEL only tunes uvicorn's own logger; application events are JSONL.
"""

from __future__ import annotations

import os
from typing import Any


def uvicorn_options() -> dict[str, Any]:
    """Keyword arguments for uvicorn.run, read from the environment."""
    return {
        "app_dir": os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
        "host": os.environ.get("HOST", "0.0.0.0"),
        "port": int(os.environ.get("PORT", "8000")),
        "log_level": os.environ.get("LOG_LEVEL", "INFO").lower(),
        "reload": os.environ.get("ENV", "dev") == "dev",  # Dev mode only
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.asgi:app", **uvicorn_options())
