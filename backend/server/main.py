"""
Development entry point.

    python backend/server/main.py

Production uses server.asgi:app under uvicorn/gunicorn instead.
"""

from __future__ import annotations

import os

import uvicorn


if __name__ == "__main__":
    uvicorn.run(
        "server.asgi:app",
        app_dir=os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        reload=True,  # Dev mode only
    )
