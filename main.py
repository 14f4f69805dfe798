# main.py
# ──────────────────────────────────────────────────────────────────────────────
# VoicePath API process entry:
# - loads .env, configures logging from LOG_LEVEL
# - exposes the ASGI app built by backend.app.create_app
# Run with: uvicorn main:app --host :: --port 8080
# ──────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL_NAME = (os.getenv("LOG_LEVEL") or "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger("voicepath.main")

from backend.app import create_app  # noqa: E402

app = create_app()


@app.on_event("startup")
async def _startup_log():
    settings = app.state.settings
    logger.info(
        "Startup: env=%s port=%s remote_configured=%s base_url=%s",
        settings.environment,
        os.getenv("PORT", "8080"),
        settings.remote_enabled,
        settings.bland_base_url,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="::",
        port=int(os.getenv("PORT", "8080")),
        reload=False,
        log_level=LOG_LEVEL_NAME.lower(),
    )
