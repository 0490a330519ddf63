"""
sphere.__main__ — Run the API with Uvicorn
===========================================

Usage::

    python -m sphere            # honours HOST / PORT / LOG_LEVEL
"""

from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sphere")


def main() -> None:
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting Sphere API on %s:%d", host, port)
    uvicorn.run("sphere.api.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
