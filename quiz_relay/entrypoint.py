from __future__ import annotations

import logging
import os

import uvicorn

from .config import load_settings
from .index import create_app

logger = logging.getLogger(__name__)

# Settings are read once per process and stay fixed for its lifetime
app = create_app(load_settings())


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    try:
        port = int(os.getenv("PORT", "8000"))
    except ValueError:
        logger.warning(f"Invalid PORT value: {os.getenv('PORT')}. Using default: 8000")
        port = 8000
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
