from __future__ import annotations

import logging
import os

import uvicorn

from rsm.api.app import create_app
from rsm.application.container import build_container
from rsm.config import get_app_paths
from rsm.logging_config import setup_logging


def main() -> None:
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    container = build_container()
    app = create_app(container)

    uvicorn.run(
        app,
        host=os.environ.get("RSM_HOST", "127.0.0.1"),
        port=int(os.environ.get("RSM_PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
