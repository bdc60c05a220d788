"""
Run the Scholar QA HTTP server.

Usage:
    python -m scholar_qa

Environment variables (see ``scholar_qa.container.load_config_from_env``):
    OPENAI_API_KEY    - required
    HOST / PORT       - bind address (default 0.0.0.0:3000)
    LOG_LEVEL         - logging level (default INFO)
"""

from __future__ import annotations

import logging

import uvicorn

from scholar_qa.container import ApplicationContainer, load_config_from_env
from scholar_qa.presentation.api import configure_logging, create_app

logger = logging.getLogger(__name__)


def main() -> None:
    config = load_config_from_env()
    configure_logging(config["app"]["log_level"])

    container = ApplicationContainer()
    container.config.from_dict(config)
    # Fail fast on a missing API key or bad source list
    container.pipeline()

    app = create_app(container)
    host, port = config["app"]["host"], config["app"]["port"]
    logger.info(f"Starting Scholar QA on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=config["app"]["log_level"].lower())


if __name__ == "__main__":
    main()
