from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level of the ``taskhub`` logger tree.

    Notes:
    - Plain stdlib logging; uvicorn already installs handlers.
    - Denials and integrity blocks log at WARNING, cross-organization attempts
      at ERROR, so ``TASKHUB_LOG_LEVEL=WARNING`` keeps just the audit trail.
    """

    normalized = level.upper()
    logging.getLogger("taskhub").setLevel(normalized)
    logging.getLogger("taskhub").propagate = True
