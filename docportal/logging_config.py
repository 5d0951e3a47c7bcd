from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level of the ``docportal`` logger tree.

    Notes:
    - Stdlib logging only; the ASGI server installs handlers.
    - Set `APP_LOG_LEVEL=DEBUG` to see every permission decision.
    - Never pass tokens, passwords or secrets to a logger.
    """

    normalized = level.upper()
    logging.getLogger("docportal").setLevel(normalized)
    logging.getLogger("docportal").propagate = True
