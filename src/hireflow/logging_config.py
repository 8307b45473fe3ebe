from __future__ import annotations

import logging

from hireflow.config import get_settings


_LOG_CONFIGURED = False


def configure_logging() -> None:
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # httpx logs every request at INFO; keep batch runs readable
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _LOG_CONFIGURED = True
