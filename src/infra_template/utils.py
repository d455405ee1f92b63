from __future__ import annotations

import logging
import os
from typing import Optional

DEBUG_PY_TRACE_ENV = "INFRA_TEMPLATE_DEBUG_PY_TRACE"
LOG_LEVEL_ENV = "INFRA_TEMPLATE_LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}


def debug_py_trace_enabled() -> bool:
    """Whether interactive errors should also print the Python traceback."""
    return os.environ.get(DEBUG_PY_TRACE_ENV, "").strip().lower() in _TRUTHY


def set_debug_py_trace(enabled: bool) -> None:
    if enabled:
        os.environ[DEBUG_PY_TRACE_ENV] = "1"
    else:
        os.environ.pop(DEBUG_PY_TRACE_ENV, None)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for interactive use; the library never calls this."""
    name = (level or os.getenv(LOG_LEVEL_ENV, "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
