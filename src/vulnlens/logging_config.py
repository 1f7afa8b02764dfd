"""Process-wide logging for the API server and the CLI.

``setup_logging()`` runs once, before litellm is imported: litellm
reads ``LITELLM_LOG`` at import time and installs its own handlers.
``cleanup_third_party_handlers()`` runs once after every import and
strips those handlers so each record reaches the root handler once.

``apply_log_level()`` may run any number of times. It is how the
``LOG_LEVEL`` setting and the CLI ``-v`` flag take effect after
``Settings`` has been loaded.
"""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_LEVEL = "INFO"

_LITELLM_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy")

# Never chattier than WARNING, whatever the application level
NOISY_LOGGERS = (
    *_LITELLM_LOGGERS,
    "httpx",
    "httpcore",
    "openai._base_client",
    "sse_starlette.sse",
)

_configured = False
_handlers_cleaned = False

logger = logging.getLogger(__name__)


def resolve_level(level: str | int | None = None) -> int:
    """Numeric level for *level*, ``LOG_LEVEL`` or the default.

    Names are case-insensitive. An unknown name logs a warning and
    falls back to INFO rather than failing startup.
    """
    if isinstance(level, int):
        return level
    name = (level or os.environ.get("LOG_LEVEL") or DEFAULT_LEVEL).upper()
    value = logging.getLevelNamesMapping().get(name)
    if value is None:
        logger.warning("event=unknown_log_level level=%s", name)
        return logging.INFO
    return value


def _pin_noisy_loggers(level: int) -> None:
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def setup_logging(level: str | int | None = None) -> None:
    """Install the root handler once, before litellm is imported.

    *level* defaults to the ``LOG_LEVEL`` environment variable. Later
    calls are no-ops; use ``apply_log_level`` to change the level.
    """
    global _configured  # noqa: PLW0603
    if _configured:
        return
    _configured = True

    os.environ.setdefault("LITELLM_LOG", "WARNING")

    numeric = resolve_level(level)
    logging.basicConfig(
        level=numeric,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    _pin_noisy_loggers(numeric)


def apply_log_level(level: str | int | None) -> int:
    """Set the root level (and re-pin third-party loggers).

    Returns the numeric level applied.
    """
    numeric = resolve_level(level)
    logging.getLogger().setLevel(numeric)
    _pin_noisy_loggers(numeric)
    return numeric


def cleanup_third_party_handlers() -> None:
    """Drop litellm's own StreamHandlers so records propagate to root.

    Without this every litellm message prints twice. Runs once; later
    calls are no-ops.
    """
    global _handlers_cleaned  # noqa: PLW0603
    if _handlers_cleaned:
        return
    _handlers_cleaned = True

    for name in _LITELLM_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True
