import os
import json
import logging
import datetime as dt
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from logging.handlers import TimedRotatingFileHandler
from typing import Any, Callable, Optional

from pipeline.errors import CollaboratorTimeout

# ---------- Time helpers ----------

def now_utc() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def isoformat_utc(value: Optional[dt.datetime] = None) -> str:
    value = value or now_utc()
    return value.isoformat().replace("+00:00", "Z")

# ---------- Timeouts ----------

def call_with_timeout(fn: Callable[..., Any], *args: Any, timeout: float, label: str, **kwargs: Any) -> Any:
    """Run a collaborator call with an explicit timeout.

    Raises ``CollaboratorTimeout`` when the call does not return within
    ``timeout`` seconds. The worker thread is abandoned, not killed, so
    collaborators must tolerate a late completion.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mrv-call")
    future = executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeout as e:
        future.cancel()
        raise CollaboratorTimeout(f"{label} timed out after {timeout:g}s") from e
    finally:
        executor.shutdown(wait=False)

# ---------- Logging ----------

_LOGGER_INITIALIZED = False

class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": isoformat_utc(dt.datetime.fromtimestamp(record.created, dt.timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)

def _build_logger():
    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    # File logging only when a directory is configured, keeps test runs side-effect free
    log_dir = os.getenv("LOG_DIR")
    json_mode = os.getenv("LOG_JSON", "false").lower() == "true"

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level, logging.INFO))

    if json_mode:
        fmt = JsonFormatter()
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    ch = logging.StreamHandler()
    ch.setLevel(logger.level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh = TimedRotatingFileHandler(os.path.join(log_dir, "mrv-pipeline.log"), when="D", backupCount=14, encoding="utf-8")
        fh.setLevel(logger.level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    _LOGGER_INITIALIZED = True

def get_logger(name: str = None) -> logging.Logger:
    _build_logger()
    return logging.getLogger(name if name else __name__)

# ---------- Secret redaction ----------

def redact_secrets(s: str) -> str:
    """Mask configured secrets before they reach a log line."""
    if not s:
        return s
    redacted = s
    for k in ("OPENAI_API_KEY", "MRV_SIGNING_SECRET"):
        v = os.getenv(k)
        if v and len(v) > 3:
            redacted = redacted.replace(v, "***")
    return redacted
