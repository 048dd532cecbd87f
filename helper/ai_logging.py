# helper/ai_logging.py
from __future__ import annotations
import os, time, re, json, logging
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

# --- config ---
_AI_DEBUG = os.getenv("AI_DEBUG", "0") == "1"
_MAX_LEN  = int(os.getenv("AI_LOG_MAXLEN", "1000"))  # truncate long payloads

LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_FILE = os.path.join(LOG_DIR, "pentachat.log")
_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("pentachat")
logger.setLevel(logging.DEBUG if _AI_DEBUG else logging.INFO)
# import-safe: no output until init_logger() runs
logger.addHandler(logging.NullHandler())


def init_logger(to_file: bool = False) -> None:
    """
    Configure the app logger once. Safe to call multiple times.
    If to_file=True, also attach a rotating file handler (delayed open).
    """
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        sh = logging.StreamHandler()
        sh.setLevel(logging.DEBUG if _AI_DEBUG else logging.INFO)
        sh.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(sh)

    if to_file and not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        os.makedirs(LOG_DIR, exist_ok=True)
        fh = RotatingFileHandler(
            LOG_FILE, maxBytes=2_000_000, backupCount=3, encoding="utf-8", delay=True
        )
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(fh)


# --- per-request context (contextvars follow asyncio tasks) ---
_ctx: ContextVar[Dict[str, Any]] = ContextVar("ai_log_ctx", default={})

def set_log_context(**kv: Any) -> None:
    """
    set_log_context(user_id=..., chat_id=...)
    """
    merged = dict(_ctx.get())
    merged.update({k: v for k, v in kv.items() if v is not None})
    _ctx.set(merged)

def clear_log_context() -> None:
    _ctx.set({})

def get_log_context() -> Dict[str, Any]:
    return dict(_ctx.get())

# --- redaction (emails/phones) ---
_EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.I)
_PHONE_RE = re.compile(r"\+?\d[\d\-\s().]{6,}\d")
def _redact(s: str) -> str:
    s = _EMAIL_RE.sub("[redacted_email]", s)
    s = _PHONE_RE.sub("[redacted_phone]", s)
    return s

def _to_json(o: Any) -> str:
    try:
        s = json.dumps(o, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        s = repr(o)
    if len(s) > _MAX_LEN:
        s = s[:_MAX_LEN] + "…[truncated]"
    return _redact(s)

def _fmt_line(tag: str, payload: Any) -> str:
    ctx = _ctx.get()
    ctx_part = f" ctx={_to_json(ctx)}" if ctx else ""
    return f"[AI-DBG] {tag} :: {_to_json(payload)}{ctx_part}"

# --- public log fns ---
def ai_dbg(tag: str, payload: Any = "") -> None:
    """Debug log (emitted only if AI_DEBUG=1)."""
    if not _AI_DEBUG:
        return
    logger.debug(_fmt_line(tag, payload))

def ai_info(tag: str, payload: Any = "") -> None:
    logger.info(_fmt_line(tag, payload))

def ai_warn(tag: str, payload: Any = "") -> None:
    logger.warning(_fmt_line(tag, payload))

def ai_err(tag: str, payload: Any = "", exc_info: bool = False) -> None:
    logger.error(_fmt_line(tag, payload), exc_info=exc_info)

# --- timing spans ---
@contextmanager
def ai_span(tag: str, payload: Any = ""):
    """
    with ai_span("exchange.generate", {"provider": "gemini"}):
        ... code ...
    """
    start = time.perf_counter()
    ai_dbg(f"{tag}.start", payload)
    try:
        yield
        dur = (time.perf_counter() - start) * 1000.0
        ai_dbg(f"{tag}.end", {"ms": round(dur, 2)})
    except Exception as e:
        dur = (time.perf_counter() - start) * 1000.0
        ai_err(f"{tag}.error", {"ms": round(dur, 2), "exc": f"{e.__class__.__name__}: {e}"})
        raise
