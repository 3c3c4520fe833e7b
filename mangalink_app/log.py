import os
import sys
import time
import queue
import json
import logging
from logging.handlers import RotatingFileHandler

from flask import g

# Thread-safe message queue for real-time logging, drained by GET /api/logs
MSG_QUEUE_SIZE = 1000
msg_queue: queue.Queue = queue.Queue(maxsize=MSG_QUEUE_SIZE)

logger = logging.getLogger("mangalink")
logger.setLevel(logging.INFO)

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_DIR = os.environ.get('MANGALINK_LOG_DIR', os.path.join(BASE_DIR, 'instance'))

# Structured debug events (local-only file)
DEBUG_LOGGING = os.environ.get('DEBUG_LOGGING', 'false').lower() in ('1', 'true', 'yes', 'on')

debug_logger = logging.getLogger("mangalink.debug")
debug_logger.setLevel(logging.INFO)
debug_logger.propagate = False


def init_logging(log_dir: str = LOG_DIR, to_file: bool = True) -> None:
    """Attach file and stdout handlers once. Called by the app factory."""
    if any(getattr(h, "_mangalink", False) for h in logger.handlers):
        return

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter('%(message)s'))  # Keep stdout clean
    stream_handler._mangalink = True
    logger.addHandler(stream_handler)

    if not to_file:
        return

    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'mangalink.log'), maxBytes=10 * 1024 * 1024, backupCount=5
    )
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s'))
    file_handler._mangalink = True
    logger.addHandler(file_handler)

    if DEBUG_LOGGING:
        debug_handler = RotatingFileHandler(
            os.path.join(log_dir, 'debug.log'), maxBytes=10 * 1024 * 1024, backupCount=10
        )
        debug_handler.setFormatter(logging.Formatter('%(message)s'))
        debug_logger.addHandler(debug_handler)
    else:
        debug_logger.disabled = True


def _request_prefix() -> str:
    """Return request id prefix if available."""
    try:
        if g and getattr(g, "request_id", None):
            return f"[{g.request_id}] "
    except RuntimeError:
        # Outside request context
        pass
    return ""


def log(msg: str) -> None:
    """Log a message to console, file, and message queue."""
    full = f"{_request_prefix()}{msg}"

    logger.info(full)

    timestamp = time.strftime("[%H:%M:%S]")
    _enqueue(f"{timestamp} {full}")


def _enqueue(message: str) -> None:
    # Nobody polling: drop the oldest message instead of growing
    while True:
        try:
            msg_queue.put_nowait(message)
            return
        except queue.Full:
            try:
                msg_queue.get_nowait()
            except queue.Empty:
                pass


def drain_messages() -> list:
    """Pop every pending message from the queue."""
    messages = []
    while not msg_queue.empty():
        try:
            messages.append(msg_queue.get_nowait())
        except queue.Empty:
            break
    return messages


def debug_log_event(event: dict) -> None:
    """Write structured debug events to a local file."""
    if debug_logger.disabled or not debug_logger.handlers:
        return
    try:
        debug_logger.info(json.dumps(event, ensure_ascii=True, separators=(',', ':'), default=str))
    except (TypeError, ValueError) as exc:
        logger.info(f"Debug log failure: {exc}")
