"""Logging utilities for consistent logging across modules."""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _log_path(log_dir: Optional[str] = None) -> Path:
    path = Path(log_dir or os.getenv("ISSUESYNC_LOG_DIR", "logs"))
    path.mkdir(parents=True, exist_ok=True)
    return path


def setup_logging(log_dir: Optional[str] = None, level: int = logging.INFO) -> None:
    """Setup logging configuration."""
    log_path = _log_path(log_dir)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_path / "issuesync.log"),
            logging.StreamHandler()
        ]
    )


def log_server_message(message: str) -> None:
    """Log server-related messages."""
    logging.info(f"[SERVER] {message}")


def pretty_payload(body: bytes) -> str:
    """Pretty-print a JSON body for logging; falls back to the raw text."""
    text = body.decode("utf-8", errors="replace")
    try:
        return json.dumps(json.loads(text), indent=2)
    except json.JSONDecodeError:
        return text


def log_webhook_request(headers: Mapping[str, str], body: bytes, log_dir: Optional[str] = None) -> None:
    """Log webhook headers and a pretty-printed copy of the payload.

    The pretty copy is for humans only; signatures are always computed
    over the original bytes.
    """
    logger.info(f"Headers ({len(headers)}):")
    for key, value in headers.items():
        logger.info(f"{key}: {value}")

    payload = pretty_payload(body)
    logger.info("Body:")
    logger.info(payload)

    try:
        timestamp = datetime.now().strftime("%Y%m%dT%H%M%S%f")
        webhook_file = _log_path(log_dir) / f"webhook-{timestamp}.log"

        with open(webhook_file, "w", encoding="utf-8") as f:
            f.write(f"Webhook received at: {datetime.now().isoformat()}\n")
            f.write(f"Headers: {json.dumps(dict(headers), indent=2)}\n")
            f.write(f"Webhook payload:\n{payload}\n")

        logger.info(f"Webhook logged to: {webhook_file}")

    except OSError as e:
        logger.error(f"Failed to log webhook request: {e}")


def log_error(error_message: str, error_data: Any = "", log_dir: Optional[str] = None) -> None:
    """Log error messages with optional error data."""
    logger.error(error_message)
    try:
        timestamp = datetime.now().strftime("%Y%m%dT%H%M%S%f")
        error_file = _log_path(log_dir) / f"error-{timestamp}.log"

        with open(error_file, "w", encoding="utf-8") as f:
            f.write(f"Error occurred at: {datetime.now().isoformat()}\n")
            f.write(f"Error message: {error_message}\n")
            if error_data:
                f.write(f"Error data:\n{error_data}\n")

        logger.error(f"Error logged to: {error_file}")

    except OSError as e:
        logger.error(f"Failed to log error: {e}")
