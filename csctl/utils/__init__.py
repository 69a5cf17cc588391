"""Utility functions and helpers for the csctl application."""
import logging
from pathlib import Path
from typing import Any, Union

from ..config import Config

logger = logging.getLogger("csctl.utils")

REDACTED = "[REDACTED]"

def is_sensitive(key: str) -> bool:
    """Return True if a field name or path looks like it holds secret material."""
    key = key.lower()
    return any(redact_key in key for redact_key in Config.REDACT_KEYS)

def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact sensitive data from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, dict):
        return {
            k: REDACTED if is_sensitive(str(k)) else redact_sensitive_data(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    return data

def display_value(key: str, value: Any) -> Any:
    """Value suitable for a log line about ``key``."""
    if is_sensitive(key) and value:
        return REDACTED
    return value

def read_file(path: Union[str, Path]) -> bytes:
    """Read a whole document from disk."""
    path = Path(path).expanduser()
    logger.debug(f"Reading {path}")
    return path.read_bytes()

def write_file(path: Union[str, Path], data: bytes, description: str = "File") -> None:
    """Write a whole document to disk, creating parent directories as needed.

    Args:
        path: Destination path
        data: Serialized document
        description: Human readable name used in log messages
    """
    path = Path(path).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        logger.error(f"Failed to write {description.lower()} to {path}: {e}")
        raise
    logger.info(f"{description} written to {path}")
