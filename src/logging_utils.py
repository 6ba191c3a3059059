# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Utilities to configure and retrieve replay loggers.

File logging can be switched on from the JSON config; the log of each
run is written into a zip archive under `logs/`, named after the start
time and a short hash of the config that produced it.
"""
from __future__ import annotations

import hashlib
import io
import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_NAMESPACE = "replay"
HASH_LENGTH = 12
LOG_DIRNAME = "logs"

def _coerce_level(value: Any) -> int:
    """
    Return a valid logging level from either a string or an integer.
    Defaults to logging.INFO when the input is not recognised.
    """
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return getattr(logging, value.upper(), logging.INFO)
    return logging.INFO

def configure_logging(
    settings: Optional[Dict[str, Any]] = None,
    config_path: Optional[str | Path] = None,
    project_root: Optional[str | Path] = None,
) -> Optional[Path]:
    """
    Configure Python logging based on the configuration dictionary.

    Parameters
    ----------
    settings:
        The `logging` section of the config. Supported keys:
        - enabled (bool): write a zipped log file (default: False)
        - level (str|int): console level (default: "INFO" if enabled else "WARNING")
        - file_level (str|int): level of the persisted log (default: level)
        - to_console (bool): echo logs to stderr (default: True)
    config_path:
        Path to the configuration file, hashed into the log file name.
    project_root:
        Directory that receives the `logs/` folder.

    Returns the path of the log archive, or None when file logging is off.
    """
    if settings is None:
        settings = {}
    enabled = bool(settings.get("enabled", False))
    console_level = _coerce_level(settings.get("level", "INFO" if enabled else "WARNING"))
    file_level = _coerce_level(settings.get("file_level", settings.get("level", "INFO")))

    handlers: list[logging.Handler] = []
    if settings.get("to_console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        handlers.append(console_handler)

    log_path = None
    if enabled:
        log_path = _log_archive_path(config_path, project_root)
        handlers.append(_CompressedLogHandler(log_path, level=file_level))

    if not handlers:
        null_handler = logging.NullHandler()
        null_handler.setLevel(console_level)
        handlers.append(null_handler)

    effective_level = min(handler.level for handler in handlers)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=effective_level, handlers=handlers, force=True)
    logging.getLogger(LOG_NAMESPACE).setLevel(effective_level)
    return log_path

def _log_archive_path(config_path: Optional[str | Path], project_root: Optional[str | Path]) -> Path:
    """Return `logs/<timestamp>[_<config hash>].log.zip` without creating it."""
    root = Path(project_root).resolve() if project_root else Path(__file__).resolve().parents[1]
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    parts = [timestamp]
    if config_path:
        try:
            data = Path(config_path).expanduser().resolve(strict=True).read_bytes()
        except FileNotFoundError:
            data = None
        if data is not None:
            parts.append(hashlib.sha256(data).hexdigest()[:HASH_LENGTH])
    return root / LOG_DIRNAME / ("_".join(parts) + ".log.zip")

def get_logger(component: str) -> logging.Logger:
    """
    Return a namespaced logger for the given component.
    """
    component = component.strip(".")
    name = f"{LOG_NAMESPACE}.{component}" if component else LOG_NAMESPACE
    return logging.getLogger(name)

class _CompressedLogHandler(logging.Handler):
    """
    Deferred handler that writes logs inside a ZIP archive.
    The archive is created only when the first record arrives.
    """

    terminator = "\n"

    def __init__(self, archive_path: Path, level: int) -> None:
        super().__init__(level)
        self.archive_path = archive_path
        self._zip: Optional[zipfile.ZipFile] = None
        self._stream: Optional[io.TextIOWrapper] = None

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stream = self._ensure_stream()
            stream.write(self.format(record) + self.terminator)
            stream.flush()
        except Exception:
            self.handleError(record)

    def _ensure_stream(self) -> io.TextIOWrapper:
        if self._stream is None:
            self.archive_path.parent.mkdir(parents=True, exist_ok=True)
            self._zip = zipfile.ZipFile(self.archive_path, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9)
            inner_name = self.archive_path.name[: -len(".zip")]
            self._stream = io.TextIOWrapper(self._zip.open(inner_name, mode="w"), encoding="utf-8")
        return self._stream

    def flush(self) -> None:
        if self._stream:
            self._stream.flush()

    def close(self) -> None:
        try:
            if self._stream:
                self._stream.close()
            if self._zip:
                self._zip.close()
        finally:
            self._stream = None
            self._zip = None
        super().close()
