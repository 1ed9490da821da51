"""
Logging setup for shared_contacts.

Two loggers matter to the package:

- ``shared_contacts``: the application logger. Every module logs through a
  child of it (``logging.getLogger(__name__)``). setup_logging() gives it a
  console handler and, unless disabled, a dated file in the log directory.
- ``shared_contacts.audit``: one line per grant created, rewritten or
  deleted. setup_audit_logger() sends it to its own dated file; until then
  its records reach the application logger like any other child.

Environment:
    SHARED_CONTACTS_LOG_LEVEL   DEBUG, INFO, WARNING (or WARN), ERROR, CRITICAL
    SHARED_CONTACTS_DEBUG       1/true/yes forces DEBUG
    SHARED_CONTACTS_LOG_FILE    explicit log file, or none/disabled
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
AUDIT_LOG_FORMAT = "%(asctime)s.%(msecs)03d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENV_LOG_LEVEL = "SHARED_CONTACTS_LOG_LEVEL"
ENV_DEBUG = "SHARED_CONTACTS_DEBUG"
ENV_LOG_FILE = "SHARED_CONTACTS_LOG_FILE"

ROOT_LOGGER_NAME = "shared_contacts"
AUDIT_LOGGER_NAME = "shared_contacts.audit"

# File name prefixes of the dated log files, also used by cleanup_old_logs()
APP_LOG_PREFIX = "shared_contacts"
AUDIT_LOG_PREFIX = "audit"

LEVEL_NAMES = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# <project root>/logs, next to the shared_contacts package
PROJECT_LOG_DIR = Path(__file__).resolve().parents[2] / "logs"

# Log directory chosen by the last setup_logging() call
_configured_log_dir: Optional[Path] = None


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name and message per level.

    Colors are dropped when stdout is not a terminal, when NO_COLOR is set
    (https://no-color.org/) or when TERM is "dumb".
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and self._supports_color()

    def _supports_color(self) -> bool:
        isatty = getattr(sys.stdout, "isatty", None)
        if isatty is None or not isatty():
            return False
        if os.environ.get("NO_COLOR"):
            return False
        return os.environ.get("TERM", "") != "dumb"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname) if self.use_colors else None
        if color is None:
            return super().format(record)

        # Other handlers must keep seeing the plain record
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        colored.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(colored)


def _dated_log_name(prefix: str) -> str:
    return f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log"


def _resolve_log_dir(log_dir: Optional[Path]) -> Path:
    """Explicit directory, else the one setup_logging() used, else the project's."""
    return log_dir or _configured_log_dir or PROJECT_LOG_DIR


def _open_file_handler(path: Path, level: int, fmt: str) -> logging.FileHandler:
    """
    Create a UTF-8 file handler, creating the parent directory.

    Raises:
        OSError: If the directory or file cannot be created
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, DATE_FORMAT))
    return handler


def get_log_level_from_env() -> int:
    """
    Log level requested by the environment.

    SHARED_CONTACTS_DEBUG wins over SHARED_CONTACTS_LOG_LEVEL; unknown level
    names fall back to INFO.
    """
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG
    return LEVEL_NAMES.get(os.environ.get(ENV_LOG_LEVEL, "INFO").upper(), logging.INFO)


def get_log_file_path() -> Optional[Path]:
    """
    Application log file from SHARED_CONTACTS_LOG_FILE or the default location.

    Returns:
        Path to the log file, or None if file logging is disabled
    """
    configured = os.environ.get(ENV_LOG_FILE)
    if configured is None:
        return PROJECT_LOG_DIR / _dated_log_name(APP_LOG_PREFIX)
    if configured.lower() in ("none", "disabled", ""):
        return None
    return Path(configured)


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the shared_contacts logger.

    Replaces any handlers from an earlier call with a stderr handler and,
    when file logging is enabled, a file handler that always records DEBUG.

    Args:
        level: Console level; taken from the environment when None
        verbose: Force DEBUG and include source locations on the console
        log_dir: Directory for the dated log file
        log_file: Exact log file path; wins over log_dir
        enable_file_logging: Set False for console output only
        use_colors: Color console output when the terminal supports it

    Returns:
        The shared_contacts logger

    Example:
        setup_logging(verbose=True, log_dir=Path("~/.shared-contacts/logs"))
    """
    global _configured_log_dir

    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    console_format = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        ColoredFormatter(console_format, DATE_FORMAT)
        if use_colors
        else logging.Formatter(console_format, DATE_FORMAT)
    )
    logger.addHandler(console)

    if enable_file_logging:
        if log_file:
            file_path = log_file
        elif log_dir:
            file_path = log_dir / _dated_log_name(APP_LOG_PREFIX)
        else:
            file_path = get_log_file_path()

        if file_path:
            try:
                logger.addHandler(_open_file_handler(file_path, logging.DEBUG, VERBOSE_FORMAT))
                logger.debug(f"Log file: {file_path}")
            except OSError as e:
                logger.warning(f"Could not create log file {file_path}: {e}")

    _configured_log_dir = log_dir or (log_file.parent if log_file else None)
    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the newest ``keep_count`` application and audit log files.

    The two kinds are counted separately; other files are left alone.
    A keep_count of 0 or less disables cleanup.

    Returns:
        Number of files deleted
    """
    if keep_count <= 0:
        return 0

    logs_dir = _resolve_log_dir(log_dir)
    if not logs_dir.exists():
        return 0

    deleted = 0
    for prefix in (APP_LOG_PREFIX, AUDIT_LOG_PREFIX):
        newest_first = sorted(
            logs_dir.glob(f"{prefix}_*.log"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        for stale in newest_first[keep_count:]:
            try:
                stale.unlink()
                deleted += 1
            except OSError:
                logging.getLogger(ROOT_LOGGER_NAME).debug(f"Could not remove {stale}")
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Logger under the shared_contacts hierarchy; ``name`` is usually __name__."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_audit_log_path(log_dir: Optional[Path] = None) -> Path:
    """Dated audit log file in the resolved log directory."""
    return _resolve_log_dir(log_dir) / _dated_log_name(AUDIT_LOG_PREFIX)


def setup_audit_logger(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Send grant mutation records to their own file.

    Share reconciliation and group propagation write one line per grant
    they create, rewrite or delete, so an administrator can tell who was
    given access to which book and through which group. If the file cannot
    be opened the records go to stderr instead.

    Args:
        log_file: Audit file path; get_audit_log_path() when None
        level: Level of the audit logger

    Returns:
        The shared_contacts.audit logger
    """
    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    file_path = log_file or get_audit_log_path()
    try:
        logger.addHandler(_open_file_handler(file_path, level, AUDIT_LOG_FORMAT))
    except OSError as e:
        fallback = logging.StreamHandler(sys.stderr)
        fallback.setLevel(level)
        fallback.setFormatter(logging.Formatter(AUDIT_LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(fallback)
        logger.warning(f"Could not create audit log file {file_path}: {e}")

    return logger


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)


__all__ = [
    "setup_logging",
    "get_logger",
    "cleanup_old_logs",
    "ColoredFormatter",
    "get_log_level_from_env",
    "get_log_file_path",
    "setup_audit_logger",
    "get_audit_logger",
    "get_audit_log_path",
    "PROJECT_LOG_DIR",
    "DEFAULT_FORMAT",
    "CONSOLE_FORMAT",
    "VERBOSE_FORMAT",
    "DATE_FORMAT",
    "AUDIT_LOG_FORMAT",
    "ROOT_LOGGER_NAME",
    "AUDIT_LOGGER_NAME",
]
