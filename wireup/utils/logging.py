"""Unified logging and debug infrastructure for wireup.

This module provides:
1. Centralized logging configuration
2. Debug mode via WIREUP_DEBUG env var or programmatic flag
3. Log levels via WIREUP_LOG_LEVEL env var
4. Dual output: Rich console for the CLI, rotating file for debugging
5. Daemon mode: stderr-only for background use (library embedding)
6. Redaction of keys and passwords before anything is written

Usage:
    from wireup.utils.logging import get_logger, configure_logging

    # In CLI entry point:
    configure_logging(debug=args.debug)

    # In any module:
    logger = get_logger(__name__)
    logger.info("Starting operation")
    logger.debug("Detailed debug info")
    logger.error("Something failed", exc=exception)

Environment Variables:
    WIREUP_DEBUG=1          Enable debug mode (verbose output)
    WIREUP_LOG_LEVEL=DEBUG  Set log level (DEBUG, INFO, WARNING, ERROR)
    WIREUP_LOG_FILE=/path   Override log file location
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

from wireup.paths import HostPaths
from wireup.utils.security import sanitize_for_logging

# Global state
_configured = False
_debug_mode = False
_daemon_mode = False
_quiet_mode = False
_log_file: Optional[Path] = None

# Shared Rich console instance (stderr keeps stdout clean for CLI output)
console = Console(stderr=True)

# Custom log levels
SUCCESS_LEVEL = 25
SECURITY_LEVEL = 22
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")
logging.addLevelName(SECURITY_LEVEL, "SECURITY")


class RedactingFormatter(logging.Formatter):
    """Formatter that also redacts secrets from tracebacks."""

    def format(self, record: logging.LogRecord) -> str:
        return sanitize_for_logging(super().format(record))


def _get_log_file() -> Path:
    """Get the log file path."""
    global _log_file
    if _log_file:
        return _log_file

    env_log_file = os.environ.get("WIREUP_LOG_FILE")
    if env_log_file:
        _log_file = Path(env_log_file)
    else:
        _log_file = HostPaths.log_dir() / "wireup.log"

    return _log_file


def is_debug_mode() -> bool:
    """Check if debug mode is enabled."""
    return _debug_mode or os.environ.get("WIREUP_DEBUG", "").lower() in ("1", "true", "yes")


def configure_logging(
    debug: bool = False,
    daemon: bool = False,
    quiet: bool = False,
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    force: bool = False,
) -> None:
    """Configure the logging system.

    Should be called once at application startup (CLI entry point or embedding host).

    Args:
        debug: Enable debug mode (verbose output, debug to console)
        daemon: Daemon mode (stderr only, no Rich formatting)
        quiet: Write to the log file only, nothing to the console
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Override log file path
        force: Reconfigure even if logging was already set up
    """
    global _configured, _debug_mode, _daemon_mode, _quiet_mode, _log_file

    if _configured and not force:
        return

    _debug_mode = debug or is_debug_mode()
    _daemon_mode = daemon
    _quiet_mode = quiet

    if log_file:
        _log_file = log_file

    # Determine log level
    if log_level:
        level_name = log_level.upper()
    else:
        level_name = os.environ.get("WIREUP_LOG_LEVEL", "DEBUG" if _debug_mode else "INFO").upper()

    level = getattr(logging, level_name, logging.INFO)

    # Get root wireup logger
    root_logger = logging.getLogger("wireup")
    root_logger.setLevel(level)

    # Clear any existing handlers
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()

    # File handler with rotation (always enabled, captures all logs)
    try:
        path = _get_log_file()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # Capture everything to file
        file_formatter = RedactingFormatter(
            "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)
    except OSError:
        # Can't write log file, continue without it
        pass

    # Stderr handler for daemons (simple format, no colors)
    if _daemon_mode:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(level)
        stderr_formatter = RedactingFormatter("%(name)s: %(levelname)s: %(message)s")
        stderr_handler.setFormatter(stderr_formatter)
        root_logger.addHandler(stderr_handler)

    _configured = True

    # Log startup info
    root_logger.debug(
        f"Logging configured: level={level_name}, debug={_debug_mode}, daemon={_daemon_mode}"
    )
    if _log_file:
        root_logger.debug(f"Log file: {_log_file}")


class WireUpLogger:
    """Unified logging with Rich console output.

    Every message is passed through sanitize_for_logging() first, so
    config snippets and exception text can be logged without leaking
    private keys or passwords.
    """

    def __init__(self, name: str):
        """Create a logger for the given module name.

        Args:
            name: Module name (typically __name__)
        """
        self.name = name
        self.logger = logging.getLogger(name)
        self.console = console

    def _console(self, label: str, markup: str, message: str, console_output: bool) -> None:
        if not console_output or _quiet_mode:
            return
        if _daemon_mode:
            print(f"{label}: {message}", file=sys.stderr)
        else:
            self.console.print(markup.format(escape(message)))

    def debug(self, message: str, console_output: bool = False) -> None:
        """Log debug message.

        By default, debug only goes to log file. Set console_output=True
        or enable WIREUP_DEBUG to see in console.
        """
        message = sanitize_for_logging(message)
        self.logger.debug(message)
        self._console("DEBUG", "[dim][DEBUG] {}[/dim]", message, console_output or is_debug_mode())

    def info(self, message: str, console_output: bool = True) -> None:
        """Log info message."""
        message = sanitize_for_logging(message)
        self.logger.info(message)
        self._console("INFO", "[blue]{}[/blue]", message, console_output)

    def success(self, message: str, console_output: bool = True) -> None:
        """Log success message (green output)."""
        message = sanitize_for_logging(message)
        self.logger.log(SUCCESS_LEVEL, message)
        self._console("SUCCESS", "[green]✓ {}[/green]", message, console_output)

    def security(self, message: str, console_output: bool = False) -> None:
        """Log a security-relevant operation (file permissions, mounts)."""
        message = sanitize_for_logging(message)
        self.logger.log(SECURITY_LEVEL, message)
        self._console("SECURITY", "[magenta][SECURITY] {}[/magenta]", message, console_output)

    def warning(self, message: str, console_output: bool = True) -> None:
        """Log warning message (yellow output)."""
        message = sanitize_for_logging(message)
        self.logger.warning(message)
        self._console("WARNING", "[yellow]⚠ {}[/yellow]", message, console_output)

    def error(
        self,
        message: str,
        exc: Optional[BaseException] = None,
        console_output: bool = True,
    ) -> None:
        """Log error message (red output).

        Args:
            message: Error message
            exc: Optional exception to include in log
            console_output: Output to console
        """
        if exc:
            error_msg = sanitize_for_logging(f"{message}: {exc}")
            self.logger.error(error_msg, exc_info=exc)
        else:
            error_msg = sanitize_for_logging(message)
            self.logger.error(error_msg)

        self._console("ERROR", "[red]✗ {}[/red]", error_msg, console_output)

    def exception(self, message: str, console_output: bool = True) -> None:
        """Log exception with full traceback.

        Call this from within an except block.
        """
        message = sanitize_for_logging(message)
        self.logger.exception(message)
        self._console("ERROR", "[red]✗ {}[/red]", message, console_output)
        if console_output and not _daemon_mode and not _quiet_mode and is_debug_mode():
            self.console.print_exception()

    def print(self, message: str, style: Optional[str] = None) -> None:
        """Print to console without logging.

        Use for user-facing output that shouldn't be in logs.
        """
        if _daemon_mode:
            print(message, file=sys.stderr)
        elif style:
            self.console.print(f"[{style}]{escape(message)}[/{style}]")
        else:
            self.console.print(escape(message))


def get_logger(name: str) -> WireUpLogger:
    """Get or create a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        WireUpLogger instance
    """
    # Ensure logging is configured with defaults if not already done
    if not _configured:
        configure_logging()

    # Ensure name is under wireup namespace
    if not name.startswith("wireup"):
        name = f"wireup.{name}"

    return WireUpLogger(name)


def log_startup_info() -> None:
    """Log startup diagnostic information (call from main entry points)."""
    logger = get_logger("wireup.startup")
    logger.debug(f"Python: {sys.version}")
    logger.debug(f"Platform: {sys.platform}")
    logger.debug(f"Debug mode: {is_debug_mode()}")
    logger.debug(f"Log file: {_get_log_file()}")

    for var in ["WIREUP_DEBUG", "WIREUP_LOG_LEVEL", "WIREUP_LOG_FILE"]:
        value = os.environ.get(var)
        if value:
            logger.debug(f"ENV {var}={value}")
