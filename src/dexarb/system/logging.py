"""
Centralized Logger with Rich Console
====================================
Static facade used by every dexarb module.

Console output goes through Rich, file output through Loguru sinks that are
only attached once `setup_logging()` is called (the CLI does this at start-up,
tests never do).

Usage:
    from dexarb.system.logging import Logger

    Logger.info("[ENGINE] Message")
    Logger.success("[TRADE] Swap confirmed")
    Logger.warning("Something concerning")
    Logger.error("Something broke")
    Logger.section("Starting Module")
"""

import os
from datetime import datetime
from typing import Optional

from loguru import logger as loguru_logger
from rich.console import Console
from rich.text import Text


# =============================================================================
# SOURCE ICONS (for visual scanning)
# =============================================================================

SOURCE_ICONS = {
    "SYSTEM": "🛸",
    "ENGINE": "⚖️",
    "GATE": "🔒",
    "DEBOUNCE": "⏱️",
    "FEED": "📡",
    "TRADE": "💰",
    "REPORT": "📋",
}

# Level colors for Rich
LEVEL_STYLES = {
    "INFO": "cyan",
    "SUCCESS": "green bold",
    "WARNING": "yellow",
    "ERROR": "red bold",
    "DEBUG": "dim",
    "CRITICAL": "red bold reverse",
    "SECTION": "magenta bold",
}

_console = Console()

# Loguru ships with a stderr sink; console output is ours.
loguru_logger.remove()


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """
    Attach Loguru file sinks.

    Adds a rotating per-day text log and a serialized JSONL log for analysis.
    Safe to call more than once; previous sinks are replaced.
    """
    loguru_logger.remove()
    if not log_dir:
        return

    os.makedirs(log_dir, exist_ok=True)
    loguru_logger.add(
        os.path.join(log_dir, "dexarb_{time:YYYY-MM-DD}.log"),
        rotation="10 MB",
        retention="7 days",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level:8} | {extra[source]:10} | {message}",
        level=level.upper(),
    )
    loguru_logger.add(
        os.path.join(log_dir, "dexarb_structured.jsonl"),
        rotation="50 MB",
        retention="3 days",
        serialize=True,
        level="DEBUG",
    )


# =============================================================================
# LOGGER CLASS
# =============================================================================

class Logger:
    """
    Centralized logger with Rich console output.

    - Color-coded console lines: timestamp | level | source | message
    - Loguru file sinks (see setup_logging)
    - Source-based icon prefixes from a leading "[SOURCE]" tag
    """

    _silent_mode = False
    _console_level = "INFO"

    _LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "SUCCESS": 25, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

    @staticmethod
    def _timestamp() -> str:
        """High-precision timestamp (HH:MM:SS.ms)."""
        now = datetime.now()
        ms = str(now.microsecond // 1000).zfill(3)
        return f"{now.strftime('%H:%M:%S')}.{ms}"

    @staticmethod
    def _parse_source(message: str) -> tuple:
        """Extract [SOURCE] tag from message if present."""
        stripped = message.strip()
        if stripped.startswith("[") and "]" in stripped:
            tag_end = stripped.index("]")
            source = stripped[1:tag_end].upper()
            if 0 < len(source) < 15:
                return source, stripped[tag_end + 1:].strip()
        return "SYSTEM", message

    @staticmethod
    def _format_console(level: str, message: str, source: str) -> None:
        """Output to console with Rich formatting."""
        if Logger._silent_mode:
            return
        threshold = Logger._LEVEL_ORDER.get(Logger._console_level, 20)
        if Logger._LEVEL_ORDER.get(level, 20) < threshold:
            return

        icon = SOURCE_ICONS.get(source.upper(), "")
        msg_with_icon = f"{icon} {message}" if icon else message

        line = Text()
        line.append(f"{Logger._timestamp()} ", style="dim")
        line.append(f"| {level[:8].ljust(8)} ", style=LEVEL_STYLES.get(level, "white"))
        line.append(f"| {source[:10].ljust(10)} | ", style="dim")
        line.append(msg_with_icon)
        _console.print(line)

    @staticmethod
    def _log_to_file(level: str, message: str, source: str) -> None:
        """Write to the Loguru sinks (no-op until setup_logging adds some)."""
        loguru_logger.bind(source=source).log(level, message)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @staticmethod
    def info(message: str, icon: str = "") -> None:
        source, msg = Logger._parse_source(message)
        if icon:
            msg = f"{icon} {msg}"
        Logger._format_console("INFO", msg, source)
        Logger._log_to_file("INFO", msg, source)

    @staticmethod
    def success(message: str) -> None:
        source, msg = Logger._parse_source(message)
        Logger._format_console("SUCCESS", msg, source)
        Logger._log_to_file("SUCCESS", msg, source)

    @staticmethod
    def warning(message: str) -> None:
        source, msg = Logger._parse_source(message)
        Logger._format_console("WARNING", msg, source)
        Logger._log_to_file("WARNING", msg, source)

    @staticmethod
    def error(message: str) -> None:
        source, msg = Logger._parse_source(message)
        Logger._format_console("ERROR", msg, source)
        Logger._log_to_file("ERROR", msg, source)

    @staticmethod
    def debug(message: str) -> None:
        source, msg = Logger._parse_source(message)
        Logger._format_console("DEBUG", msg, source)
        Logger._log_to_file("DEBUG", msg, source)

    @staticmethod
    def critical(message: str) -> None:
        source, msg = Logger._parse_source(message)
        Logger._format_console("CRITICAL", f"🛑 {msg}", source)
        Logger._log_to_file("CRITICAL", f"🛑 {msg}", source)

    @staticmethod
    def section(title: str) -> None:
        """Print a section header."""
        if not Logger._silent_mode:
            _console.print()
            _console.rule(f"[bold magenta]{title}[/]", style="dim")
        Logger._log_to_file("INFO", f"=== {title} ===", "SYSTEM")

    @staticmethod
    def set_silent(silent: bool) -> None:
        """Enable/disable console output."""
        Logger._silent_mode = silent

    @staticmethod
    def set_level(level: str) -> None:
        """Minimum level printed to the console."""
        Logger._console_level = level.upper()

    @staticmethod
    def console() -> Console:
        """Shared Rich console (tables render through the same stream)."""
        return _console
