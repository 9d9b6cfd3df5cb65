"""
Centralized logging configuration for the Thesis Research Lab.

Features:
- Colored console output for development
- Structured JSON output for production
- Log levels configurable via environment
- Pipeline component prefixes ([DISCOVERY], [RESEARCH], ...) highlighted
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


# ANSI color codes for terminal output
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"

    # Log levels
    DEBUG = "\033[36m"      # Cyan
    INFO = "\033[32m"       # Green
    WARNING = "\033[33m"    # Yellow
    ERROR = "\033[31m"      # Red
    CRITICAL = "\033[35m"   # Magenta

    # Component prefixes
    DISCOVERY = "\033[96m"  # Light cyan
    RESEARCH = "\033[94m"   # Light blue
    ANALYSIS = "\033[93m"   # Light yellow
    DEBATE = "\033[95m"     # Light magenta
    VERDICT = "\033[92m"    # Light green
    PIPELINE = "\033[1;37m"  # Bold white
    API = "\033[97m"        # White


PREFIX_COLORS = {
    "[DISCOVERY]": Colors.DISCOVERY,
    "[RESEARCH]": Colors.RESEARCH,
    "[ANALYSIS]": Colors.ANALYSIS,
    "[DEBATE]": Colors.DEBATE,
    "[VERDICT]": Colors.VERDICT,
    "[PIPELINE]": Colors.PIPELINE,
    "[API]": Colors.API,
}


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = f"{color}{record.levelname:8}{Colors.RESET}"
        message = record.getMessage()

        for prefix, prefix_color in PREFIX_COLORS.items():
            if message.startswith(prefix):
                message = f"{prefix_color}{Colors.BOLD}{prefix}{Colors.RESET}" + \
                          message[len(prefix):]
                break

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        # Format: TIME LEVEL MODULE MESSAGE
        module = record.name.split(".")[-1][:15]
        return f"{timestamp} {level} {module:15} {message}"


class JsonFormatter(logging.Formatter):
    """JSON formatter for production logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in ["session_id", "ticker", "phase", "agent"]:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data)


def setup_logging(
    level: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var.
        json_format: Use JSON format (for production). Defaults to LOG_FORMAT env var.
    """
    log_level = level or os.getenv("LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    use_json = json_format or os.getenv("LOG_FORMAT", "").lower() == "json"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if use_json else ColoredFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []
    root_logger.addHandler(handler)

    # Set levels for noisy libraries
    for name in ("httpx", "httpcore", "urllib3", "asyncio", "yfinance",
                 "openai", "anthropic", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: level={log_level}, format={'json' if use_json else 'colored'}")
