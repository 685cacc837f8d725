"""
Gemelo Logging Configuration - Color-Coded Logs

Provides:
- ColorFormatter: ANSI color-coded log output
- Helper functions: log_message_in, log_message_out, log_llm, log_tool, log_stream
- setup_logging(): Configure application logging

Usage:
    from logging_config import setup_logging, log_message_in, log_llm
    setup_logging()
    logger = logging.getLogger(__name__)
    log_message_in(logger, "Survey question", user=1, stream=True)
"""

import logging
import os
import sys

# ANSI color codes
COLORS = {
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
    "DIM": "\033[2m",
    # Event colors
    "MSG_IN": "\033[96m",  # Cyan - incoming question
    "MSG_OUT": "\033[92m",  # Green - outgoing answer
    "STREAM": "\033[95m",  # Magenta - stream lifecycle
    "TOOL": "\033[93m",  # Yellow - tool calls
    "LLM": "\033[94m",  # Blue - model attempts
    "ERROR": "\033[91m",  # Red - errors
    "WARN": "\033[33m",  # Orange/Yellow - warnings
    "DEBUG": "\033[90m",  # Gray - debug info
}


class ColorFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    LEVEL_COLORS = {
        logging.DEBUG: COLORS["DEBUG"],
        logging.INFO: COLORS["RESET"],
        logging.WARNING: COLORS["WARN"],
        logging.ERROR: COLORS["ERROR"],
        logging.CRITICAL: COLORS["ERROR"] + COLORS["BOLD"],
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, COLORS["RESET"])

        # Format: timestamp [LEVEL] message (no module name for compactness)
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = record.levelname[:4]

        formatted = (
            f"{COLORS['DIM']}{timestamp}{COLORS['RESET']} "
            f"[{color}{level}{COLORS['RESET']}] "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logging(level: int = None) -> None:
    """Configure colored logging for the application."""
    if level is None:
        level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# =============================================================================
# COLORED LOG HELPER FUNCTIONS
# =============================================================================


def log_message_in(logger: logging.Logger, message: str, **context) -> None:
    """Log incoming survey question.

    Args:
        logger: Logger instance
        message: Question text
        **context: Additional context (user, stream, image, etc.)
    """
    preview = message[:80] + "..." if len(message) > 80 else message
    ctx = " ".join(f"{k}={v}" for k, v in context.items())
    logger.info(f"{COLORS['MSG_IN']}>>> QUESTION{COLORS['RESET']} {preview} [{ctx}]")


def log_message_out(
    logger: logging.Logger,
    model: str = "",
    tools_used: list = None,
    chars: int = 0,
) -> None:
    """Log outgoing answer.

    Args:
        logger: Logger instance
        model: Model that produced the answer
        tools_used: List of tool names used
        chars: Answer length in characters
    """
    tools = ", ".join(tools_used) if tools_used else "none"
    logger.info(f"{COLORS['MSG_OUT']}<<< ANSWER{COLORS['RESET']} model={model} tools=[{tools}] chars={chars}")


def log_llm(
    logger: logging.Logger,
    state: str,
    model: str = "",
    duration: float = 0,
    outcome: str = "ok",
) -> None:
    """Log a model attempt.

    Args:
        logger: Logger instance
        state: 'start' or 'end'
        model: Model name
        duration: Call duration in seconds (for end state)
        outcome: 'ok' or a short failure reason (for end state)
    """
    if state == "start":
        logger.info(f"{COLORS['LLM']}>>> LLM{COLORS['RESET']} calling {model}")
    elif outcome == "ok":
        logger.info(f"{COLORS['LLM']}<<< LLM{COLORS['RESET']} " f"{model} completed in {duration:.1f}s")
    else:
        logger.warning(f"{COLORS['LLM']}<<< LLM{COLORS['RESET']} " f"{model} failed after {duration:.1f}s: {outcome}")


def log_tool(
    logger: logging.Logger,
    tool_name: str,
    state: str,
    **context,
) -> None:
    """Log tool execution.

    Args:
        logger: Logger instance
        tool_name: Name of the tool
        state: 'start' or 'end'
        **context: Additional context (args, chars, etc.)
    """
    ctx = " ".join(f"{k}={v}" for k, v in context.items()) if context else ""
    if state == "start":
        logger.info(f"{COLORS['TOOL']}>>> TOOL{COLORS['RESET']} {tool_name} {ctx}")
    else:
        logger.info(f"{COLORS['TOOL']}<<< TOOL{COLORS['RESET']} {tool_name} {ctx}")


def log_stream(logger: logging.Logger, reason: str, frames: int = 0, duration: float = 0) -> None:
    """Log the end of an SSE stream.

    Args:
        logger: Logger instance
        reason: Why the stream closed (completed, idle, failed, disconnected)
        frames: Number of data frames sent
        duration: Stream lifetime in seconds
    """
    logger.info(
        f"{COLORS['STREAM']}<<< STREAM{COLORS['RESET']} {reason} " f"frames={frames} in {duration:.1f}s"
    )
