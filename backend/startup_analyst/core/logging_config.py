"""
Logging Configuration

Configures console logging and, when LOG_DIR is set, a per-service log file so
API and batch runs can be inspected after the fact, plus helpers that log LLM
prompts and responses as short previews.
"""

import logging
from pathlib import Path
from typing import Optional

from .config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    logger_name: str = "startup_analyst",
    log_level: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure logging for a service and optionally write to a log file.

    Args:
        logger_name: Name for the logger (e.g., "startup_analyst", "batch")
        log_level: Log level (INFO, DEBUG, WARNING, ERROR). Defaults to settings.LOG_LEVEL
        console_output: Whether to also output to console (default: True)

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = settings.LOG_LEVEL

    log_level_value = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level_value)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    log_file_path = None
    if settings.LOG_DIR:
        logs_dir = Path(settings.LOG_DIR)
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = logs_dir / f"{logger_name}.log"

        file_handler = logging.FileHandler(log_file_path)
        file_handler.setLevel(log_level_value)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level_value)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.info(f"Logging configured - file: {log_file_path or 'disabled'}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Log level: {log_level}")

    return logger


LLM_PREVIEW_LENGTH = 300
PROMPT_PREVIEW_LENGTH = 200


def preview(text: Optional[str], limit: int = LLM_PREVIEW_LENGTH) -> str:
    """Head of a long LLM prompt or response, annotated with the full length when cut"""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... [{len(text)} chars]"


def log_llm_result(logger: logging.Logger, label: str, result: str, level: int = logging.INFO):
    logger.log(level, f"{label}: {preview(result)}")


def log_prompt_preview(logger: logging.Logger, prompt_name: str, prompt: str):
    # Prompts embed whole documents
    logger.debug(f"{prompt_name} prompt: {preview(prompt, PROMPT_PREVIEW_LENGTH)}")
