"""
@file logging.py
@brief Centralized logging configuration
@details
Configures run logging with support for file and stdout output.
Safely handles log directory creation.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0
"""

import logging
import sys
import os


def setup_logging(level: int = None) -> logging.Logger:
    """
    @brief Configure and return the package logger
    @details
    Sets up logging based on LOG_OUTPUT env var:
    - 'file': Write to <LOG_DIR>/catchment.log
    - 'stdout': Write to console
    - 'both': Write to both (default)

    LOG_DIR defaults to a logs/ directory beside the package. If it cannot
    be created, output falls back to stdout only. LOG_LEVEL (e.g. DEBUG)
    applies when no level is passed.
    """
    if level is None:
        level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    log_dir = os.getenv("LOG_DIR", None)

    if log_dir is None:
        # this file is in catchment/core/, so back 2 levels is the project root
        base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        log_dir = os.path.join(base_dir, "logs")

    if not os.path.exists(log_dir):
        try:
            os.makedirs(log_dir, exist_ok=True)
        except (OSError, PermissionError):
            log_dir = None

    log_output = os.getenv("LOG_OUTPUT", "both").lower()

    handlers = []

    if log_output in ("stdout", "both"):
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_output in ("file", "both") and log_dir:
        try:
            handlers.append(logging.FileHandler(os.path.join(log_dir, "catchment.log")))
        except (OSError, PermissionError):
            if not any(isinstance(h, logging.StreamHandler) for h in handlers):
                handlers.append(logging.StreamHandler(sys.stdout))

    # Safety net
    if not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True
    )

    return logging.getLogger("catchment")
