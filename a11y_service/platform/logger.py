import logging
import os
from logging.handlers import RotatingFileHandler

from a11y_service.platform.config import settings

# 1. Create the logs directory if it doesn't exist
log_dir = os.path.join(os.getcwd(), settings.LOG_DIR)
if not os.path.exists(log_dir):
    os.makedirs(log_dir)

# 2. Define the path to the log file
log_file_path = os.path.join(log_dir, "a11y_service.log")


def get_logger(name: str):
    """
    Creates a logger instance that writes to console AND a file.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    file_handler = RotatingFileHandler(log_file_path, maxBytes=10_000_000, backupCount=5)
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def task_log(task_id=None):
    """
    Build the log sink handed to the checker for one task.

    Every message is prefixed with the task id so interleaved runs of
    different tasks stay readable in the shared log.
    """
    checker_logger = get_logger("a11y_service.checker")

    def log(message):
        if task_id:
            checker_logger.debug(f"[{task_id}]  > {message}")
        else:
            checker_logger.debug(f"  > {message}")

    return log
