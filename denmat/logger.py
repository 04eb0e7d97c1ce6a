"""
Logger module for the DENM annotator.

Configures the ``denmat`` logger: errors go to a log file in the configuration
directory, unhandled exceptions are recorded before the default hook runs.
Modules log through ``logging.getLogger(__name__)``.
"""

import os
import sys
import logging
import traceback
from functools import wraps


class DenmatLogger:
    _instance = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super(DenmatLogger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, log_dir=None):
        if self._initialized:
            return

        self.logger = logging.getLogger("denmat")
        self.logger.setLevel(logging.DEBUG)

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        if log_dir is None:
            from .utils.file_operations import get_config_directory

            self.log_dir = get_config_directory()
        else:
            self.log_dir = log_dir

        os.makedirs(self.log_dir, exist_ok=True)
        self.log_file = os.path.join(self.log_dir, "denmat_errors.log")

        # Only errors and above are persisted
        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setLevel(logging.ERROR)
        file_handler.setFormatter(formatter)
        self.logger.addHandler(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        self.setup_exception_handler()

        self._initialized = True

    def setup_exception_handler(self):
        """Set up global exception handler to catch unhandled exceptions."""

        def exception_hook(exctype, value, tb):
            exception_str = "".join(traceback.format_exception(exctype, value, tb))
            self.logger.critical(f"UNHANDLED EXCEPTION: {exception_str}")
            sys.__excepthook__(exctype, value, tb)

        sys.excepthook = exception_hook

    def log_error(self, error, context=""):
        """Log an error with context information."""
        if isinstance(error, Exception):
            tb_str = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
            self.logger.error(f"ERROR in {context}: {str(error)}\n{tb_str}")
        else:
            self.logger.error(f"ERROR in {context}: {str(error)}")


def log_exceptions(func):
    """Log any exception raised by ``func`` and re-raise it."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger = logging.getLogger(func.__module__)
            logger.exception(f"Exception in {func.__name__}: {str(e)}")
            raise

    return wrapper
