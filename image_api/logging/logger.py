import logging
import sys

_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
# Workers and extractors run on threads; keep the thread visible outside dev.
_THREADED_FORMAT = "%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s"


class Log:
    """Centralized logging for the API process and the pipeline workers."""

    _logger: logging.Logger = logging.getLogger("image_api")

    @classmethod
    def configure(cls, log_level: str, app_env: str = "dev") -> None:
        """Configure the logger with the specified level and stdout handler."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            fmt = _FORMAT if app_env == "dev" else _THREADED_FORMAT
            handler.setFormatter(logging.Formatter(fmt))
            cls._logger.addHandler(handler)

    @classmethod
    def info(cls, message: str, **kwargs: object) -> None:
        """Log an info message."""
        cls._logger.info(message, extra=kwargs)

    @classmethod
    def error(cls, message: str, **kwargs: object) -> None:
        """Log an error message."""
        cls._logger.error(message, extra=kwargs)

    @classmethod
    def warning(cls, message: str, **kwargs: object) -> None:
        """Log a warning message."""
        cls._logger.warning(message, extra=kwargs)

    @classmethod
    def debug(cls, message: str, **kwargs: object) -> None:
        """Log a debug message."""
        cls._logger.debug(message, extra=kwargs)

    @classmethod
    def exception(cls, message: str, **kwargs: object) -> None:
        """Log at ERROR level including the active traceback."""
        cls._logger.exception(message, extra=kwargs)
