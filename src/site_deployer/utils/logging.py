"""Logging helpers.

Components never reach for module-level logging state. They receive a
``DeployLogger`` instance, which wraps a standard ``logging.Logger`` and can
hand out per-target children so concurrent targets stay distinguishable.
"""
import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure the root logger for CLI use, optionally teeing to a file."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # botocore is chatty at DEBUG and may echo request bodies
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


class DeployLogger:
    """Thin wrapper over ``logging.Logger`` passed into each component."""

    def __init__(self, name: str = "site_deployer", logger: Optional[logging.Logger] = None,
                 prefix: str = ""):
        self._logger = logger or logging.getLogger(name)
        self.prefix = prefix

    @property
    def name(self) -> str:
        return self._logger.name

    def _fmt(self, message: str) -> str:
        return f"[{self.prefix}] {message}" if self.prefix else message

    def debug(self, message: str) -> None:
        self._logger.debug(self._fmt(message))

    def info(self, message: str) -> None:
        self._logger.info(self._fmt(message))

    def success(self, message: str) -> None:
        self._logger.log(SUCCESS, self._fmt(message))

    def warning(self, message: str) -> None:
        self._logger.warning(self._fmt(message))

    def error(self, message: str) -> None:
        self._logger.error(self._fmt(message))

    def child(self, prefix: str) -> "DeployLogger":
        """Logger that tags every line with a target name."""
        combined = f"{self.prefix}/{prefix}" if self.prefix else prefix
        return DeployLogger(logger=self._logger, prefix=combined)

    @contextmanager
    def step(self, description: str) -> Iterator[None]:
        """Log start, duration and outcome of a block."""
        self.info(f"Starting: {description}")
        start_time = time.time()
        try:
            yield
        except Exception as e:
            duration = time.time() - start_time
            self.error(f"Failed: {description} after {duration:.2f}s - {e}")
            raise
        duration = time.time() - start_time
        self.info(f"Completed: {description} in {duration:.2f}s")
