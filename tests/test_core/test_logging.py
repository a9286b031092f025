"""Tests for setup_logging."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
import structlog

from lending_monitor.core.config import LoggingConfig
from lending_monitor.core.logging import setup_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


class TestSetupLogging:
    def test_level_override(self) -> None:
        setup_logging(level="DEBUG", config=LoggingConfig())
        assert logging.getLogger().level == logging.DEBUG

    def test_level_from_config(self) -> None:
        setup_logging(config=LoggingConfig(level="WARNING"))
        assert logging.getLogger().level == logging.WARNING

    def test_single_stdout_handler(self) -> None:
        setup_logging(config=LoggingConfig())
        setup_logging(config=LoggingConfig())
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_noisy_loggers_quieted(self) -> None:
        setup_logging(level="DEBUG", config=LoggingConfig())
        assert logging.getLogger("aiohttp.access").level == logging.WARNING

    def test_service_bound(self) -> None:
        setup_logging(service="indexer", fmt="console", config=LoggingConfig())
        assert structlog.contextvars.get_contextvars() == {"service": "indexer"}
