from __future__ import annotations

import logging

import pytest

from modreg.core.config.models import RegistryConfig
from modreg.core.logger import LOGGER_NAME
from modreg.core.registry import ModuleRegistry
from modreg.core.storage.memory import InMemoryStorage

from .helpers.fakes import FakeClock, RecordingBus


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def registry(clock, bus):
    """
    Fresh in-memory registry per test, with a fixed clock and a recording bus.
    """
    return ModuleRegistry(config=RegistryConfig(), storage=InMemoryStorage(), clock=clock, event_bus=bus)


@pytest.fixture
def modreg_logger():
    """
    The package logger with its handlers detached; restored afterwards since
    `setup_logging` configures it process-wide.
    """
    logger = logging.getLogger(LOGGER_NAME)
    saved = list(logger.handlers)
    saved_propagate = logger.propagate
    for h in saved:
        logger.removeHandler(h)
    try:
        yield logger
    finally:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()
        for h in saved:
            logger.addHandler(h)
        logger.propagate = saved_propagate
