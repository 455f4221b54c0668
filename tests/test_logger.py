import os

import pytest
from loguru import logger

from marketplace_intel.utils.config import LoggingConfig
from marketplace_intel.utils.logger import setup_logging


@pytest.fixture(autouse=True)
def reset_sinks():
    yield
    logger.remove()


def test_file_sink_follows_logging_section(tmp_path):
    log_file = tmp_path / "logs" / "engine.log"
    settings = LoggingConfig(level="warning", file=str(log_file), compression=None)

    setup_logging(settings=settings)
    logger.info("not written")
    logger.warning("stock job finished")

    lines = log_file.read_text().splitlines()
    assert len(lines) == 1
    assert "WARNING" in lines[0]
    assert f"| {os.getpid()} |" in lines[0]
    assert lines[0].endswith("stock job finished")


def test_arguments_override_logging_section(tmp_path):
    configured = tmp_path / "configured.log"
    override = tmp_path / "nested" / "override.log"
    settings = LoggingConfig(level="ERROR", file=str(configured))

    setup_logging(log_level="debug", log_file=str(override), settings=settings)
    logger.debug("ranking detail")

    assert not configured.exists()
    assert "ranking detail" in override.read_text()


def test_empty_log_file_disables_file_sink(tmp_path):
    configured = tmp_path / "engine.log"

    setup_logging(log_file="", settings=LoggingConfig(file=str(configured)))
    logger.info("console only")

    assert not configured.exists()
