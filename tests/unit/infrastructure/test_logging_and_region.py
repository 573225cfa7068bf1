"""Tests for logging setup and the shared region context."""

import json
import logging
import threading

import pytest

from lifecycle_orchestrator.infrastructure.logging.logger import get_logger, setup_logging
from lifecycle_orchestrator.infrastructure.region_context import RegionContext


@pytest.mark.unit
class TestSetupLogging:
    """Test structlog-backed logging configuration."""

    def test_json_lines_to_file(self, tmp_path):
        setup_logging("DEBUG", "file", log_dir=str(tmp_path), log_filename="test.log", json_format=True)
        logger = get_logger("lifecycle_orchestrator.tests")

        logger.info("Created %s", "vpc-1", extra={"resource_id": "vpc-1"})
        for handler in logging.getLogger("lifecycle_orchestrator").handlers:
            handler.flush()

        line = (tmp_path / "test.log").read_text().strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Created vpc-1"
        assert record["resource_id"] == "vpc-1"
        assert record["level"] == "info"
        assert record["logger"] == "lifecycle_orchestrator.tests"

    def test_level_filters_records(self, tmp_path):
        setup_logging("WARNING", "file", log_dir=str(tmp_path), log_filename="warn.log")
        logger = get_logger("lifecycle_orchestrator.tests")

        logger.info("hidden")
        logger.warning("shown")
        for handler in logging.getLogger("lifecycle_orchestrator").handlers:
            handler.flush()

        content = (tmp_path / "warn.log").read_text()
        assert "shown" in content
        assert "hidden" not in content

    def test_file_destination_requires_directory(self):
        with pytest.raises(ValueError):
            setup_logging(log_destination="file")

    def test_unknown_destination_rejected(self):
        with pytest.raises(ValueError):
            setup_logging(log_destination="syslog")

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging()
        setup_logging()

        assert len(logging.getLogger("lifecycle_orchestrator").handlers) == 1


@pytest.mark.unit
class TestRegionContext:
    """Test RegionContext switching and listeners."""

    def test_set_region_notifies_listeners_once_per_change(self):
        context = RegionContext("eu-west-1")
        seen = []
        context.add_listener(seen.append)

        context.set_region("us-east-1")
        context.set_region("us-east-1")

        assert seen == ["us-east-1"]
        assert context.get_region() == "us-east-1"

    def test_empty_region_rejected(self):
        with pytest.raises(ValueError):
            RegionContext("")
        with pytest.raises(ValueError):
            RegionContext("eu-west-1").set_region("")

    def test_exclusive_is_reentrant_for_owner(self):
        context = RegionContext("eu-west-1")

        with context.exclusive():
            context.set_region("us-east-1")

        assert context.region == "us-east-1"

    def test_exclusive_blocks_other_threads(self):
        context = RegionContext("eu-west-1")
        switcher = threading.Thread(target=context.set_region, args=("us-east-1",))

        with context.exclusive():
            switcher.start()
            switcher.join(0.2)
            assert switcher.is_alive()
            assert context.region == "eu-west-1"

        switcher.join(5)
        assert context.region == "us-east-1"
