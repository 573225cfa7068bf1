"""Tests for home-region pinning of mutations."""

import threading
from unittest.mock import Mock

import pytest

from lifecycle_orchestrator.application.services.region_guard import HomeRegionGuard, with_home_region
from lifecycle_orchestrator.infrastructure.region_context import RegionContext


@pytest.mark.unit
class TestWithHomeRegion:
    """Test with_home_region."""

    def setup_method(self):
        self.context = RegionContext("eu-west-1")

    def run(self, operation):
        return with_home_region(
            self.context.get_region, "us-east-1", self.context.set_region, operation
        )

    def test_operation_runs_in_home_region(self):
        seen = self.run(self.context.get_region)

        assert seen == "us-east-1"
        assert self.context.region == "eu-west-1"

    def test_region_restored_after_failure(self):
        def failing():
            assert self.context.region == "us-east-1"
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            self.run(failing)

        assert self.context.region == "eu-west-1"

    def test_no_switch_when_already_in_home_region(self):
        switch = Mock()

        result = with_home_region(lambda: "us-east-1", "us-east-1", switch, lambda: 42)

        assert result == 42
        switch.assert_not_called()

    def test_switches_exactly_twice(self):
        switch = Mock()

        with_home_region(lambda: "eu-west-1", "us-east-1", switch, lambda: None)

        assert [c.args[0] for c in switch.call_args_list] == ["us-east-1", "eu-west-1"]


@pytest.mark.unit
class TestHomeRegionGuard:
    """Test HomeRegionGuard over a shared RegionContext."""

    def setup_method(self):
        self.context = RegionContext("eu-west-1")
        self.home_region_provider = Mock(return_value="us-east-1")
        self.guard = HomeRegionGuard(self.context, self.home_region_provider)

    def test_home_region_looked_up_once(self):
        self.guard.run(lambda: None)
        self.guard.run(lambda: None)

        assert self.guard.home_region == "us-east-1"
        self.home_region_provider.assert_called_once()

    def test_listeners_see_switch_and_restore(self):
        seen = []
        self.context.add_listener(seen.append)

        self.guard.run(lambda: None)

        assert seen == ["us-east-1", "eu-west-1"]

    def test_concurrent_region_switch_blocks_until_guard_released(self):
        entered = threading.Event()
        release = threading.Event()

        def long_operation():
            entered.set()
            release.wait(5)
            return self.context.region

        results = []
        guarded = threading.Thread(target=lambda: results.append(self.guard.run(long_operation)))
        guarded.start()
        assert entered.wait(5)

        switcher = threading.Thread(target=self.context.set_region, args=("ap-south-1",))
        switcher.start()
        switcher.join(0.2)
        assert switcher.is_alive()
        assert self.context.region == "us-east-1"

        release.set()
        guarded.join(5)
        switcher.join(5)

        assert results == ["us-east-1"]
        assert self.context.region == "ap-south-1"

    def test_concurrent_guarded_operations_do_not_interleave(self):
        active = []
        overlaps = []
        lock = threading.Lock()

        def operation():
            with lock:
                active.append(1)
                if len(active) > 1:
                    overlaps.append(len(active))
            threading.Event().wait(0.01)
            with lock:
                active.pop()
            return self.context.region

        results = []
        threads = [threading.Thread(target=lambda: results.append(self.guard.run(operation))) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)

        assert overlaps == []
        assert results == ["us-east-1"] * 4
        assert self.context.region == "eu-west-1"
