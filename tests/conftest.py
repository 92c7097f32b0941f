from typing import Iterator

import pytest

from helpers import FakeConnector, ManualClock
from solana_tps_monitor.context import reset_application_context
from solana_tps_monitor.metrics import reset_metrics_state
from solana_tps_monitor.settings import reset_settings_cache


@pytest.fixture(autouse=True)
def reset_monitor_state() -> Iterator[None]:
    reset_metrics_state()
    reset_application_context()
    reset_settings_cache()
    yield
    reset_metrics_state()
    reset_application_context()
    reset_settings_cache()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def connector() -> Iterator[FakeConnector]:
    fake = FakeConnector()
    yield fake
    # Never leave a worker thread parked on a gate after the test.
    fake.release_all()
