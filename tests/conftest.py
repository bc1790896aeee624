"""Shared fixtures for stream_timer tests."""

import pytest

from stream_timer import config
from stream_timer.schedule import JsonSlotStorage, Section
from stream_timer.server import create_app

SECRET = "test-secret"


class FakeTicker:
    """Records start/cancel calls instead of running a thread."""

    def __init__(self):
        self.callback = None
        self.starts = 0
        self.cancels = 0

    @property
    def active(self):
        return self.callback is not None

    def start(self, callback):
        self.cancel()
        self.callback = callback
        self.starts += 1

    def cancel(self):
        self.cancels += 1
        self.callback = None

    def fire(self, times=1):
        for _ in range(times):
            if self.callback is None:
                return
            self.callback()


@pytest.fixture
def sections():
    return [Section.create("Intro", 1), Section.create("Main", 2)]


@pytest.fixture
def settings(tmp_path):
    return config.load_settings(
        overrides={"secret": SECRET, "data_dir": str(tmp_path), "log_level": "DEBUG"},
        use_dotenv=False,
    )


@pytest.fixture
def storage(settings):
    return JsonSlotStorage(config.storage_path(settings))


@pytest.fixture
def tickers():
    return []


@pytest.fixture
def app(settings, storage, tickers):
    def ticker_factory():
        ticker = FakeTicker()
        tickers.append(ticker)
        return ticker

    app = create_app(settings, storage=storage, ticker_factory=ticker_factory)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
