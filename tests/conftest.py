"""Pytest configuration and fixtures."""

from unittest.mock import MagicMock

import pytest

from printstation.api import ApiClient
from printstation.config import PrintStationConfig
from printstation.events import EVENTS, EventBus
from printstation.history import JobHistory
from printstation.printing.cups_printer import CupsPrinter
from printstation.processor import JobProcessor
from printstation.rendering.chromium import ChromiumRenderer
from printstation.store import MemoryStore

SAMPLE_HTML = "<html><head><title>Factura</title></head><body><h1>Factura 42</h1></body></html>"
SAMPLE_PDF = b"%PDF-1.4\n% test document\n%%EOF"


class FakeTimer:
    """threading.Timer stand-in that only fires when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


@pytest.fixture
def timers():
    """List of FakeTimers created by the fake_timer_factory fixture."""
    return []


@pytest.fixture
def fake_timer_factory(timers):
    """Timer factory recording every timer it creates."""

    def factory(interval, function):
        timer = FakeTimer(interval, function)
        timers.append(timer)
        return timer

    return factory


@pytest.fixture
def store():
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def recorded(events):
    """Every event emitted on the bus, as (event, payload) tuples."""
    received = []
    for name in EVENTS:
        events.subscribe(name, lambda payload, name=name: received.append((name, payload)))
    return received


@pytest.fixture
def config():
    """Configured agent settings."""
    return PrintStationConfig(
        client_id="client-1",
        api_url="https://print.example.com/api.php",
        api_key="key-123",
        token="token-abc",
        printer_mappings={"factura": "HP1", "default": "HP2"},
    )


@pytest.fixture
def configured_store(store, config):
    """Store holding a saved configuration."""
    config.save(store)
    return store


@pytest.fixture
def mock_api():
    """Print API client with successful responses."""
    api = MagicMock(spec=ApiClient)
    api.fetch_pending.return_value = []
    api.fetch_html.return_value = SAMPLE_HTML
    api.notify_status.return_value = True
    return api


@pytest.fixture
def mock_renderer():
    """Renderer returning a small PDF."""
    renderer = MagicMock(spec=ChromiumRenderer)
    renderer.is_available = True
    renderer.render.return_value = SAMPLE_PDF
    return renderer


@pytest.fixture
def mock_printer():
    """Printer backend that accepts every job and has no system default."""
    printer = MagicMock(spec=CupsPrinter)
    printer.is_available = True
    printer.get_default_printer.return_value = None
    printer.get_printers.return_value = [
        {"name": "HP1", "state": 3, "state_message": "", "is_default": False},
        {"name": "HP2", "state": 3, "state_message": "", "is_default": False},
    ]
    printer.print_pdf.return_value = True
    return printer


@pytest.fixture
def history(store, events):
    return JobHistory(store, events)


@pytest.fixture
def processor(config, mock_api, history, mock_renderer, mock_printer, events):
    """JobProcessor with mocked collaborators and no retry delay."""
    return JobProcessor(
        config,
        mock_api,
        history,
        mock_renderer,
        mock_printer,
        events=events,
        print_retry_delay=0,
        print_timeout=5,
        render_timeout=5,
    )
