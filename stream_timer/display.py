import threading
import logging
from collections import OrderedDict

from stream_timer.core import TimerStateMachine

log = logging.getLogger(__name__)

EMPTY_MESSAGE = "No sections found. Please use a valid share link."


class DisplayRenderer:
    """Read-only countdown for one share token.

    Decodes the token once. A valid, non-empty schedule is loaded into a
    private timer and started right away; anything else shows the empty
    state and never touches a timer.
    """

    def __init__(self, token, codec, ticker=None):
        sections = codec.decode(token) if token else None
        self.valid = bool(sections)
        self.timer = None
        if self.valid:
            self.timer = TimerStateMachine(ticker=ticker)
            self.timer.load(sections)
            self.timer.start()
            log.info(f"Display started with {len(sections)} section(s)")

    def state(self):
        if not self.valid:
            return {'valid': False, 'message': EMPTY_MESSAGE}
        details = self.timer.details()
        details['valid'] = True
        return details

    def close(self):
        if self.timer is not None:
            self.timer.reset()


class DisplayRegistry:
    """Keeps one running display per verified token, oldest evicted first."""

    def __init__(self, codec, ticker_factory=None, max_size=64):
        self.codec = codec
        self.ticker_factory = ticker_factory
        self.max_size = max_size
        self._lock = threading.Lock()
        self._displays = OrderedDict()

    def __len__(self):
        return len(self._displays)

    def get(self, token):
        """Returns the display for a token, creating (and starting) it on first use."""
        with self._lock:
            display = self._displays.get(token)
            if display is not None:
                self._displays.move_to_end(token)
                return display

            ticker = self.ticker_factory() if self.ticker_factory else None
            display = DisplayRenderer(token, self.codec, ticker=ticker)
            if not display.valid:
                # Invalid tokens are not kept
                return display

            self._displays[token] = display
            while len(self._displays) > self.max_size:
                _, evicted = self._displays.popitem(last=False)
                evicted.close()
                log.debug("Evicted oldest display countdown")
            return display

    def clear(self):
        with self._lock:
            for display in self._displays.values():
                display.close()
            self._displays.clear()
