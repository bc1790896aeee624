import threading
import logging
from datetime import datetime
from enum import Enum

from stream_timer.schedule import EDIT, STRUCTURAL_CHANGES

log = logging.getLogger(__name__)


class TimerStatus(Enum):
    IDLE = 'idle'  # no sections loaded
    READY = 'ready'  # sections loaded, not started
    RUNNING = 'running'
    PAUSED = 'paused'
    FINISHED = 'finished'  # past the end of the last section


ACTIVE_STATUSES = {TimerStatus.RUNNING, TimerStatus.PAUSED, TimerStatus.FINISHED}


def format_time(seconds):
    """Formats whole seconds as mm:ss. Minutes are not capped at 99."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


# --- Tick Scheduling ---

class Ticker:
    """Calls a callback every ``interval`` seconds on a timer thread.

    Only one pending tick exists at a time. ``start`` and ``cancel`` bump a
    generation counter, so a timer that was already due when it got
    superseded does nothing when it fires.
    """

    def __init__(self, interval=1.0):
        self.interval = interval
        self._lock = threading.Lock()
        self._generation = 0
        self._timer = None
        self._callback = None

    @property
    def active(self):
        with self._lock:
            return self._timer is not None

    def start(self, callback):
        with self._lock:
            self._cancel_locked()
            self._callback = callback
            self._arm_locked(self._generation)

    def cancel(self):
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self):
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm_locked(self, generation):
        self._timer = threading.Timer(self.interval, self._fire, args=(generation,))
        self._timer.daemon = True
        self._timer.start()

    def _fire(self, generation):
        with self._lock:
            if generation != self._generation:
                return
            callback = self._callback
        try:
            callback()
        except Exception:
            log.exception("Tick callback failed")
        with self._lock:
            if generation == self._generation:
                self._arm_locked(generation)


# --- Timer State Machine ---

class TimerStateMachine:
    """Countdown over an ordered section list, advancing on expiry.

    Every tick re-reads ``current_index``/``elapsed_seconds`` from this
    object under its lock; the ticker only holds a reference to ``tick``.
    """

    def __init__(self, sections=None, ticker=None):
        self._lock = threading.RLock()
        self._ticker = ticker
        self._sections = []
        self.status = TimerStatus.IDLE
        self.current_index = None
        self.elapsed_seconds = 0
        self.load(sections or [])

    @property
    def sections(self):
        return list(self._sections)

    @property
    def running(self):
        return self.status == TimerStatus.RUNNING

    @property
    def current_section(self):
        with self._lock:
            if self.current_index is None:
                return None
            return self._sections[self.current_index]

    # --- Internal helpers ---

    def _cancel_ticks(self):
        if self._ticker is not None:
            self._ticker.cancel()

    def _schedule_ticks(self):
        if self._ticker is not None:
            self._ticker.start(self.tick)

    # --- Operations ---

    def load(self, sections):
        """Replaces the list and resets. An empty list leaves the timer Idle."""
        with self._lock:
            self._cancel_ticks()
            self._sections = list(sections)
            self._reset_locked()
            log.debug(f"Timer loaded {len(self._sections)} section(s), status {self.status.value}")

    def adopt(self, sections):
        """Swaps in an edited list without resetting the run.

        Only for changes that leave the current and earlier sections as they
        were (appends, edits after ``current_index``).
        """
        with self._lock:
            sections = list(sections)
            if not sections:
                self.load(sections)
                return
            self._sections = sections
            if self.status == TimerStatus.IDLE:
                self.status = TimerStatus.READY

    def apply_change(self, sections, change):
        """Takes an edited list from the store, resetting only when the run is affected."""
        with self._lock:
            if change.kind in STRUCTURAL_CHANGES:
                self.load(sections)
            elif change.kind == EDIT and self.status in ACTIVE_STATUSES and change.index <= self.current_index:
                log.info(f"Section {change.index} edited during a run, resetting timer")
                self.load(sections)
            else:
                self.adopt(sections)

    def reset(self):
        with self._lock:
            self._cancel_ticks()
            self._reset_locked()
            log.debug("Timer reset")

    def _reset_locked(self):
        self.current_index = None
        self.elapsed_seconds = 0
        self.status = TimerStatus.READY if self._sections else TimerStatus.IDLE

    def start(self):
        """Starts from the first section, or resumes a paused run."""
        with self._lock:
            if self.status == TimerStatus.READY:
                self.current_index = 0
                self.elapsed_seconds = 0
            elif self.status != TimerStatus.PAUSED:
                return False
            self.status = TimerStatus.RUNNING
            self._schedule_ticks()
            log.info(f"Timer running: section {self.current_index} '{self._sections[self.current_index].name}'")
            return True

    def pause(self):
        with self._lock:
            if self.status != TimerStatus.RUNNING:
                return False
            self._cancel_ticks()
            self.status = TimerStatus.PAUSED
            log.info(f"Timer paused at section {self.current_index}, {self.elapsed_seconds}s elapsed")
            return True

    def tick(self):
        """One second of progress. Advances or finishes at the section boundary."""
        with self._lock:
            if self.status != TimerStatus.RUNNING:
                return
            duration = self._sections[self.current_index].duration_seconds
            if self.elapsed_seconds + 1 >= duration:
                if self.current_index < len(self._sections) - 1:
                    self.current_index += 1
                    self.elapsed_seconds = 0
                    log.info(f"Advanced to section {self.current_index} '{self._sections[self.current_index].name}'")
                else:
                    self._cancel_ticks()
                    self.elapsed_seconds = duration
                    self.status = TimerStatus.FINISHED
                    log.info("Timer finished")
            else:
                self.elapsed_seconds += 1

    # --- Observable State ---

    def progress(self):
        """Fraction of the current section that has elapsed (0 before start)."""
        with self._lock:
            if self.current_index is None:
                return 0.0
            return self.elapsed_seconds / self._sections[self.current_index].duration_seconds

    def details(self):
        """Snapshot dict polled by the pages."""
        with self._lock:
            current = self.current_section
            if current is None:
                upcoming = self._sections
                duration = 0
            else:
                upcoming = self._sections[self.current_index + 1:]
                duration = current.duration_seconds
            progress = self.progress()
            return {
                'status': self.status.value,
                'is_running': self.running,
                'current_index': self.current_index,
                'current_name': current.name if current else None,
                'elapsed_seconds': self.elapsed_seconds,
                'duration_seconds': duration,
                'progress': progress,
                'progress_percent': round(progress * 100, 2),
                'elapsed_display': format_time(self.elapsed_seconds),
                'total_display': format_time(duration),
                'upcoming': [s.to_dict() for s in upcoming],
                'section_count': len(self._sections),
                'server_time_of_day': datetime.now().strftime("%H:%M:%S"),
            }


def follow_store(timer):
    """Builds an on_change observer that keeps the editor timer in step with the store.

    Deletes and moves reload (and so reset) the timer. An edit resets it only
    when it touches the current section or one already played. Adds never do.
    """
    def _sync(sections, change):
        timer.apply_change(sections, change)
    return _sync
