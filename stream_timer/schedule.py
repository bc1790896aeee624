import json
import math
import os
import logging
import threading
from collections import namedtuple
from dataclasses import dataclass

log = logging.getLogger(__name__)

# --- Move Directions ---
UP = 'up'
DOWN = 'down'
DIRECTIONS = (UP, DOWN)

# --- Change Kinds (passed to on_change observers) ---
ADD = 'add'
EDIT = 'edit'
DELETE = 'delete'
MOVE = 'move'
REORDER = 'reorder'
STRUCTURAL_CHANGES = {DELETE, MOVE, REORDER}

# One year. Keeps minute-to-second conversion finite.
MAX_DURATION_MINUTES = 365 * 24 * 60

Change = namedtuple('Change', ['kind', 'index'])


class ValidationError(ValueError):
    """Raised when a section name or duration is not acceptable."""


def _is_number(value):
    """Finite int or float, excluding bools, NaN and infinities."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return isinstance(value, int) or math.isfinite(value)


@dataclass(frozen=True)
class Section:
    """A named, timed segment of a schedule. Duration is in minutes."""
    name: str
    duration: float

    @property
    def duration_seconds(self):
        # A section always lasts at least one tick
        return max(1, int(round(min(self.duration, MAX_DURATION_MINUTES) * 60)))

    @classmethod
    def create(cls, name, duration):
        """Validated constructor used for everything a user types or a token carries."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Section name must be non-empty text.")
        if not _is_number(duration) or duration <= 0:
            raise ValidationError("Section duration must be a positive number of minutes.")
        if duration > MAX_DURATION_MINUTES:
            raise ValidationError(f"Section duration must be at most {MAX_DURATION_MINUTES} minutes.")
        if isinstance(duration, float) and duration.is_integer():
            duration = int(duration)
        return cls(name=name, duration=duration)

    @classmethod
    def from_dict(cls, record):
        if not isinstance(record, dict):
            raise ValidationError("Section record must be an object.")
        return cls.create(record.get('name'), record.get('duration'))

    def to_dict(self):
        return {'name': self.name, 'duration': self.duration}


def parse_sections(records):
    """Validates a list of {name, duration} records. Raises ValidationError on the first bad one."""
    if not isinstance(records, list):
        raise ValidationError("Sections must be a list.")
    return [Section.from_dict(r) for r in records]


# --- Local Persistence ---

class JsonSlotStorage:
    """A single named JSON slot on disk holding the whole section list."""

    def __init__(self, path):
        self.path = path

    def load(self):
        """Reads the slot once. Missing or unreadable data gives an empty list.

        Stored records are not re-validated against the section rules, only
        records that cannot be used at all (wrong shape, non-numeric duration)
        are skipped.
        """
        if not os.path.exists(self.path):
            log.info(f"No saved sections at '{self.path}', starting with an empty list.")
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError):
            log.warning(f"Could not read saved sections from '{self.path}', starting with an empty list.", exc_info=True)
            return []

        if not isinstance(data, list):
            log.warning(f"Saved sections in '{self.path}' are not a list, ignoring them.")
            return []

        sections = []
        for record in data:
            if not isinstance(record, dict) or not isinstance(record.get('name'), str) \
                    or not _is_number(record.get('duration')):
                log.warning(f"Skipping unusable saved section record: {record!r}")
                continue
            sections.append(Section(name=record['name'], duration=record['duration']))
        log.info(f"Loaded {len(sections)} section(s) from '{self.path}'.")
        return sections

    def save(self, sections):
        """Replaces the slot with the full list."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = self.path + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump([s.to_dict() for s in sections], f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)
        log.debug(f"Saved {len(sections)} section(s) to '{self.path}'.")


# --- Section List Store ---

class SectionListStore:
    """Ordered, mutable section list owned by the editor.

    Every successful mutation notifies the ``on_change`` observers with the
    full new list and a ``Change(kind, index)``. Invalid input is ignored.
    The index check, the mutation and the notification run under one lock,
    so observers see changes in the order they were made.
    """

    def __init__(self, sections=None):
        self._lock = threading.RLock()
        self._sections = list(sections or [])
        self._observers = []

    @property
    def sections(self):
        with self._lock:
            return list(self._sections)

    def __len__(self):
        with self._lock:
            return len(self._sections)

    def __getitem__(self, index):
        with self._lock:
            return self._sections[index]

    def on_change(self, callback):
        with self._lock:
            self._observers.append(callback)
        return callback

    def _valid_index(self, index):
        return isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(self._sections)

    def _notify(self, kind, index):
        change = Change(kind, index)
        snapshot = list(self._sections)
        for callback in self._observers:
            callback(snapshot, change)

    def add(self, name, duration):
        try:
            section = Section.create(name, duration)
        except ValidationError as e:
            log.debug(f"Rejected add({name!r}, {duration!r}): {e}")
            return False
        with self._lock:
            self._sections.append(section)
            self._notify(ADD, len(self._sections) - 1)
        return True

    def edit(self, index, name, duration):
        try:
            section = Section.create(name, duration)
        except ValidationError as e:
            log.debug(f"Rejected edit({index!r}, {name!r}, {duration!r}): {e}")
            return False
        with self._lock:
            if not self._valid_index(index):
                log.debug(f"Rejected edit at invalid index {index!r}")
                return False
            self._sections[index] = section
            self._notify(EDIT, index)
        return True

    def delete(self, index):
        with self._lock:
            if not self._valid_index(index):
                return False
            del self._sections[index]
            self._notify(DELETE, index)
        return True

    def move(self, index, direction):
        """Moves one position up or down. No-op at the edges."""
        if direction not in DIRECTIONS:
            return False
        with self._lock:
            if not self._valid_index(index):
                return False
            target = index - 1 if direction == UP else index + 1
            if not self._valid_index(target):
                return False
            self._sections[index], self._sections[target] = self._sections[target], self._sections[index]
            self._notify(MOVE, target)
        return True

    def reorder(self, from_index, to_index):
        """Drag-and-drop: takes the section at from_index and inserts it at to_index."""
        with self._lock:
            if not self._valid_index(from_index) or not self._valid_index(to_index):
                return False
            if from_index == to_index:
                return False
            section = self._sections.pop(from_index)
            self._sections.insert(to_index, section)
            self._notify(REORDER, to_index)
        return True


def persist_to(storage):
    """Builds an on_change observer that writes the whole list to storage."""
    def _persist(sections, change):
        try:
            storage.save(sections)
        except OSError:
            log.exception(f"Failed to save sections after '{change.kind}'")
    return _persist
