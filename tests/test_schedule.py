"""Tests for sections, the section list store and its JSON slot."""

import json
import threading

import pytest

from stream_timer.schedule import (
    DOWN, MAX_DURATION_MINUTES, UP, Change, JsonSlotStorage, Section, SectionListStore, ValidationError, parse_sections, persist_to,
)


def make_store(*names):
    store = SectionListStore()
    for name in names:
        store.add(name, 5)
    return store


def names(store):
    return [s.name for s in store.sections]


class TestSection:

    def test_create_valid(self):
        section = Section.create("Intro", 5)
        assert section.name == "Intro"
        assert section.duration == 5
        assert section.duration_seconds == 300

    def test_whole_float_duration_normalised(self):
        assert Section.create("Intro", 5.0).duration == 5
        assert isinstance(Section.create("Intro", 5.0).duration, int)

    def test_fractional_duration(self):
        assert Section.create("Quick", 1.5).duration_seconds == 90

    @pytest.mark.parametrize("name,duration", [
        ("", 5),
        ("   ", 5),
        (None, 5),
        ("Break", 0),
        ("Break", -1),
        ("Break", "5"),
        ("Break", True),
        ("Break", None),
        ("Break", float("nan")),
        ("Break", float("inf")),
        ("Break", 1e308),
        ("Break", 365 * 24 * 60 + 1),
    ])
    def test_create_rejects_invalid(self, name, duration):
        with pytest.raises(ValidationError):
            Section.create(name, duration)

    def test_parse_sections(self):
        parsed = parse_sections([{"name": "A", "duration": 1}, {"name": "B", "duration": 2}])
        assert parsed == [Section("A", 1), Section("B", 2)]

    def test_parse_sections_rejects_non_list(self):
        with pytest.raises(ValidationError):
            parse_sections({"name": "A", "duration": 1})

    def test_parse_sections_rejects_bad_record(self):
        with pytest.raises(ValidationError):
            parse_sections([{"name": "A", "duration": 1}, "nope"])


class TestSectionListStore:

    def test_add_rejects_empty_name(self):
        store = SectionListStore()
        assert store.add("", 5) is False
        assert store.sections == []

    def test_add_rejects_zero_duration(self):
        store = SectionListStore()
        assert store.add("Break", 0) is False
        assert store.sections == []

    @pytest.mark.parametrize("duration", [float("nan"), float("inf"), float("-inf")])
    def test_add_rejects_non_finite_duration(self, duration):
        store = SectionListStore()
        assert store.add("x", duration) is False
        assert store.sections == []

    def test_edit_rejects_non_finite_duration(self):
        store = make_store("Intro")
        assert store.edit(0, "Intro", float("nan")) is False
        assert store[0] == Section("Intro", 5)

    def test_add_appends_exactly_one(self):
        store = make_store("Intro")
        assert store.add("Break", 5) is True
        assert names(store) == ["Intro", "Break"]

    def test_edit(self):
        store = make_store("Intro", "Main")
        assert store.edit(1, "Outro", 3) is True
        assert store[1] == Section("Outro", 3)

    def test_edit_invalid_index_is_noop(self):
        store = make_store("Intro")
        assert store.edit(3, "Outro", 3) is False
        assert store.edit(-1, "Outro", 3) is False
        assert names(store) == ["Intro"]

    def test_edit_invalid_input_is_noop(self):
        store = make_store("Intro")
        assert store.edit(0, "", 3) is False
        assert store.edit(0, "Intro", -2) is False
        assert store[0] == Section("Intro", 5)

    def test_delete(self):
        store = make_store("A", "B", "C")
        assert store.delete(1) is True
        assert names(store) == ["A", "C"]
        assert store.delete(5) is False

    def test_move_up_at_top_is_noop(self):
        store = make_store("A", "B", "C")
        assert store.move(0, UP) is False
        assert names(store) == ["A", "B", "C"]

    def test_move_down_at_bottom_is_noop(self):
        store = make_store("A", "B", "C")
        assert store.move(2, DOWN) is False
        assert names(store) == ["A", "B", "C"]

    def test_move(self):
        store = make_store("A", "B", "C")
        assert store.move(1, UP) is True
        assert names(store) == ["B", "A", "C"]
        assert store.move(1, DOWN) is True
        assert names(store) == ["B", "C", "A"]

    def test_move_unknown_direction(self):
        store = make_store("A", "B")
        assert store.move(0, "sideways") is False

    def test_reorder(self):
        store = make_store("A", "B", "C", "D")
        assert store.reorder(0, 2) is True
        assert names(store) == ["B", "C", "A", "D"]
        assert store.reorder(3, 0) is True
        assert names(store) == ["D", "B", "C", "A"]

    def test_reorder_invalid(self):
        store = make_store("A", "B")
        assert store.reorder(0, 0) is False
        assert store.reorder(0, 5) is False
        assert names(store) == ["A", "B"]

    def test_duplicate_names_allowed(self):
        store = make_store("A", "A")
        assert names(store) == ["A", "A"]

    def test_observers_see_every_mutation(self):
        store = SectionListStore()
        seen = []
        store.on_change(lambda sections, change: seen.append((len(sections), change)))

        store.add("A", 1)
        store.add("B", 1)
        store.add("", 1)
        store.edit(0, "A2", 2)
        store.move(0, DOWN)
        store.reorder(1, 0)
        store.delete(0)

        assert seen == [
            (1, Change("add", 0)),
            (2, Change("add", 1)),
            (2, Change("edit", 0)),
            (2, Change("move", 1)),
            (2, Change("reorder", 0)),
            (1, Change("delete", 0)),
        ]

    def test_sections_is_a_copy(self):
        store = make_store("A")
        store.sections.append(Section("B", 1))
        assert names(store) == ["A"]

    def test_concurrent_mutations_notify_in_order(self):
        store = SectionListStore([Section(f"S{i}", 1) for i in range(100)])
        lengths = []
        store.on_change(lambda sections, change: lengths.append(len(sections)))
        errors = []

        def run(action):
            try:
                for _ in range(50):
                    action()
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=run, args=(lambda: store.delete(0),)),
            threading.Thread(target=run, args=(lambda: store.reorder(len(store) - 1, 0),)),
            threading.Thread(target=run, args=(lambda: store.move(len(store) - 1, UP),)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert len(store) == 50
        assert lengths == sorted(lengths, reverse=True)
        assert lengths[-1] == 50


class TestJsonSlotStorage:

    def test_missing_slot_loads_empty(self, tmp_path):
        assert JsonSlotStorage(str(tmp_path / "none.json")).load() == []

    def test_save_writes_name_duration_records(self, tmp_path):
        path = tmp_path / "slot.json"
        JsonSlotStorage(str(path)).save([Section("Intro", 1), Section("Main", 2.5)])
        assert json.loads(path.read_text(encoding="utf-8")) == [
            {"name": "Intro", "duration": 1},
            {"name": "Main", "duration": 2.5},
        ]

    def test_save_replaces_whole_slot(self, tmp_path):
        storage = JsonSlotStorage(str(tmp_path / "slot.json"))
        storage.save([Section("A", 1), Section("B", 1)])
        storage.save([])
        assert storage.load() == []

    def test_corrupt_slot_loads_empty(self, tmp_path):
        path = tmp_path / "slot.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonSlotStorage(str(path)).load() == []

    def test_non_list_slot_loads_empty(self, tmp_path):
        path = tmp_path / "slot.json"
        path.write_text('{"name": "A"}', encoding="utf-8")
        assert JsonSlotStorage(str(path)).load() == []

    def test_stored_records_not_revalidated(self, tmp_path):
        path = tmp_path / "slot.json"
        path.write_text(json.dumps([
            {"name": "", "duration": 0},
            {"name": "Ok", "duration": 3},
            {"name": "Broken", "duration": "x"},
            "junk",
        ]), encoding="utf-8")
        assert JsonSlotStorage(str(path)).load() == [Section("", 0), Section("Ok", 3)]

    def test_non_finite_stored_durations_skipped(self, tmp_path):
        path = tmp_path / "slot.json"
        path.write_text(
            '[{"name": "A", "duration": NaN}, {"name": "B", "duration": Infinity}, {"name": "C", "duration": 2}]',
            encoding="utf-8",
        )
        assert JsonSlotStorage(str(path)).load() == [Section("C", 2)]

    def test_huge_stored_duration_is_capped(self, tmp_path):
        path = tmp_path / "slot.json"
        path.write_text(json.dumps([{"name": "Long", "duration": 10 ** 400}]), encoding="utf-8")
        (section,) = JsonSlotStorage(str(path)).load()
        assert section.duration_seconds == MAX_DURATION_MINUTES * 60

    def test_persist_observer_writes_after_mutation(self, tmp_path):
        storage = JsonSlotStorage(str(tmp_path / "nested" / "slot.json"))
        store = SectionListStore()
        store.on_change(persist_to(storage))
        store.add("Intro", 1)
        store.add("Main", 2)
        store.delete(0)
        assert storage.load() == [Section("Main", 2)]

    def test_persist_observer_swallows_write_errors(self, tmp_path):
        class BrokenStorage:
            def save(self, sections):
                raise OSError("disk full")

        store = SectionListStore()
        store.on_change(persist_to(BrokenStorage()))
        assert store.add("Intro", 1) is True
        assert len(store) == 1
