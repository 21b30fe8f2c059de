"""Unit tests for the event merge engine."""

import pytest

from src.domain.activity import EventOrigin, ParentType
from src.services.merge_service import event_key, merge_events, sort_timeline


@pytest.mark.unit
class TestEventKey:
    def test_key_is_parent_and_day(self, make_event):
        event = make_event("2024-01-10", ref="r1")

        assert event_key(event) == (ParentType.ROUTINE, "r1", None, "2024-01-10")

    def test_events_without_ref_are_keyed_by_id(self, make_event):
        first = make_event("2024-01-10", ref=None)
        second = make_event("2024-01-10", ref=None)

        assert event_key(first) != event_key(second)

    def test_ref_shaped_like_an_id_does_not_collide_with_refless_event(self, make_event):
        refless = make_event("2024-01-10", ref=None, event_id="s9")
        lookalike = make_event("2024-01-10", ref="id:s9", event_id="s10")

        assert event_key(refless) != event_key(lookalike)


@pytest.mark.unit
class TestMergeEvents:
    def test_server_event_wins_over_local_with_same_key(self, make_event):
        server = make_event("2024-01-10", ref="r1", origin=EventOrigin.SERVER, time="08:00:00")
        local = make_event("2024-01-10", ref="r1", origin=EventOrigin.LOCAL, time="09:00:00")

        timeline = merge_events([server], [local])

        assert timeline == [server]

    def test_same_item_on_different_days_is_kept(self, make_event):
        monday = make_event("2024-01-08", ref="r1")
        tuesday = make_event("2024-01-09", ref="r1", origin=EventOrigin.LOCAL)

        timeline = merge_events([monday], [tuesday])

        assert {event.day_key for event in timeline} == {"2024-01-08", "2024-01-09"}

    def test_goal_and_routine_with_same_ref_do_not_collide(self, make_event):
        goal = make_event("2024-01-10", ref="x1", parent_type=ParentType.GOAL)
        routine = make_event("2024-01-10", ref="x1", parent_type=ParentType.ROUTINE)

        assert len(merge_events([goal, routine], [])) == 2

    def test_duplicates_within_server_list_keep_first(self, make_event):
        first = make_event("2024-01-10", ref="r1", time="07:00:00")
        second = make_event("2024-01-10", ref="r1", time="18:00:00")

        assert merge_events([first, second], []) == [first]

    def test_local_only_events_are_included(self, make_event):
        local = make_event("2024-01-10", ref="r2", origin=EventOrigin.LOCAL)

        assert merge_events([], [local]) == [local]

    def test_at_most_one_entry_per_key(self, make_event):
        server = [make_event("2024-01-10", ref=ref) for ref in ("r1", "r2", "r1")]
        local = [make_event("2024-01-10", ref=ref, origin=EventOrigin.LOCAL) for ref in ("r2", "r3", "r3")]

        timeline = merge_events(server, local)

        keys = [event_key(event) for event in timeline]
        assert len(keys) == len(set(keys)) == 3

    def test_merge_is_idempotent(self, make_event):
        server = [make_event("2024-01-10", ref="r1"), make_event("2024-01-09", ref="r2")]
        local = [
            make_event("2024-01-10", ref="r1", origin=EventOrigin.LOCAL),
            make_event("2024-01-08", ref="r3", origin=EventOrigin.LOCAL),
        ]

        once = merge_events(server, local)
        twice = merge_events(server, once)

        assert twice == once

    def test_timeline_is_newest_first(self, make_event):
        older = make_event("2024-01-08", ref="r1")
        newest = make_event("2024-01-10", ref="r2", origin=EventOrigin.LOCAL)
        middle = make_event("2024-01-09", ref="r3")

        timeline = merge_events([older, middle], [newest])

        assert timeline == [newest, middle, older]

    def test_event_without_timestamp_sorts_last(self, make_event):
        undated = make_event("2024-01-10", ref="r1", completed_at=None)
        dated = make_event("2024-01-01", ref="r2")

        assert merge_events([undated, dated], []) == [dated, undated]

    def test_empty_inputs(self):
        assert merge_events([], []) == []


@pytest.mark.unit
class TestSortTimeline:
    def test_ties_keep_input_order(self, make_event):
        first = make_event("2024-01-10", ref="r1", time="08:00:00")
        second = make_event("2024-01-10", ref="r2", time="08:00:00")

        assert sort_timeline([first, second]) == [first, second]
        assert sort_timeline([second, first]) == [second, first]

    def test_mixed_offsets_compare_as_instants(self, make_event):
        utc = make_event("2024-01-10", ref="r1", completed_at="2024-01-10T10:00:00Z")
        plus_two = make_event("2024-01-10", ref="r2", completed_at="2024-01-10T11:00:00+02:00")

        assert sort_timeline([plus_two, utc]) == [utc, plus_two]
