"""Tests for the session blob: tombstone merges, typed view and the store adapter."""

from datetime import datetime, timezone

import pytest

from goalmentor.core.session import (
    ConversationSession,
    PendingCompletion,
    build_patch,
    merge_session_patch,
)


class TestMergePatch:
    def test_none_deletes_key(self):
        merged = merge_session_patch({"goalId": "g1", "actionId": "a1"}, {"actionId": None})
        assert merged == {"goalId": "g1"}
        assert "actionId" not in merged

    def test_values_overwrite(self):
        assert merge_session_patch({"stage": "initial"}, {"stage": "guiding"}) == {"stage": "guiding"}

    def test_does_not_mutate_current(self):
        current = {"goalId": "g1"}
        merge_session_patch(current, {"goalId": None})
        assert current == {"goalId": "g1"}


class TestBuildPatch:
    def test_maps_field_names(self):
        slot = PendingCompletion(goal_id="g1", action_id="a1")
        patch = build_patch(goal_id="g1", pending_completion=slot, stage=None)
        assert patch == {
            "goalId": "g1",
            "pendingCompletion": {"goalId": "g1", "actionId": "a1"},
            "stage": None,
        }

    def test_serializes_datetimes(self):
        ts = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert build_patch(focus_since=ts) == {"focusSince": ts.isoformat()}

    def test_unknown_field_raises(self):
        with pytest.raises(KeyError):
            build_patch(colour="blue")


class TestConversationSession:
    def test_empty_blob(self):
        session = ConversationSession.from_dict({})
        assert session.goal_id is None
        assert session.pending_completion is None
        assert session.version == 0
        assert not session.in_progress

    def test_to_dict_omits_unset(self):
        session = ConversationSession(goal_id="g1", action_id="a1")
        assert session.to_dict() == {"goalId": "g1", "actionId": "a1", "version": 0}

    def test_incomplete_pending_slot_is_ignored(self):
        session = ConversationSession.from_dict({"pendingCompletion": {"goalId": "g1"}})
        assert session.pending_completion is None

    def test_pending_matches(self):
        slot = PendingCompletion(goal_id="g1", action_id="a1")
        assert slot.matches("g1", "a1")
        assert not slot.matches("g1", "a2")


class TestSessionStoreAdapter:
    @pytest.mark.asyncio
    async def test_update_bumps_version_and_stamps(self, sessions):
        first = await sessions.update("u", goal_id="g1", action_id="a1")
        second = await sessions.update("u", action_id="a2")
        assert first.version == 1
        assert second.version == 2
        assert second.goal_id == "g1"
        assert second.action_id == "a2"
        assert second.last_updated is not None

    @pytest.mark.asyncio
    async def test_tombstones_reach_the_store(self, sessions, session_store):
        slot = PendingCompletion(goal_id="g1", action_id="a1")
        await sessions.update("u", pending_completion=slot)
        await sessions.update("u", pending_completion=None)
        blob = await session_store.get_session("u")
        assert "pendingCompletion" not in blob
        assert (await sessions.get("u")).pending_completion is None
