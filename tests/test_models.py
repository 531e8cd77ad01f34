"""Tests for session, turn and participant models."""

import pytest

from roundtable.models import ContextSnapshot, Participant, Session, Turn


def _finalized(turn_id: str, participant_id: str, round_number: int) -> Turn:
    turn = Turn(id=turn_id, participant_id=participant_id, round=round_number)
    turn.finalize("text", "text", 4)
    return turn


class TestTurn:
    """Tests for Turn."""

    def test_append_then_finalize(self):
        turn = Turn(id="t1", participant_id="a", round=1)
        turn.append("[STANCE: 4] ")
        turn.append("Fine.")
        turn.finalize("Fine.", "Fine.", 4)

        assert turn.raw_text == "[STANCE: 4] Fine."
        assert turn.finalized
        assert turn.stance == 4
        assert turn.display_text == "Fine."

    def test_finalized_turn_is_frozen(self):
        turn = _finalized("t1", "a", 1)
        with pytest.raises(RuntimeError):
            turn.append("more")
        with pytest.raises(RuntimeError):
            turn.finalize("x", "x", 1)

    def test_finalize_without_stance(self):
        turn = Turn(id="t1", participant_id="a", round=1)
        turn.finalize("x", "x", None)
        assert turn.stance is None
        assert turn.finalized


class TestParticipant:
    """Tests for Participant serialization."""

    def test_dict_round_trip(self):
        participant = Participant(id="a", name="Ann", role="Judge", voice_id="nova", color="blue", emoji="⚖️")
        assert Participant.from_dict(participant.to_dict()) == participant

    def test_voice_is_omitted_when_unset(self):
        assert "voice_id" not in Participant(id="a", name="Ann").to_dict()


class TestSession:
    """Tests for Session history handling."""

    @pytest.fixture
    def session(self, participants):
        return Session(question="Q?", participants=participants, total_rounds=2)

    def test_snapshot_contains_only_earlier_rounds(self, session):
        session.append_round(1, [_finalized("t1", "alice", 1), _finalized("t2", "bob", 1)])

        assert session.snapshot(1).prior_turns == ()
        snapshot = session.snapshot(2)
        assert [t.id for t in snapshot.prior_turns] == ["t1", "t2"]
        assert snapshot.last_turn.id == "t2"

    def test_empty_snapshot_has_no_last_turn(self):
        assert ContextSnapshot(round=1).last_turn is None

    def test_start_round_sets_current_round(self, session):
        session.start_round(2)
        assert session.current_round == 2

    @pytest.mark.parametrize("round_number", [0, 3])
    def test_start_round_rejects_round_out_of_range(self, session, round_number):
        with pytest.raises(ValueError):
            session.start_round(round_number)
        assert session.current_round == 0

    def test_rejects_reused_turn_id(self, session):
        session.append_round(1, [_finalized("t1", "alice", 1)])
        with pytest.raises(ValueError, match="already in the session"):
            session.append_round(2, [_finalized("t1", "bob", 2)])
        assert len(session.turns) == 1

    def test_rejects_reused_turn_id_within_round(self, session):
        with pytest.raises(ValueError, match="already in the session"):
            session.append_round(1, [_finalized("t1", "alice", 1), _finalized("t1", "bob", 1)])
        assert session.turns == []

    @pytest.mark.parametrize("round_number", [0, 3])
    def test_rejects_round_out_of_range(self, session, round_number):
        with pytest.raises(ValueError):
            session.append_round(round_number, [])

    def test_rejects_unfinalized_turn(self, session):
        with pytest.raises(ValueError, match="not finalized"):
            session.append_round(1, [Turn(id="t1", participant_id="alice", round=1)])

    def test_rejects_turn_from_other_round(self, session):
        with pytest.raises(ValueError):
            session.append_round(1, [_finalized("t1", "alice", 2)])

    def test_rejects_second_turn_for_participant_in_round(self, session):
        session.append_round(1, [_finalized("t1", "alice", 1)])
        with pytest.raises(ValueError, match="already has a turn"):
            session.append_round(1, [_finalized("t2", "alice", 1)])
        assert len(session.turns) == 1

    def test_participant_lookup(self, session):
        assert session.participant_name("bob") == "Bob"
        assert session.participant_name("nobody") == "Unknown"
