"""Tests for the position snapshot differ."""

from ladderbot.core.models import Position, PositionClosed
from ladderbot.execution.position_differ import apply_snapshot, diff_positions
from ladderbot.state.bot_state import BotState


def pos(trade_id: str, entry: float = 50000.0, leverage: float = 10.0) -> Position:
    return Position(
        trade_id=trade_id,
        market_id="15",
        is_long=True,
        entry_price=entry,
        size=0.01,
        leverage=leverage,
    )


class TestDiff:
    def test_disappeared_id_is_closed(self):
        a, b = pos("A", entry=1.0), pos("B")
        closed = diff_positions({"A": a, "B": b}, [b])
        assert closed == [PositionClosed(position=a)]

    def test_first_snapshot_closes_nothing(self):
        assert diff_positions({}, [pos("A"), pos("B")]) == []

    def test_empty_snapshot_closes_everything(self):
        a, b = pos("A"), pos("B")
        closed = diff_positions({"A": a, "B": b}, [])
        assert [c.position.trade_id for c in closed] == ["A", "B"]

    def test_new_ids_not_reported(self):
        a = pos("A")
        assert diff_positions({"A": a}, [a, pos("C")]) == []

    def test_closure_carries_last_known_record(self):
        old = pos("A", entry=48000.0, leverage=5.0)
        (event,) = diff_positions({"A": old}, [])
        assert event.position.entry_price == 48000.0
        assert event.position.leverage == 5.0


class TestApplySnapshot:
    def test_replaces_map_wholesale(self):
        state = BotState(address="0xuser", start_ts=1000)
        apply_snapshot(state, [pos("A"), pos("B")])
        apply_snapshot(state, [pos("C")])
        assert list(state.positions) == ["C"]

    def test_updated_record_replaces_previous(self):
        state = BotState(address="0xuser", start_ts=1000)
        apply_snapshot(state, [pos("A", entry=1.0)])
        apply_snapshot(state, [pos("A", entry=2.0)])
        (closed,) = apply_snapshot(state, [])
        assert closed.position.entry_price == 2.0

    def test_reconnect_reset_rebaselines(self):
        state = BotState(address="0xuser", start_ts=1000)
        apply_snapshot(state, [pos("A")])
        state.reset_for_reconnect()
        assert apply_snapshot(state, [pos("B")]) == []
