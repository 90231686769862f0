from __future__ import annotations

from hexboard.board.history import HistoryManager
from hexboard.board.model import BoardData


def _board_with(count: int) -> BoardData:
    board = BoardData()
    for index in range(count):
        board.add_hexagon(index * 10, 0, hex_id=f"h{index}")
    return board


def test_undo_restores_exact_pre_commit_state() -> None:
    board = _board_with(1)
    history = HistoryManager(board)
    before = board.to_json()

    board.add_hexagon(50, 50, hex_id="extra")
    board.connect("h0", "extra")
    history.commit(board)

    restored = history.undo()
    assert restored is not None
    assert restored.to_json() == before
    assert history.can_redo

    redone = history.redo()
    assert redone is not None
    assert redone.get("extra") is not None
    assert redone.require("h0").connections == ["extra"]


def test_entries_are_independent_of_live_board() -> None:
    board = _board_with(1)
    history = HistoryManager(board)
    board.require("h0").x = 99
    history.commit(board)
    board.require("h0").x = 500  # mutate after commit without recording

    restored = history.undo()
    assert restored is not None
    assert restored.require("h0").x == 0
    assert history.current.require("h0").x == 0


def test_new_commit_after_undo_clears_redo() -> None:
    board = _board_with(1)
    history = HistoryManager(board)
    board.add_hexagon(1, 1)
    history.commit(board)
    history.undo()
    assert history.can_redo

    other = _board_with(3)
    history.commit(other)
    assert not history.can_redo
    assert history.redo() is None


def test_undo_and_redo_on_empty_stacks_are_noops() -> None:
    history = HistoryManager()
    assert history.undo() is None
    assert history.redo() is None
    assert not history.can_undo


def test_capacity_drops_oldest_entries() -> None:
    history = HistoryManager(_board_with(0), max_depth=20)
    for count in range(1, 26):
        history.commit(_board_with(count))
    assert len(history.stack) == 20

    undone = 0
    last = None
    while history.can_undo:
        last = history.undo()
        undone += 1
    assert undone == 20
    # five oldest snapshots (0..4 hexagons) fell off the bottom
    assert last is not None
    assert len(last.hexagons) == 5
    assert len(history.redo_stack) == 20


def test_adopt_replaces_baseline_without_entry() -> None:
    history = HistoryManager(_board_with(1))
    remote = _board_with(2)
    history.adopt(remote)
    assert not history.can_undo
    assert history.is_current(remote)
