from __future__ import annotations

from keyboard_heroes.api.models import CharacterSet, SessionResult
from keyboard_heroes.persistence import LocalLeaderboard


def _result(name: str, score: int) -> SessionResult:
    return SessionResult(
        player_name=name,
        score=score,
        letters_typed=score // 20,
        letters_missed=0,
        game_duration=1.0,
        character_set=CharacterSet(),
    )


def test_keeps_top_ten_by_score() -> None:
    board = LocalLeaderboard()
    for i in range(15):
        board.add(_result(f"p{i}", i * 20))

    top = board.top()
    assert len(top) == 10
    assert [r.score for r in top] == [i * 20 for i in range(14, 4, -1)]


def test_limit_and_tie_order() -> None:
    board = LocalLeaderboard(size=3)
    board.add(_result("first", 100))
    board.add(_result("second", 100))
    board.add(_result("low", 10))

    assert [r.player_name for r in board.top()] == ["first", "second", "low"]
    assert [r.player_name for r in board.top(limit=1)] == ["first"]
