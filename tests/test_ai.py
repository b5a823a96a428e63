"""Tests for the minimax engine and the difficulty-aware move selector."""

import random
from collections import Counter

import pytest

from tictactoe.ai import (
    MEDIUM_RANDOM_RATE,
    Difficulty,
    MoveSelector,
    SearchEngine,
    select_move,
)
from tictactoe.game import Board, Outcome, Player, evaluate, legal_moves


class PinnedRandom:
    """Random source whose ``random()`` is pinned; ``choice`` still varies."""

    def __init__(self, value, seed=0):
        self.value = value
        self._rng = random.Random(seed)

    def random(self):
        return self.value

    def choice(self, seq):
        return self._rng.choice(seq)


def test_terminal_scores_depend_on_depth():
    engine = SearchEngine()
    x_wins = Board.from_string("XXX|OO.|...")
    assert engine.score(x_wins, Player.O) == 10
    assert SearchEngine().score(x_wins, Player.O, depth=3) == 7

    o_wins = Board.from_string("OOO|XX.|X..")
    assert SearchEngine().score(o_wins, Player.X) == -10
    assert SearchEngine().score(o_wins, Player.X, depth=2) == -8


def test_draw_scores_zero():
    assert SearchEngine().score(Board.from_string("XOX|OXO|OXO"), Player.X) == 0


def test_empty_board_is_a_draw_under_perfect_play():
    engine = SearchEngine()
    assert engine.score(Board.empty(), Player.X) == 0


def test_full_search_visits_only_a_few_thousand_positions():
    engine = SearchEngine()
    engine.score(Board.empty(), Player.X)
    assert engine.nodes == engine.cache_size
    assert engine.nodes < 6000


def test_forced_win_is_scored_by_distance():
    # X to move completes the top row right away.
    board = Board.from_string("XX.|OO.|...")
    assert SearchEngine().score(board, Player.X) == 9
    # O to move on the same position wins on its own first move instead.
    assert SearchEngine().score(board, Player.O) == -9


@pytest.mark.parametrize(
    "text",
    [
        "X..|.O.|...",
        "XO.|.X.|...",
        "XX.|OO.|...",
        ".X.|...|..O",
        "X.O|...|O.X",
    ],
)
def test_cache_is_transparent(text):
    board = Board.from_string(text)
    for player in (Player.X, Player.O):
        cached = SearchEngine().score(board, player, 1)
        uncached = SearchEngine(use_cache=False).score(board, player, 1)
        assert cached == uncached


def test_uncached_engine_keeps_no_entries():
    engine = SearchEngine(use_cache=False)
    engine.score(Board.from_string("XO.|.X.|..."), Player.O)
    assert engine.cache_size == 0
    assert engine.nodes > 0


def test_clear_empties_cache():
    engine = SearchEngine()
    engine.score(Board.from_string("X..|...|..."), Player.O)
    assert engine.cache_size > 0
    engine.clear()
    assert engine.cache_size == 0
    assert engine.nodes == 0


def test_engines_do_not_share_caches():
    first, second = MoveSelector(), MoveSelector()
    first.select_move(Board.empty(), Player.X, Difficulty.HARD)
    assert first.engine.cache_size > 0
    assert second.engine.cache_size == 0


def test_hard_breaks_ties_by_lowest_index_on_empty_board():
    # Every opening draws, so the first move scanned keeps the tie.
    selector = MoveSelector()
    assert selector.select_move(Board.empty(), Player.X, Difficulty.HARD) == 0


def test_hard_takes_immediate_win():
    board = Board.from_string("XX.|OO.|...")
    assert select_move(board, Player.X, Difficulty.HARD) == 2


def test_hard_prefers_own_win_over_blocking():
    board = Board.from_string("XX.|OO.|...")
    assert select_move(board, Player.O, Difficulty.HARD) == 5


def test_hard_blocks_immediate_threat():
    board = Board.from_string("XX.|.O.|...")
    assert select_move(board, Player.O, Difficulty.HARD) == 2


def test_hard_blocks_threat_on_later_cell():
    board = Board.from_string("XO.|.X.|...")
    assert select_move(board, Player.O, Difficulty.HARD) == 8


def test_hard_self_play_ends_in_draw():
    selector = MoveSelector(rng=random.Random(0))
    board = Board.empty()
    while not evaluate(board).is_terminal:
        player = board.current_player
        move = selector.select_move(board, player, Difficulty.HARD)
        assert move in legal_moves(board)
        board = board.place(move, player)
    assert evaluate(board).outcome is Outcome.DRAW


def test_hard_self_play_with_separate_engines_ends_in_draw():
    selectors = {Player.X: MoveSelector(), Player.O: MoveSelector()}
    board = Board.empty()
    while not evaluate(board).is_terminal:
        player = board.current_player
        board = board.place(selectors[player].select_move(board, player, "hard"), player)
    assert evaluate(board).outcome is Outcome.DRAW


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_selected_move_is_always_legal(difficulty):
    rng = random.Random(1234)
    for _ in range(20):
        selector = MoveSelector(rng=rng)
        board = Board.empty()
        while not evaluate(board).is_terminal:
            player = board.current_player
            move = selector.select_move(board, player, difficulty)
            assert move in legal_moves(board)
            board = board.place(move, player)


def test_full_board_has_no_move():
    board = Board.from_string("XOX|OXO|OXO")
    assert select_move(board, Player.X, Difficulty.HARD) is None
    assert select_move(board, Player.X, Difficulty.EASY) is None


def test_unknown_player_is_rejected():
    with pytest.raises(ValueError):
        select_move(Board.empty(), "Z", Difficulty.EASY)


def test_easy_is_uniform_over_legal_moves():
    board = Board.from_string("X.O|.X.|O..")
    moves = legal_moves(board)
    selector = MoveSelector(rng=random.Random(42))
    trials = 5000
    counts = Counter(selector.select_move(board, Player.O, Difficulty.EASY) for _ in range(trials))

    assert set(counts) == set(moves)
    expected = 1 / len(moves)
    tolerance = 4 * (expected * (1 - expected) / trials) ** 0.5
    for move in moves:
        assert abs(counts[move] / trials - expected) < tolerance


def test_seeded_selectors_repeat_the_same_moves():
    board = Board.from_string("X..|...|...")
    first = MoveSelector(rng=random.Random(99))
    second = MoveSelector(rng=random.Random(99))
    picks_a = [first.select_move(board, Player.O, Difficulty.MEDIUM) for _ in range(50)]
    picks_b = [second.select_move(board, Player.O, Difficulty.MEDIUM) for _ in range(50)]
    assert picks_a == picks_b


def test_medium_plays_optimally_above_random_rate():
    board = Board.from_string("XX.|.O.|...")
    selector = MoveSelector(rng=PinnedRandom(MEDIUM_RANDOM_RATE))
    assert all(selector.select_move(board, Player.O, Difficulty.MEDIUM) == 2 for _ in range(10))


def test_medium_plays_randomly_below_random_rate():
    board = Board.from_string("XX.|.O.|...")
    selector = MoveSelector(rng=PinnedRandom(0.0, seed=5))
    picks = {selector.select_move(board, Player.O, Difficulty.MEDIUM) for _ in range(200)}
    assert picks == set(legal_moves(board))


def test_medium_mixes_random_and_optimal_moves():
    board = Board.from_string("XX.|.O.|...")
    selector = MoveSelector(rng=random.Random(2024))
    trials = 3000
    blocks = sum(
        selector.select_move(board, Player.O, Difficulty.MEDIUM) == 2 for _ in range(trials)
    )
    random_share = MEDIUM_RANDOM_RATE / len(legal_moves(board))
    expected = (1 - MEDIUM_RANDOM_RATE) + random_share
    assert abs(blocks / trials - expected) < 0.05
