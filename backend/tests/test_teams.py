import random

from tugquiz.services.games.teams import assign_team


def test_auto_fills_smaller_team():
    assert assign_team({'red': 3, 'blue': 1}, 'auto') == 'blue'
    assert assign_team({'red': 0, 'blue': 2}, 'auto') == 'red'


def test_auto_tie_goes_to_red():
    assert assign_team({'red': 2, 'blue': 2}, 'auto') == 'red'
    assert assign_team({'red': 0, 'blue': 0}, 'auto') == 'red'


def test_random_and_manual_pick_both_teams():
    rng = random.Random(1)
    for mode in ('random', 'manual'):
        picks = {assign_team({'red': 10, 'blue': 0}, mode, rng) for _ in range(50)}
        assert picks == {'red', 'blue'}
