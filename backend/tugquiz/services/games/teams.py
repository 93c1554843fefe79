import random

from tugquiz.models import TEAMS


def assign_team(team_counts, mode, rng=random):
    """Pick a team for a newly joining participant.

    ``auto`` fills the smaller team and breaks ties towards red; ``random``
    and ``manual`` pick uniformly. Counts include inactive members, who keep
    their seat and team for a later rejoin.
    """
    if mode == 'auto':
        red = team_counts.get('red', 0)
        blue = team_counts.get('blue', 0)
        return 'red' if red <= blue else 'blue'
    return rng.choice(TEAMS)
