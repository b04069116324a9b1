"""
TrueSkill parameters for table-football doubles.

mu / sigma: the prior every player starts from (25 +- 25/3).

beta: the performance spread. A skill gap of beta gives the stronger side
  roughly a 76% chance of winning. Kicker has more luck in it than chess,
  so beta is larger than the textbook sigma/2.

tau: added to every sigma before a match so ratings keep moving over a
  long career instead of freezing.

draw_probability: kicker matches are played to a winner, so 0. With a zero
  draw margin a drawn result cannot be rated and is skipped.

The conservative skill mu - 3*sigma is the single published rating.
"""

TRUESKILL_DEFAULTS = {
    "mu": 25.0,
    "sigma": 25.0 / 3.0,
    "beta": 5.5,
    "tau": 0.12,
    "draw_probability": 0.0,
}

# Number of sigmas subtracted for the conservative skill estimate
CONSERVATIVE_SIGMAS = 3.0
