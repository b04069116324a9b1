"""
TrueSkill update for a match between two teams.

With exactly two teams the TrueSkill factor graph has no loops, so the
message passing collapses into a closed form (Herbrich, Minka, Graepel,
"TrueSkill: A Bayesian Skill Rating System", 2006):

    sigma_hat^2 = sigma^2 + tau^2                       (per player)
    c^2         = sum(sigma_hat^2) + n * beta^2         (n = players in the match)
    t           = (sum(mu_winner) - sum(mu_loser)) / c
    eps         = draw_margin / c
    draw_margin = Phi^-1((p + 1) / 2) * sqrt(n) * beta

    winner:  mu' = mu + sigma_hat^2 / c * v(t, eps)
    loser:   mu' = mu - sigma_hat^2 / c * v(t, eps)
    both:    sigma'^2 = sigma_hat^2 * (1 - sigma_hat^2 / c^2 * w(t, eps))

v and w are the mean and variance corrections of a truncated Gaussian,
with a win version and a draw version (see v_win, w_win, v_draw, w_draw).
Numerically impossible updates raise FloatingPointError; the rating
pipeline skips such matches.

Usage:
    env = TrueSkill(beta=5.5, tau=0.12, draw_probability=0.0)
    (a, b), (c, d) = env.rate_two_teams([r1, r2], [r3, r4], ranks=(1, 2))
"""

import math
from dataclasses import dataclass
from statistics import NormalDist
from typing import Optional, Sequence

from kickerrank.config import Settings
from kickerrank.rating.constants import CONSERVATIVE_SIGMAS, TRUESKILL_DEFAULTS

_SQRT2 = math.sqrt(2.0)
_SQRT2PI = math.sqrt(2.0 * math.pi)
_STANDARD_NORMAL = NormalDist()


@dataclass(frozen=True)
class Rating:
    """A player's skill belief: mean mu, uncertainty sigma."""
    mu: float
    sigma: float

    @property
    def conservative(self) -> float:
        """mu - 3 sigma: the skill we are ~99% sure the player has at least."""
        return self.mu - CONSERVATIVE_SIGMAS * self.sigma

    @property
    def skill(self) -> float:
        return self.conservative

    def to_dict(self) -> dict[str, float]:
        return {"mu": self.mu, "sigma": self.sigma, "skill": self.conservative}

    def __repr__(self) -> str:
        return f"<Rating(mu={self.mu:.3f}, sigma={self.sigma:.3f})>"


# =============================================================================
# Gaussian helpers
# =============================================================================

def pdf(x: float) -> float:
    """Standard normal density."""
    return math.exp(-(x * x) / 2.0) / _SQRT2PI


def cdf(x: float) -> float:
    """Standard normal cumulative distribution."""
    return 0.5 * math.erfc(-x / _SQRT2)


def ppf(p: float) -> float:
    """Inverse of cdf (quantile function)."""
    return _STANDARD_NORMAL.inv_cdf(p)


# =============================================================================
# Truncated Gaussian corrections
# =============================================================================

def v_win(t: float, eps: float) -> float:
    """
    Mean shift for a win: pdf(t - eps) / cdf(t - eps).

    For very negative t the ratio underflows to 0/0; its asymptote -x is
    returned instead.
    """
    x = t - eps
    denom = cdf(x)
    return pdf(x) / denom if denom else -x


def w_win(t: float, eps: float) -> float:
    """Variance factor for a win: v * (v + t - eps), always in (0, 1)."""
    x = t - eps
    v = v_win(t, eps)
    w = v * (v + x)
    if 0 < w < 1:
        return w
    raise FloatingPointError(f"w_win out of range for t={t}, eps={eps}")


def v_draw(t: float, eps: float) -> float:
    """
    Mean shift for a draw.

    With a = eps - |t| and b = -eps - |t|:
        (pdf(b) - pdf(a)) / (cdf(a) - cdf(b)), signed like t.
    """
    abs_t = abs(t)
    a = eps - abs_t
    b = -eps - abs_t
    denom = cdf(a) - cdf(b)
    numer = pdf(b) - pdf(a)
    value = numer / denom if denom else a
    return -value if t < 0 else value


def w_draw(t: float, eps: float) -> float:
    """
    Variance factor for a draw:
        v^2 + (a * pdf(a) - b * pdf(b)) / (cdf(a) - cdf(b))

    A zero draw margin leaves no probability mass for a draw, so the
    denominator is 0 and the update is undefined.
    """
    abs_t = abs(t)
    a = eps - abs_t
    b = -eps - abs_t
    denom = cdf(a) - cdf(b)
    if not denom:
        raise FloatingPointError(f"w_draw undefined for t={t}, eps={eps}")
    v = v_draw(abs_t, eps)
    return v * v + (a * pdf(a) - b * pdf(b)) / denom


# =============================================================================
# Environment
# =============================================================================

class TrueSkill:
    """
    Rating environment.

    Defaults follow the TrueSkill paper (beta = sigma/2,
    tau = sigma/100, 10% draws); use from_settings() for the kicker
    parameters.
    """

    def __init__(
        self,
        mu: float = 25.0,
        sigma: float = 25.0 / 3.0,
        beta: Optional[float] = None,
        tau: Optional[float] = None,
        draw_probability: float = 0.10,
    ):
        if not 0.0 <= draw_probability < 1.0:
            raise ValueError("draw_probability must be in [0, 1)")
        self.mu = mu
        self.sigma = sigma
        self.beta = sigma / 2.0 if beta is None else beta
        self.tau = sigma / 100.0 if tau is None else tau
        self.draw_probability = draw_probability

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "TrueSkill":
        if config is None:
            return cls(**TRUESKILL_DEFAULTS)
        return cls(
            mu=config.trueskill_mu,
            sigma=config.trueskill_sigma,
            beta=config.trueskill_beta,
            tau=config.trueskill_tau,
            draw_probability=config.trueskill_draw_probability,
        )

    def create_rating(self, mu: Optional[float] = None, sigma: Optional[float] = None) -> Rating:
        return Rating(
            mu=self.mu if mu is None else mu,
            sigma=self.sigma if sigma is None else sigma,
        )

    def draw_margin(self, size: int) -> float:
        """Performance difference treated as a draw, for `size` players in total."""
        return ppf((self.draw_probability + 1.0) / 2.0) * math.sqrt(size) * self.beta

    def win_probability(
        self,
        team1: Sequence[Rating],
        team2: Sequence[Rating],
    ) -> tuple[float, float]:
        """
        Chance of each team winning, ignoring draws.

            P(team1) = cdf((sum(mu1) - sum(mu2)) / sqrt(n * beta^2 + sum(sigma^2)))

        with n the number of players on both teams. The two values sum to 1.

        Raises:
            ValueError: a team is empty
        """
        if not team1 or not team2:
            raise ValueError("both teams need at least one player")
        players = list(team1) + list(team2)
        delta = sum(r.mu for r in team1) - sum(r.mu for r in team2)
        spread = math.sqrt(len(players) * self.beta ** 2 + sum(r.sigma ** 2 for r in players))
        first = cdf(delta / spread)
        return first, 1.0 - first

    def rate_two_teams(
        self,
        team1: Sequence[Rating],
        team2: Sequence[Rating],
        ranks: Sequence[int] = (1, 2),
    ) -> tuple[list[Rating], list[Rating]]:
        """
        Update both teams after one match.

        Args:
            team1: Ratings of team 1's players
            team2: Ratings of team 2's players
            ranks: Finishing ranks, lower is better; equal ranks mean a draw

        Returns:
            New ratings for team 1 and team 2, in input order

        Raises:
            ValueError: a team is empty or ranks are malformed
            FloatingPointError: the update is numerically undefined
        """
        if not team1 or not team2:
            raise ValueError("both teams need at least one player")
        if len(ranks) != 2:
            raise ValueError("ranks must hold exactly two values")

        if ranks[1] < ranks[0]:
            new2, new1 = self._rate(team2, team1, draw=False)
            return new1, new2
        return self._rate(team1, team2, draw=ranks[0] == ranks[1])

    def _rate(
        self,
        first: Sequence[Rating],
        second: Sequence[Rating],
        draw: bool,
    ) -> tuple[list[Rating], list[Rating]]:
        """`first` is the winner (or team 1 of a draw)."""
        tau_sq = self.tau ** 2
        first_var = [r.sigma ** 2 + tau_sq for r in first]
        second_var = [r.sigma ** 2 + tau_sq for r in second]

        size = len(first) + len(second)
        c_sq = sum(first_var) + sum(second_var) + size * self.beta ** 2
        c = math.sqrt(c_sq)

        t = (sum(r.mu for r in first) - sum(r.mu for r in second)) / c
        eps = self.draw_margin(size) / c

        if draw:
            v = v_draw(t, eps)
            w = w_draw(t, eps)
        else:
            v = v_win(t, eps)
            w = w_win(t, eps)

        def update(rating: Rating, var: float, sign: float) -> Rating:
            mu = rating.mu + sign * (var / c) * v
            new_var = var * (1.0 - (var / c_sq) * w)
            if new_var <= 0 or math.isnan(mu):
                raise FloatingPointError("rating update produced a non-positive variance")
            return Rating(mu=mu, sigma=math.sqrt(new_var))

        return (
            [update(r, var, +1.0) for r, var in zip(first, first_var)],
            [update(r, var, -1.0) for r, var in zip(second, second_var)],
        )
