"""
Unit tests for the two-team TrueSkill update.

Reference values for the textbook environment (mu=25, sigma=25/3,
beta=sigma/2, tau=sigma/100, 10% draws) come from the TrueSkill paper's
1 vs 1 example; the kicker environment values follow from the same
closed form with beta=5.5, tau=0.12 and no draw margin.
"""

import math

import pytest

from kickerrank.config import Settings
from kickerrank.rating.constants import TRUESKILL_DEFAULTS
from kickerrank.rating.trueskill import (
    Rating,
    TrueSkill,
    cdf,
    pdf,
    ppf,
    v_draw,
    v_win,
    w_draw,
    w_win,
)


class TestGaussianHelpers:
    """Tests for pdf / cdf / ppf."""

    def test_standard_values(self):
        assert pdf(0) == pytest.approx(1 / math.sqrt(2 * math.pi))
        assert cdf(0) == pytest.approx(0.5)
        assert ppf(0.5) == pytest.approx(0.0)

    def test_ppf_inverts_cdf(self):
        for x in (-2.0, -0.3, 0.7, 1.5):
            assert ppf(cdf(x)) == pytest.approx(x, abs=1e-6)

    def test_v_win_underflow_falls_back_to_asymptote(self):
        # cdf(-50) underflows to 0
        assert v_win(-50.0, 0.0) == pytest.approx(50.0)

    def test_w_win_in_unit_interval(self):
        for t in (-3.0, 0.0, 2.0):
            assert 0 < w_win(t, 0.1) < 1

    def test_draw_corrections_are_symmetric(self):
        assert v_draw(0.0, 0.2) == pytest.approx(0.0)
        assert v_draw(0.5, 0.2) == pytest.approx(-v_draw(-0.5, 0.2))
        assert w_draw(0.5, 0.2) == pytest.approx(w_draw(-0.5, 0.2))

    def test_w_draw_without_margin_is_undefined(self):
        with pytest.raises(FloatingPointError):
            w_draw(0.3, 0.0)


class TestTextbookEnvironment:
    """The paper's default parameters, 1 vs 1."""

    @pytest.fixture
    def env(self):
        return TrueSkill()

    def test_defaults(self, env):
        assert env.beta == pytest.approx(25 / 6)
        assert env.tau == pytest.approx(25 / 300)
        assert env.draw_probability == pytest.approx(0.10)

    def test_win(self, env):
        r = env.create_rating()
        (winner,), (loser,) = env.rate_two_teams([r], [r], ranks=(1, 2))

        assert winner.mu == pytest.approx(29.396, abs=1e-3)
        assert winner.sigma == pytest.approx(7.171, abs=1e-3)
        assert loser.mu == pytest.approx(20.604, abs=1e-3)
        assert loser.sigma == pytest.approx(7.171, abs=1e-3)

    def test_draw(self, env):
        r = env.create_rating()
        (a,), (b,) = env.rate_two_teams([r], [r], ranks=(1, 1))

        assert a.mu == pytest.approx(25.000, abs=1e-3)
        assert b.mu == pytest.approx(25.000, abs=1e-3)
        assert a.sigma == pytest.approx(6.458, abs=1e-3)

    def test_team2_win_is_mirror_of_team1_win(self, env):
        r = env.create_rating()
        (a1,), (b1,) = env.rate_two_teams([r], [r], ranks=(1, 2))
        (a2,), (b2,) = env.rate_two_teams([r], [r], ranks=(2, 1))

        assert a2.mu == pytest.approx(b1.mu)
        assert b2.mu == pytest.approx(a1.mu)


class TestKickerEnvironment:
    """beta=5.5, tau=0.12, no draws."""

    @pytest.fixture
    def env(self):
        return TrueSkill.from_settings()

    def test_from_settings_without_config_uses_defaults(self, env):
        assert env.mu == TRUESKILL_DEFAULTS["mu"]
        assert env.beta == pytest.approx(5.5)
        assert env.tau == pytest.approx(0.12)
        assert env.draw_probability == 0.0
        assert env.draw_margin(4) == pytest.approx(0.0)

    def test_from_settings_reads_config(self):
        config = Settings(_env_file=None, trueskill_beta=4.0, trueskill_tau=0.2)
        env = TrueSkill.from_settings(config)
        assert env.beta == 4.0
        assert env.tau == 0.2

    def test_first_win(self, env):
        r = env.create_rating()
        (winner,), (loser,) = env.rate_two_teams([r], [r])

        assert winner.mu == pytest.approx(28.9245, abs=1e-2)
        assert loser.mu == pytest.approx(21.0755, abs=1e-2)
        assert winner.sigma == pytest.approx(7.3523, abs=1e-2)
        assert winner.mu + loser.mu == pytest.approx(50.0)

    def test_doubles_win_moves_all_four(self, env):
        r = env.create_rating()
        (a, b), (c, d) = env.rate_two_teams([r, r], [r, r])

        assert a.mu == pytest.approx(b.mu)
        assert c.mu == pytest.approx(d.mu)
        assert a.mu > 25 > c.mu
        # Equal priors: what the winners gain the losers lose
        assert a.mu + b.mu + c.mu + d.mu == pytest.approx(100.0)
        assert all(x.sigma < r.sigma for x in (a, b, c, d))

    def test_upset_moves_more_than_expected_win(self, env):
        strong = Rating(mu=32.0, sigma=3.0)
        weak = Rating(mu=20.0, sigma=3.0)

        (_,), (weak_after_loss,) = env.rate_two_teams([strong], [weak], ranks=(1, 2))
        (_,), (weak_after_win,) = env.rate_two_teams([strong], [weak], ranks=(2, 1))

        expected_loss = weak.mu - weak_after_loss.mu
        upset_gain = weak_after_win.mu - weak.mu
        assert upset_gain > expected_loss > 0

    def test_draw_without_margin_raises(self, env):
        r = env.create_rating()
        with pytest.raises(FloatingPointError):
            env.rate_two_teams([r, r], [r, r], ranks=(1, 1))

    def test_empty_team_rejected(self, env):
        with pytest.raises(ValueError):
            env.rate_two_teams([], [env.create_rating()])
        with pytest.raises(ValueError):
            env.win_probability([env.create_rating()], [])

    def test_win_probability_even_match(self, env):
        r = env.create_rating()
        assert env.win_probability([r, r], [r, r]) == pytest.approx((0.5, 0.5))

    def test_win_probability_favours_stronger_team(self, env):
        strong = Rating(mu=32.0, sigma=3.0)
        weak = Rating(mu=20.0, sigma=3.0)

        first, second = env.win_probability([strong], [weak])

        # cdf(12 / sqrt(2 * 5.5^2 + 2 * 3^2))
        assert first == pytest.approx(0.9122, abs=1e-3)
        assert first + second == pytest.approx(1.0)

    def test_win_probability_is_symmetric(self, env):
        team1 = [Rating(mu=27.0, sigma=4.0), Rating(mu=22.0, sigma=6.0)]
        team2 = [Rating(mu=25.0, sigma=2.0), Rating(mu=26.5, sigma=5.0)]

        forward = env.win_probability(team1, team2)
        backward = env.win_probability(team2, team1)

        assert forward == pytest.approx(backward[::-1])
        assert sum(forward) == pytest.approx(1.0)


class TestRating:

    def test_conservative_skill(self):
        rating = Rating(mu=25.0, sigma=25.0 / 3.0)
        assert rating.conservative == pytest.approx(0.0)
        assert rating.skill == rating.conservative

    def test_to_dict(self):
        assert Rating(mu=30.0, sigma=2.0).to_dict() == {"mu": 30.0, "sigma": 2.0, "skill": 24.0}

    def test_invalid_draw_probability(self):
        with pytest.raises(ValueError):
            TrueSkill(draw_probability=1.0)
