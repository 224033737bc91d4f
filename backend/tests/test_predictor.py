"""
Tests for power ratings and game predictions
"""

import math
import unittest
from datetime import datetime, timedelta, timezone

from services.betting_stats import (
    InjuryEntry,
    InjuryStatus,
    RealTotalsRecord,
    RecentGameResult,
    RestSnapshot,
    SimulatedTotalsRecord,
)
from services.predictor import (
    Confidence,
    GamePredictor,
    HeadToHead,
    InvalidSnapshotError,
    ModelWeights,
    TeamSnapshot,
    TotalBasis,
    compute_power_rating,
    normal_cdf,
    predict_game,
)
from services.sports import Sport

START = datetime(2025, 1, 31, 0, 30, tzinfo=timezone.utc)


def make_games(scores):
    return tuple(
        RecentGameResult(date=START - timedelta(days=2 * i), team_score=t, opponent_score=o, is_home=i % 2 == 0)
        for i, (t, o) in enumerate(scores)
    )


# W W W L L: +0.9 streak, +0.6 form, +0.3 efficiency
FORM_GAMES = make_games([(110, 100)] * 3 + [(100, 110)] * 2)

# L W L W L: no streak, -0.6 form, -0.3 efficiency
CHOPPY_GAMES = make_games([(100, 105), (105, 100), (100, 105), (105, 100), (100, 105)])


def injuries(out=0, questionable=0):
    return tuple(
        [InjuryEntry(f"Player {i}", "G", InjuryStatus.OUT) for i in range(out)]
        + [InjuryEntry(f"Sub {i}", "F", InjuryStatus.QUESTIONABLE) for i in range(questionable)]
    )


def team(team_id="1", name="Home", diff=0.0, ppg=110.0, oppg=110.0, **kwargs):
    return TeamSnapshot(
        id=team_id,
        name=name,
        points_for_per_game=ppg,
        points_against_per_game=oppg,
        point_differential=diff,
        **kwargs
    )


class TestPowerRating(unittest.TestCase):
    """Test the power rating steps"""

    def setUp(self):
        self.predictor = GamePredictor()

    def test_base_rating_only(self):
        """With no games, injuries or rest info, the rating is the scaled differential"""
        self.assertEqual(compute_power_rating(team(diff=4), Sport.NBA), 106.0)
        self.assertEqual(compute_power_rating(team(diff=3), Sport.NFL), 106.0)
        self.assertEqual(compute_power_rating(team(diff=-2), "nba"), 97.0)

    def test_recent_form_adjustments(self):
        # net rating 9 (x0.3), form 1.0 (+3.0), five game win streak (+1.5)
        games = make_games([(110, 100)] * 5)
        self.assertEqual(self.predictor.compute_power_rating(team(recent_games=games), Sport.NBA), 107.2)

    def test_efficiency_needs_five_games(self):
        # Four straight wins: form +3.0, streak +1.2, no efficiency term
        games = make_games([(110, 100)] * 4)
        self.assertEqual(self.predictor.compute_power_rating(team(recent_games=games), Sport.NBA), 104.2)

    def test_mixed_form(self):
        self.assertEqual(self.predictor.compute_power_rating(team(recent_games=FORM_GAMES), Sport.NBA), 101.8)
        self.assertEqual(self.predictor.compute_power_rating(team(recent_games=CHOPPY_GAMES), Sport.NBA), 99.1)

    def test_injury_penalty(self):
        self.assertEqual(self.predictor.calculate_injury_impact(injuries(out=1)), 2.0)
        self.assertEqual(self.predictor.calculate_injury_impact(injuries(out=3, questionable=1)), 4.75)
        self.assertEqual(self.predictor.calculate_injury_impact(()), 0)
        self.assertEqual(compute_power_rating(team(injuries=injuries(out=2)), Sport.NBA), 96.0)

    def test_probable_players_are_ignored(self):
        entries = (InjuryEntry("A", "C", InjuryStatus.PROBABLE), InjuryEntry("B", "C", InjuryStatus.UNKNOWN))
        self.assertEqual(self.predictor.calculate_injury_impact(entries), 0)

    def test_rest_adjustment(self):
        self.assertEqual(compute_power_rating(team(rest=RestSnapshot.for_days(1)), Sport.NBA), 97.5)
        self.assertEqual(compute_power_rating(team(rest=RestSnapshot.for_days(2)), Sport.NBA), 100.0)
        self.assertEqual(compute_power_rating(team(rest=RestSnapshot.for_days(4)), Sport.NBA), 101.0)

    def test_custom_weights(self):
        predictor = GamePredictor(ModelWeights(back_to_back_penalty=4.0))
        self.assertEqual(predictor.compute_power_rating(team(rest=RestSnapshot.for_days(0)), Sport.NBA), 96.0)


class TestPredictGame(unittest.TestCase):
    """Test full game predictions"""

    def test_home_favorite_medium_confidence(self):
        """108 vs 100 power plus home court: 7 point home favorite"""
        home = team("1", "Celtics", diff=16 / 3, recent_games=FORM_GAMES)
        away = team("2", "Heat", diff=0, recent_games=FORM_GAMES)

        p = predict_game(home, away, Sport.NBA)

        self.assertAlmostEqual(p.power_differential, 8.0, places=6)
        self.assertAlmostEqual(p.predicted_margin, 7.0, places=6)
        self.assertEqual(p.predicted_spread, -7.0)
        self.assertIs(p.confidence, Confidence.MEDIUM)
        self.assertEqual(p.predicted_winner, "Celtics")
        self.assertEqual(p.home_win_probability, 74)
        self.assertEqual(p.win_probability, 74)
        self.assertEqual(p.predicted_total, 220)
        self.assertEqual((p.predicted_home_score, p.predicted_away_score), (114, 107))
        self.assertEqual([f.name for f in p.factors], ["Power Rating", "Home Court"])

    def test_back_to_back_home_near_pick_em(self):
        """Equal ratings, home on a back-to-back, away rested"""
        home = team("1", "Celtics", diff=5 / 3, rest=RestSnapshot.for_days(1))
        away = team("2", "Heat", diff=-2 / 3, rest=RestSnapshot.for_days(4))

        p = predict_game(home, away, Sport.NBA)

        self.assertEqual(p.home_power, 100.0)
        self.assertEqual(p.away_power, 100.0)
        self.assertAlmostEqual(p.predicted_margin, 0.5)
        self.assertEqual(p.predicted_spread, -0.5)
        self.assertIs(p.confidence, Confidence.LOW)
        names = [f.name for f in p.factors]
        self.assertIn("Home B2B", names)
        self.assertNotIn("Rest Advantage", names)

    def test_both_back_to_back(self):
        home = team("1", "A", rest=RestSnapshot.for_days(1))
        away = team("2", "B", rest=RestSnapshot.for_days(0))
        p = predict_game(home, away, Sport.NBA)
        names = [f.name for f in p.factors]
        self.assertIn("Home B2B", names)
        self.assertIn("Away B2B", names)
        self.assertAlmostEqual(p.predicted_margin, 3.0)

    def test_rest_advantage_factor(self):
        home = team("1", "A", rest=RestSnapshot.for_days(4))
        away = team("2", "B", rest=RestSnapshot.for_days(2))
        p = predict_game(home, away, Sport.NBA)

        rest = next(f for f in p.factors if f.name == "Rest Advantage")
        self.assertEqual(rest.impact, 1.0)
        self.assertEqual(rest.favored_team, "home")
        self.assertEqual(rest.description, "Home: 4d vs Away: 2d rest")
        # +0.5 from the home rating (+1.0 / 2), +3 home court, +1 rest
        self.assertAlmostEqual(p.predicted_margin, 4.5)

    def test_head_to_head(self):
        home, away = team("1", "A"), team("2", "B")

        p = predict_game(home, away, Sport.NBA, HeadToHead(away_wins=1, home_wins=3))
        h2h = next(f for f in p.factors if f.name == "Head-to-Head")
        self.assertAlmostEqual(h2h.impact, 0.6)
        self.assertEqual(h2h.description, "H2H: 3-1 (home-away)")

        p = predict_game(home, away, Sport.NBA, HeadToHead(away_wins=2, home_wins=1))
        self.assertNotIn("Head-to-Head", [f.name for f in p.factors])

        p = predict_game(home, away, Sport.NBA, HeadToHead())
        self.assertNotIn("Head-to-Head", [f.name for f in p.factors])

    def test_injury_factor_has_no_extra_impact(self):
        home = team("1", "A", injuries=injuries(out=2))
        away = team("2", "B")
        p = predict_game(home, away, Sport.NBA)

        factor = next(f for f in p.factors if f.name == "Injuries")
        self.assertEqual(factor.impact, 0.0)
        self.assertEqual(factor.favored_team, "away")
        self.assertEqual(factor.description, "Home: 2 out, Away: 0 out")
        # (96 - 100) / 2 + 3
        self.assertAlmostEqual(p.predicted_margin, 1.0)

    def test_pick_em_has_no_negative_zero(self):
        home = team("1", "A", diff=-4)
        away = team("2", "B")
        p = predict_game(home, away, Sport.NBA)

        self.assertEqual(p.predicted_spread, 0.0)
        self.assertEqual(math.copysign(1, p.predicted_spread), 1.0)
        self.assertTrue(p.is_pick_em)
        self.assertEqual(p.home_win_probability, 50)
        self.assertEqual(p.predicted_winner, "A")

    def test_away_favorite(self):
        home = team("1", "A", diff=-8)
        away = team("2", "B", diff=4)
        p = predict_game(home, away, Sport.NBA)

        self.assertEqual(p.predicted_winner, "B")
        self.assertGreater(p.predicted_spread, 0)
        self.assertEqual(p.win_probability, p.away_win_probability)
        self.assertGreater(p.away_win_probability, 50)

    def test_nfl_uses_football_constants(self):
        home = team("1", "Chiefs", diff=3, ppg=0, oppg=0)
        away = team("2", "Bills", diff=0, ppg=0, oppg=0)
        p = predict_game(home, away, "nfl")

        self.assertEqual(p.home_power, 106.0)
        self.assertEqual(p.predicted_total, 45)
        self.assertEqual(p.home_win_probability, round(normal_cdf(6.0 / 13) * 100))


class TestConfidence(unittest.TestCase):

    def test_high_confidence(self):
        home = team("1", "A", diff=10, recent_games=CHOPPY_GAMES)
        away = team("2", "B", recent_games=CHOPPY_GAMES)
        p = predict_game(home, away, Sport.NBA)
        self.assertAlmostEqual(p.power_differential, 15.0)
        self.assertIs(p.confidence, Confidence.HIGH)

    def test_injuries_cap_high_at_medium(self):
        home = team("1", "A", diff=10, recent_games=CHOPPY_GAMES, injuries=injuries(out=3))
        away = team("2", "B", recent_games=CHOPPY_GAMES)
        p = predict_game(home, away, Sport.NBA)
        self.assertGreaterEqual(abs(p.predicted_margin), 8)
        self.assertIs(p.confidence, Confidence.MEDIUM)

    def test_injuries_demote_medium_to_low(self):
        home = team("1", "A", diff=0, recent_games=CHOPPY_GAMES)
        away = team("2", "B", recent_games=CHOPPY_GAMES, injuries=injuries(out=3))
        p = predict_game(home, away, Sport.NBA)
        self.assertIs(p.confidence, Confidence.LOW)

    def test_small_sample_is_low(self):
        home = team("1", "A", diff=10, recent_games=CHOPPY_GAMES)
        away = team("2", "B", recent_games=CHOPPY_GAMES[:4])
        p = predict_game(home, away, Sport.NBA)
        self.assertIs(p.confidence, Confidence.LOW)

    def test_never_high_without_power_gap(self):
        # Big margin from situational factors alone
        home = team("1", "A", diff=2, recent_games=CHOPPY_GAMES)
        away = team("2", "B", recent_games=CHOPPY_GAMES, rest=RestSnapshot.for_days(1))
        p = predict_game(home, away, Sport.NBA, HeadToHead(away_wins=0, home_wins=6))
        self.assertGreaterEqual(abs(p.predicted_margin), 8)
        self.assertLess(abs(p.power_differential), 8)
        self.assertIsNot(p.confidence, Confidence.HIGH)


class TestTotals(unittest.TestCase):

    def test_season_average_total(self):
        p = predict_game(team("1", "A", ppg=115, oppg=105), team("2", "B", ppg=110, oppg=112), Sport.NBA)
        self.assertEqual(p.predicted_total, 221)
        self.assertIs(p.total_basis, TotalBasis.SEASON_AVERAGES)

    def test_totals_records_preferred(self):
        home = team("1", "A", totals_record=RealTotalsRecord(5, 5, 0, 50, 230))
        away = team("2", "B", totals_record=SimulatedTotalsRecord(5, 5, 0, 50, 224))
        p = predict_game(home, away, Sport.NBA)
        self.assertEqual(p.predicted_total, 227)
        self.assertIs(p.total_basis, TotalBasis.SIMULATED_TOTALS)

    def test_real_totals_basis(self):
        home = team("1", "A", totals_record=RealTotalsRecord(5, 5, 0, 50, 230))
        away = team("2", "B", totals_record=RealTotalsRecord(5, 5, 0, 50, 230))
        self.assertIs(predict_game(home, away, Sport.NBA).total_basis, TotalBasis.REAL_TOTALS)

    def test_one_totals_record_is_ignored(self):
        home = team("1", "A", totals_record=RealTotalsRecord(5, 5, 0, 50, 250))
        p = predict_game(home, team("2", "B"), Sport.NBA)
        self.assertEqual(p.predicted_total, 220)

    def test_total_is_clamped(self):
        p = predict_game(team("1", "A", ppg=140, oppg=140), team("2", "B", ppg=140, oppg=140), Sport.NBA)
        self.assertEqual(p.predicted_total, 260)
        p = predict_game(team("1", "A", ppg=10, oppg=10), team("2", "B", ppg=10, oppg=10), Sport.NFL)
        self.assertEqual(p.predicted_total, 35)


class TestPredictionProperties(unittest.TestCase):
    """Invariants that hold for any well-formed pair of snapshots"""

    def _snapshots(self):
        for sport in (Sport.NBA, Sport.NFL):
            for diff in (-9.5, -3, 0, 2.2, 7.7, 12):
                for games in ((), CHOPPY_GAMES, FORM_GAMES):
                    for rest in (None, RestSnapshot.for_days(1), RestSnapshot.for_days(5)):
                        yield sport, team("1", "A", diff=diff, recent_games=games, rest=rest), team("2", "B", diff=-diff / 2)

    def test_probabilities_sum_to_100(self):
        for sport, home, away in self._snapshots():
            p = predict_game(home, away, sport)
            self.assertEqual(p.home_win_probability + p.away_win_probability, 100)
            self.assertTrue(0 <= p.home_win_probability <= 100)

    def test_scores_match_spread(self):
        for sport, home, away in self._snapshots():
            p = predict_game(home, away, sport)
            score_margin = p.predicted_home_score - p.predicted_away_score
            # Each score is rounded on its own, so the margin can sit a full point off the spread
            self.assertLessEqual(abs(score_margin + p.predicted_spread), 1.0)

    def test_spread_is_half_point(self):
        for sport, home, away in self._snapshots():
            p = predict_game(home, away, sport)
            self.assertEqual(p.predicted_spread * 2, int(p.predicted_spread * 2))

    def test_power_rating_without_extras(self):
        for diff in (-7, -2.4, 0, 3, 11):
            self.assertAlmostEqual(compute_power_rating(team(diff=diff), Sport.NBA), 100 + diff * 1.5, places=6)
            self.assertAlmostEqual(compute_power_rating(team(diff=diff), Sport.NFL), 100 + diff * 2.0, places=6)


class TestValidation(unittest.TestCase):

    def test_empty_name(self):
        with self.assertRaises(InvalidSnapshotError):
            predict_game(team("1", " "), team("2", "B"), Sport.NBA)

    def test_empty_id(self):
        with self.assertRaises(InvalidSnapshotError):
            predict_game(team("1", "A"), team("", "B"), Sport.NBA)

    def test_negative_points(self):
        with self.assertRaises(InvalidSnapshotError):
            predict_game(team("1", "A", ppg=-1), team("2", "B"), Sport.NBA)

    def test_nan_differential(self):
        with self.assertRaises(InvalidSnapshotError):
            predict_game(team("1", "A", diff=float("nan")), team("2", "B"), Sport.NBA)

    def test_bad_recent_score(self):
        games = make_games([(100, -3)])
        with self.assertRaises(InvalidSnapshotError):
            predict_game(team("1", "A", recent_games=games), team("2", "B"), Sport.NBA)

    def test_negative_rest(self):
        with self.assertRaises(InvalidSnapshotError):
            predict_game(team("1", "A", rest=RestSnapshot(days_of_rest=-1)), team("2", "B"), Sport.NBA)

    def test_power_rating_nan_differential(self):
        with self.assertRaises(InvalidSnapshotError):
            compute_power_rating(team("1", "A", diff=float("nan")), Sport.NBA)

    def test_power_rating_bad_recent_score(self):
        games = make_games([(100, 95)] * 4 + [(-50, 100)])
        with self.assertRaises(InvalidSnapshotError):
            GamePredictor().compute_power_rating(team("1", "A", recent_games=games), "nba")

    def test_power_rating_blank_name(self):
        with self.assertRaises(InvalidSnapshotError):
            compute_power_rating(team("1", ""), Sport.NFL)

    def test_error_is_a_value_error(self):
        self.assertTrue(issubclass(InvalidSnapshotError, ValueError))


class TestNormalCdf(unittest.TestCase):

    def test_matches_erf(self):
        for z in (-3, -1.5, -0.2, 0, 0.4, 1, 1.96, 3.5):
            exact = 0.5 * (1 + math.erf(z / math.sqrt(2)))
            self.assertAlmostEqual(normal_cdf(z), exact, delta=1.5e-7)

    def test_symmetry(self):
        self.assertAlmostEqual(normal_cdf(0.7) + normal_cdf(-0.7), 1.0, places=9)


if __name__ == "__main__":
    unittest.main()
