"""
Tests for alert generation
"""

import unittest
from datetime import datetime, timedelta, timezone

from services.alerts import (
    AlertPreferences,
    AlertPriority,
    AlertType,
    GameWithPrediction,
    filter_alerts_by_sport,
    format_alert_message,
    generate_alerts,
    get_unread_count,
    group_alerts_by_type,
    time_ago,
)
from services.betting_stats import InjuryEntry, InjuryStatus, LineMovement
from services.predictor import Confidence, GamePrediction
from services.sports import Sport
from services.value_calculator import BetSide, BetType, ValueBet

NOW = datetime(2025, 2, 1, 18, 0, tzinfo=timezone.utc)


def make_prediction(home_prob=60, confidence=Confidence.MEDIUM):
    return GamePrediction(
        home_team="Celtics",
        away_team="Heat",
        predicted_winner="Celtics" if home_prob >= 50 else "Heat",
        win_probability=max(home_prob, 100 - home_prob),
        home_win_probability=home_prob,
        away_win_probability=100 - home_prob,
        confidence=confidence,
        predicted_home_score=112,
        predicted_away_score=106,
        predicted_spread=-6.0,
        predicted_total=218,
    )


def make_bet(edge=4.5, confidence=Confidence.HIGH, side=BetSide.UNDERDOG):
    return ValueBet(
        game_id="g1",
        bet_type=BetType.SPREAD,
        recommendation="Heat +10",
        edge=edge,
        confidence=confidence,
        model_line=-5.5,
        market_line=-10.0,
        explanation="Our model: Celtics -5.5, Market: -10",
        bet_side=side,
        team_to_bet="Heat",
        bet_description="Bet Heat +10 (UNDERDOG)",
    )


def make_game(sport=Sport.NBA, value_bets=(), prediction=None, home_injuries=None, away_injuries=None,
              line_movement=None):
    return GameWithPrediction(
        game_id="g1",
        home_team="Celtics",
        away_team="Heat",
        game_time=NOW + timedelta(hours=2),
        sport=sport,
        prediction=prediction or make_prediction(),
        value_bets=value_bets,
        home_injuries=home_injuries,
        away_injuries=away_injuries,
        line_movement=line_movement,
    )


def out(n):
    return [InjuryEntry(f"Player {i}", "G", InjuryStatus.OUT) for i in range(n)]


class TestValueBetAlerts(unittest.TestCase):

    def test_value_bet_alert(self):
        alerts = generate_alerts([make_game(value_bets=[make_bet(edge=4.5)])], now=NOW)

        self.assertEqual(len(alerts), 1)
        alert = alerts[0]
        self.assertIs(alert.type, AlertType.VALUE_BET)
        self.assertIs(alert.priority, AlertPriority.MEDIUM)
        self.assertEqual(alert.title, "🐕 UNDERDOG Value: Heat")
        self.assertEqual(alert.message, "Bet Heat +10 (UNDERDOG)")
        self.assertIs(alert.sport, Sport.NBA)
        self.assertTrue(alert.id.startswith("vb-g1-spread-"))

    def test_priority_by_edge(self):
        game = make_game(value_bets=[make_bet(edge=6.0), make_bet(edge=3.2)])
        alerts = generate_alerts([game], now=NOW)
        self.assertEqual([a.priority for a in alerts], [AlertPriority.HIGH, AlertPriority.LOW])

    def test_min_edge_filter(self):
        alerts = generate_alerts([make_game(value_bets=[make_bet(edge=2.5)])], now=NOW)
        self.assertEqual(alerts, [])

    def test_min_confidence_filter(self):
        game = make_game(value_bets=[make_bet(edge=5.0, confidence=Confidence.LOW)])
        self.assertEqual(generate_alerts([game], now=NOW), [])

        prefs = AlertPreferences(min_confidence=Confidence.LOW)
        self.assertEqual(len(generate_alerts([game], prefs, now=NOW)), 1)

    def test_disabled(self):
        prefs = AlertPreferences(enable_value_bet_alerts=False)
        self.assertEqual(generate_alerts([make_game(value_bets=[make_bet()])], prefs, now=NOW), [])


class TestHighConfidenceAlerts(unittest.TestCase):

    def test_high_confidence_pick(self):
        game = make_game(prediction=make_prediction(home_prob=78, confidence=Confidence.HIGH))
        alerts = generate_alerts([game], now=NOW)

        self.assertEqual(len(alerts), 1)
        self.assertIs(alerts[0].type, AlertType.HIGH_CONFIDENCE)
        self.assertIs(alerts[0].priority, AlertPriority.HIGH)
        self.assertEqual(alerts[0].title, "High Confidence Pick: Celtics")
        self.assertEqual(alerts[0].message, "78% win probability | Heat @ Celtics")

    def test_medium_priority_below_75(self):
        game = make_game(prediction=make_prediction(home_prob=30, confidence=Confidence.HIGH))
        alerts = generate_alerts([game], now=NOW)
        self.assertIs(alerts[0].priority, AlertPriority.MEDIUM)
        self.assertEqual(alerts[0].title, "High Confidence Pick: Heat")

    def test_needs_65_percent(self):
        game = make_game(prediction=make_prediction(home_prob=62, confidence=Confidence.HIGH))
        self.assertEqual(generate_alerts([game], now=NOW), [])

    def test_needs_high_confidence(self):
        game = make_game(prediction=make_prediction(home_prob=80, confidence=Confidence.MEDIUM))
        self.assertEqual(generate_alerts([game], now=NOW), [])


class TestInjuryAlerts(unittest.TestCase):

    def test_two_out_is_medium(self):
        alerts = generate_alerts([make_game(home_injuries=out(2))], now=NOW)
        self.assertEqual(len(alerts), 1)
        self.assertIs(alerts[0].type, AlertType.INJURY)
        self.assertIs(alerts[0].priority, AlertPriority.MEDIUM)
        self.assertEqual(alerts[0].title, "Injury Alert: Celtics")
        self.assertEqual(alerts[0].message, "2 players OUT: Player 0, Player 1")

    def test_three_out_is_high(self):
        alerts = generate_alerts([make_game(away_injuries=out(4))], now=NOW)
        self.assertIs(alerts[0].priority, AlertPriority.HIGH)
        self.assertEqual(alerts[0].message, "4 players OUT: Player 0, Player 1, Player 2")

    def test_questionable_does_not_count(self):
        injuries = out(1) + [InjuryEntry("Q", "F", InjuryStatus.QUESTIONABLE)]
        self.assertEqual(generate_alerts([make_game(home_injuries=injuries)], now=NOW), [])


def moved(opening, current, direction):
    return LineMovement(
        opening_spread=opening,
        current_spread=current,
        spread_movement=opening - current,
        movement_direction=direction,
    )


class TestLineMovementAlerts(unittest.TestCase):

    def setUp(self):
        self.prefs = AlertPreferences(enable_line_movement_alerts=True)

    def test_two_point_move_is_high(self):
        game = make_game(line_movement=moved(-3.0, -5.0, "sharps"))
        alerts = generate_alerts([game], self.prefs, now=NOW)

        self.assertEqual(len(alerts), 1)
        self.assertIs(alerts[0].type, AlertType.LINE_MOVEMENT)
        self.assertIs(alerts[0].priority, AlertPriority.HIGH)
        self.assertEqual(alerts[0].title, "Line Move: Celtics -3 → -5")
        self.assertEqual(alerts[0].message, "Sharp money, 2 pts | Heat @ Celtics")
        self.assertTrue(alerts[0].id.startswith("lm-g1-"))

    def test_smaller_move_is_medium(self):
        game = make_game(line_movement=moved(-4.5, -3.0, "public"))
        alerts = generate_alerts([game], self.prefs, now=NOW)

        self.assertIs(alerts[0].priority, AlertPriority.MEDIUM)
        self.assertEqual(alerts[0].message, "Public money, 1.5 pts | Heat @ Celtics")

    def test_neutral_or_missing_is_ignored(self):
        games = [make_game(line_movement=moved(-3.0, -3.5, "neutral")), make_game()]
        self.assertEqual(generate_alerts(games, self.prefs, now=NOW), [])

    def test_off_by_default(self):
        game = make_game(line_movement=moved(-3.0, -5.0, "sharps"))
        self.assertEqual(generate_alerts([game], now=NOW), [])


class TestAlertHelpers(unittest.TestCase):

    def setUp(self):
        nba = make_game(value_bets=[make_bet(edge=3.5)], home_injuries=out(3))
        nfl = make_game(sport=Sport.NFL, prediction=make_prediction(home_prob=70, confidence=Confidence.HIGH))
        self.alerts = generate_alerts([nba, nfl], now=NOW)

    def test_sorted_by_priority(self):
        priorities = [a.priority for a in self.alerts]
        self.assertEqual(priorities, [AlertPriority.HIGH, AlertPriority.MEDIUM, AlertPriority.LOW])

    def test_sport_preferences(self):
        prefs = AlertPreferences(sports=(Sport.NFL,))
        games = [make_game(value_bets=[make_bet()]), make_game(sport=Sport.NFL, value_bets=[make_bet()])]
        alerts = generate_alerts(games, prefs, now=NOW)
        self.assertEqual([a.sport for a in alerts], [Sport.NFL])

    def test_filter_by_sport(self):
        self.assertEqual(len(filter_alerts_by_sport(self.alerts, Sport.NFL)), 1)
        self.assertEqual(len(filter_alerts_by_sport(self.alerts, None)), 3)

    def test_group_by_type(self):
        grouped = group_alerts_by_type(self.alerts)
        self.assertEqual(set(grouped), {AlertType.VALUE_BET, AlertType.INJURY, AlertType.HIGH_CONFIDENCE})

    def test_unread_count(self):
        self.assertEqual(get_unread_count(self.alerts), 3)

    def test_time_ago(self):
        self.assertEqual(time_ago(NOW, NOW + timedelta(seconds=30)), "Just now")
        self.assertEqual(time_ago(NOW, NOW + timedelta(minutes=12)), "12m ago")
        self.assertEqual(time_ago(NOW, NOW + timedelta(hours=5)), "5h ago")
        self.assertEqual(time_ago(NOW, NOW + timedelta(days=2)), "2d ago")

    def test_format_message(self):
        alert = self.alerts[0]
        text = format_alert_message(alert, NOW + timedelta(minutes=3))
        self.assertTrue(text.startswith("🔴 "))
        self.assertTrue(text.endswith("3m ago"))


if __name__ == "__main__":
    unittest.main()
