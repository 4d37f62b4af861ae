"""Tests for scoring strategies and the standings calculator."""

import pytest

from fairway.data_models.standings import RosterEntry
from fairway.utils.pipeline_exceptions import InvalidScoringModeError
from fairway.utils.scoring_strategies import (
    BestOfStrategy, CumulativeStrategy, PointsStrategy, ScoringStrategyFactory, points_from_positions
)
from fairway.utils.standings import StandingsCalculator

ROSTER = [RosterEntry("amy", "Amy"), RosterEntry("bob", "Bob"), RosterEntry("cat", "Cat"), RosterEntry("dan", "Dan")]


def by_id(standings):
    return {s.player_id: s for s in standings}


class TestScoringStrategyFactory:

    @pytest.mark.parametrize("mode,cls", [
        ("cumulative", CumulativeStrategy), ("best_of", BestOfStrategy), ("points", PointsStrategy),
        ("BEST_OF", BestOfStrategy),
    ])
    def test_create_strategy(self, mode, cls):
        assert isinstance(ScoringStrategyFactory.create_strategy(mode), cls)

    def test_unknown_mode_raises(self):
        with pytest.raises(InvalidScoringModeError) as exc:
            ScoringStrategyFactory.create_strategy("stableford")
        assert exc.value.scoring_mode == "stableford"

    def test_available_strategies(self):
        assert ScoringStrategyFactory.get_available_strategies() == ["cumulative", "best_of", "points"]

    def test_totals(self):
        assert CumulativeStrategy().calculate_total([70, 68]) == 138
        assert BestOfStrategy().calculate_total([70, 68, 75]) == 68
        assert PointsStrategy().calculate_total([100, 60]) == 160

    def test_points_sort_descending(self):
        strategy = PointsStrategy()
        assert sorted([60, 160, 100], key=strategy.sort_key) == [160, 100, 60]


class TestPointsFromPositions:

    def test_ties_share_points_and_overflow_earns_nothing(self):
        points = points_from_positions({"amy": 1, "bob": 2, "cat": 2, "dan": 4}, [10, 6, 4])
        assert points == {"amy": 10, "bob": 6, "cat": 6, "dan": 0}


class TestStandingsCalculator:

    def test_cumulative_mid_series(self):
        rounds = [{"amy": 70, "bob": 72}, {"bob": 71}, {"amy": 68, "bob": 70}]
        standings = StandingsCalculator.calculate(ROSTER, rounds, "cumulative", round_count=3)
        amy = by_id(standings)["amy"]

        assert amy.round_scores == [70, None, 68]
        assert amy.total == 138
        assert amy.rounds_played == 2
        assert amy.rank == 1
        assert by_id(standings)["bob"].total == 213
        assert by_id(standings)["bob"].rank == 2

    def test_unplayed_players_sort_last_in_roster_order(self):
        rounds = [{"dan": 74, "bob": 71}]
        standings = StandingsCalculator.calculate(ROSTER, rounds, "cumulative", round_count=3)

        assert [s.player_id for s in standings] == ["bob", "dan", "amy", "cat"]
        assert [s.rank for s in standings] == [1, 2, None, None]
        assert by_id(standings)["amy"].total is None
        assert by_id(standings)["amy"].round_scores == [None, None, None]

    def test_best_of_keeps_lowest_round(self):
        rounds = [{"amy": 75, "bob": 70}, {"amy": 68, "bob": 72}]
        standings = StandingsCalculator.calculate(ROSTER, rounds, "best_of")
        assert [(s.player_id, s.total) for s in standings[:2]] == [("amy", 68), ("bob", 70)]

    def test_points_mode_highest_first(self):
        rounds = [{"amy": 60, "bob": 100}, {"amy": 100, "bob": 75}]
        standings = StandingsCalculator.calculate(ROSTER, rounds, "points")
        assert [(s.player_id, s.total, s.rank) for s in standings[:2]] == [("bob", 175, 1), ("amy", 160, 2)]

    def test_ties_share_rank(self):
        rounds = [{"amy": 70, "bob": 70, "cat": 72}]
        standings = StandingsCalculator.calculate(ROSTER, rounds, "cumulative")
        assert [(s.player_id, s.rank) for s in standings[:3]] == [("amy", 1), ("bob", 1), ("cat", 3)]

    def test_scorer_missing_from_roster_is_appended(self):
        standings = StandingsCalculator.calculate(ROSTER[:1], [{"amy": 72, "zed": 70}], "cumulative")
        assert [s.player_id for s in standings] == ["zed", "amy"]

    def test_rebuild_is_pure(self):
        rounds = [{"amy": 70}, {"amy": 71}]
        first = StandingsCalculator.calculate(ROSTER, rounds, "cumulative", 2)
        second = StandingsCalculator.calculate(ROSTER, rounds, "cumulative", 2)
        assert first == second
