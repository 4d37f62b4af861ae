"""Tests for leaderboard construction and shared ranking."""

import pytest

from fairway.data_models.leaderboard import GroupResult, PlayerSlot
from fairway.utils.leaderboard_builder import LeaderboardBuilder
from fairway.utils.ranking import RankingUtility


def group(key, players, pars=None, holes=18):
    return GroupResult(group_key=key, group_name=key.replace("_", " ").title(),
                       players=players, hole_pars=pars or [], hole_count=holes)


class TestCompetitionRanks:
    """Tests for RankingUtility.competition_ranks."""

    def test_ties_share_rank_and_next_value_skips(self):
        ranks = RankingUtility.competition_ranks([70, 71, 71, 73, 73, 73, 80], lambda v: v)
        assert ranks == [1, 2, 2, 4, 4, 4, 7]

    def test_empty_sequence(self):
        assert RankingUtility.competition_ranks([], lambda v: v) == []


class TestScoring:
    """Per-player gross, net, to-par and holes completed."""

    def test_net_and_to_par(self, make_slot):
        slot = make_slot("amy", gross=80, handicap=9)
        board = LeaderboardBuilder.build([group("group_1", [slot], pars=[4] * 18)])

        entry = board[0]
        assert entry.gross_score == 80
        assert entry.net_score == 71
        assert entry.score_to_par == 8
        assert entry.holes_completed == 18
        assert entry.course_handicap == 9

    def test_missing_pars_default_to_four(self):
        slot = PlayerSlot("amy", "Amy", strokes=[3, 5, 4])
        # Par 3 on hole 1 only; the other two holes fall back to par 4
        board = LeaderboardBuilder.build([group("group_1", [slot], pars=[3], holes=3)])
        assert board[0].score_to_par == 12 - 11

    def test_unplayed_holes_are_not_counted(self):
        slot = PlayerSlot("amy", "Amy", strokes=[4, 0, None, 5] + [0] * 14)
        board = LeaderboardBuilder.build([group("group_1", [slot])])
        assert board[0].gross_score == 9
        assert board[0].holes_completed == 2


class TestBuild:
    """Ordering, tie-breaking and rank assignment."""

    def test_sorted_by_net_then_gross(self, make_slot):
        board = LeaderboardBuilder.build([
            group("group_1", [make_slot("amy", 85, 10), make_slot("bob", 78, 3)]),
            group("group_2", [make_slot("cat", 72, 0), make_slot("dan", 90, 20)]),
        ])
        # amy 75, bob 75 (gross 78 beats 85), cat 72, dan 70
        assert [e.player_id for e in board] == ["dan", "cat", "bob", "amy"]
        assert [e.rank for e in board] == [1, 2, 3, 3]

    def test_rank_follows_position_after_tie(self, make_slot):
        board = LeaderboardBuilder.build([group("group_1", [
            make_slot("a", 70), make_slot("b", 72), make_slot("c", 72), make_slot("d", 75),
        ])])
        assert [e.rank for e in board] == [1, 2, 2, 4]

    def test_equal_net_different_gross_still_share_rank(self, make_slot):
        board = LeaderboardBuilder.build([group("group_1", [
            make_slot("a", 80, 8), make_slot("b", 74, 2),
        ])])
        assert [e.player_id for e in board] == ["b", "a"]
        assert [e.rank for e in board] == [1, 1]

    def test_entries_remember_their_group(self, make_slot):
        board = LeaderboardBuilder.build([
            group("group_1", [make_slot("amy", 80)]),
            group("group_2", [make_slot("bob", 79)]),
        ])
        assert {(e.player_id, e.group_key) for e in board} == {("amy", "group_1"), ("bob", "group_2")}

    def test_ghosts_ranked_but_filtered_downstream(self, make_slot):
        board = LeaderboardBuilder.build([group("group_1", [
            make_slot("amy", 80), make_slot("ghost-1", 70, ghost=True),
        ])])
        assert board[0].player_id == "ghost-1"
        assert board[0].rank == 1
        assert [e.player_id for e in LeaderboardBuilder.on_platform(board)] == ["amy"]

    def test_no_groups_gives_empty_board(self):
        assert LeaderboardBuilder.build([]) == []

    @pytest.mark.parametrize("nets", [[71, 70, 70, 69], [80, 80, 80], [68]])
    def test_rank_monotonicity(self, make_slot, nets):
        slots = [make_slot(f"p{i}", gross=net) for i, net in enumerate(nets)]
        board = LeaderboardBuilder.build([group("group_1", slots)])

        assert [e.net_score for e in board] == sorted(nets)
        for position, entry in enumerate(board, start=1):
            if position > 1 and entry.net_score == board[position - 2].net_score:
                assert entry.rank == board[position - 2].rank
            else:
                assert entry.rank == position

    def test_serialize_round_trip_preserves_entries(self, make_slot):
        board = LeaderboardBuilder.build([group("group_1", [make_slot("amy", 80, 4)])])
        assert LeaderboardBuilder.deserialize(LeaderboardBuilder.serialize(board)) == board
