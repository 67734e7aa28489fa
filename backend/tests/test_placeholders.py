from datetime import datetime

import pytest

from matchplan.errors import ConfigurationError, UnresolvedTieError
from matchplan.utils.placeholders import (
    GroupTable,
    PlayoffResult,
    build_binding_table,
    decide_outcome,
    group_placeholder,
    parse_placeholder,
)
from matchplan.utils.standings import Standing
from matchplan.utils.tournament_config import TournamentSettings

SETTINGS = TournamentSettings(start_at=datetime(2026, 6, 13, 9, 0), number_of_fields=2, has_groups=True)


def _table(label, team_ids, complete=True, tied=()):
    standings = []
    for rank, tid in enumerate(team_ids, start=1):
        s = Standing(team_id=tid, group_label=label, rank=rank)
        if tid in tied:
            s.tie_unresolved = True
            s.tied_team_ids = list(tied)
        standings.append(s)
    return GroupTable(label=label, standings=standings, complete=complete)


def test_placeholder_names():
    assert group_placeholder("A", 1) == "group-a-1st"
    assert group_placeholder("b", 2) == "group-b-2nd"
    assert group_placeholder("C", 3) == "group-c-3rd"
    assert group_placeholder("D", 4) == "group-d-4th"


def test_parse_placeholder():
    group = parse_placeholder("group-a-2nd")
    assert (group.kind, group.group_key, group.position) == ("group", "a", 2)
    match = parse_placeholder("semi2-loser")
    assert (match.kind, match.bracket_key, match.outcome) == ("match", "semi2", "loser")
    assert parse_placeholder("bestSecond").kind == "bestSecond"
    with pytest.raises(ConfigurationError):
        parse_placeholder("final-winner")


def test_decide_outcome():
    assert decide_outcome(PlayoffResult("semi1", 1, 2, True, 2, 1)) == (1, 2)
    assert decide_outcome(PlayoffResult("semi1", 1, 2, True, 0, 3)) == (2, 1)
    assert decide_outcome(PlayoffResult("semi1", 1, 2, True, 1, 1, 4, 5)) == (2, 1)
    assert decide_outcome(PlayoffResult("semi1", 1, 2, True, 1, 1)) is None
    assert decide_outcome(PlayoffResult("semi1", 1, 2, False)) is None


def test_group_positions_bind_only_when_group_complete():
    groups = {"a": _table("A", [10, 11, 12]), "b": _table("B", [20, 21, 22], complete=False)}
    table = build_binding_table(["group-a-1st", "group-b-1st", "group-a-3rd"], groups, {}, SETTINGS)

    assert table.get("group-a-1st") == 10
    assert table.get("group-a-3rd") == 12
    assert table.get("group-b-1st") is None
    assert table.ties == []


def test_tied_position_is_reported_not_bound():
    groups = {"a": _table("A", [10, 11, 12], tied=(10, 11))}
    table = build_binding_table(["group-a-1st", "group-a-3rd"], groups, {}, SETTINGS)

    assert table.get("group-a-1st") is None
    assert table.get("group-a-3rd") == 12
    assert len(table.ties) == 1
    assert table.ties[0].team_ids == [10, 11]
    with pytest.raises(UnresolvedTieError) as exc:
        table.raise_for_ties()
    assert exc.value.ties[0].placeholder == "group-a-1st"


def test_match_outcomes_bind_winner_and_loser():
    results = {
        "semi1": PlayoffResult("semi1", 1, 2, True, 3, 0),
        "semi2": PlayoffResult("semi2", 3, 4, False),
    }
    table = build_binding_table(
        ["semi1-winner", "semi1-loser", "semi2-winner"], {}, results, SETTINGS
    )
    assert table.get("semi1-winner") == 1
    assert table.get("semi1-loser") == 2
    assert table.get("semi2-winner") is None


def test_best_second_compares_scalar_criteria():
    a = _table("A", [10, 11, 12])
    b = _table("B", [20, 21, 22])
    a.standings[1].points = 4
    b.standings[1].points = 6
    table = build_binding_table(["bestSecond"], {"a": a, "b": b}, {}, SETTINGS)
    assert table.get("bestSecond") == 21


def test_best_second_tie_uses_manual_order():
    a = _table("A", [10, 11, 12])
    b = _table("B", [20, 21, 22])
    unresolved = build_binding_table(["bestSecond"], {"a": a, "b": b}, {}, SETTINGS)
    assert unresolved.get("bestSecond") is None
    assert unresolved.ties[0].team_ids == [11, 21]

    settings = TournamentSettings(
        start_at=SETTINGS.start_at, number_of_fields=2, has_groups=True,
        manual_tiebreaks={"bestSecond": (21, 11)},
    )
    resolved = build_binding_table(["bestSecond"], {"a": a, "b": b}, {}, settings)
    assert resolved.get("bestSecond") == 21
