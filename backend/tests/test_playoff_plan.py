from datetime import datetime

import pytest

from matchplan.errors import ConfigurationError
from matchplan.models.match import PARALLEL_ALLOWED, SEQUENTIAL_ONLY
from matchplan.utils.playoff_plan import BRACKET_ORDER, build_playoff_plan, effective_parallel_mode
from matchplan.utils.tournament_config import TournamentSettings


def _settings(**overrides):
    values = dict(start_at=datetime(2026, 6, 13, 9, 0), number_of_fields=2, has_groups=True)
    values.update(overrides)
    return TournamentSettings(**values)


def _by_key(plan):
    return {slot.bracket_key: slot for slot in plan}


def test_no_playoffs_configured():
    assert build_playoff_plan(_settings(), {"A": 4, "B": 4}) == []


def test_direct_placement_matches_between_two_groups():
    settings = _settings(playoff_final=True, playoff_third_place=True, playoff_fifth_sixth=True)
    plan = _by_key(build_playoff_plan(settings, {"A": 3, "B": 3}))

    assert (plan["final"].source_a, plan["final"].source_b) == ("group-a-1st", "group-b-1st")
    assert (plan["third_place"].source_a, plan["third_place"].source_b) == ("group-a-2nd", "group-b-2nd")
    assert (plan["fifth_sixth"].source_a, plan["fifth_sixth"].source_b) == ("group-a-3rd", "group-b-3rd")
    assert all(slot.depends_on == () for slot in plan.values())


def test_semifinals_with_two_groups_cross_over():
    settings = _settings(knockout_depth="semifinal", playoff_final=True, playoff_third_place=True)
    plan = build_playoff_plan(settings, {"A": 4, "B": 4})
    slots = _by_key(plan)

    assert [s.bracket_key for s in plan] == ["semi1", "semi2", "third_place", "final"]
    assert (slots["semi1"].source_a, slots["semi1"].source_b) == ("group-a-2nd", "group-b-1st")
    assert (slots["semi2"].source_a, slots["semi2"].source_b) == ("group-a-1st", "group-b-2nd")
    assert (slots["final"].source_a, slots["final"].source_b) == ("semi1-winner", "semi2-winner")
    assert (slots["third_place"].source_a, slots["third_place"].source_b) == ("semi1-loser", "semi2-loser")
    assert slots["final"].depends_on == ("semi1", "semi2")


def test_semifinals_with_three_groups_use_best_second():
    settings = _settings(knockout_depth="semifinal", playoff_final=True)
    slots = _by_key(build_playoff_plan(settings, {"A": 3, "B": 3, "C": 3}))

    assert slots["semi1"].source_b == "bestSecond"
    assert (slots["semi2"].source_a, slots["semi2"].source_b) == ("group-b-1st", "group-c-1st")


def test_quarterfinals_with_four_groups():
    settings = _settings(knockout_depth="quarterfinal", playoff_final=True, playoff_fifth_sixth=True)
    slots = _by_key(build_playoff_plan(settings, {"A": 3, "B": 3, "C": 3, "D": 3}))

    assert (slots["qf1"].source_a, slots["qf1"].source_b) == ("group-a-1st", "group-d-2nd")
    assert (slots["qf4"].source_a, slots["qf4"].source_b) == ("group-d-1st", "group-a-2nd")
    assert (slots["semi1"].source_a, slots["semi1"].source_b) == ("qf1-winner", "qf2-winner")
    assert (slots["fifth_sixth"].source_a, slots["fifth_sixth"].source_b) == ("qf1-loser", "qf2-loser")


def test_plan_follows_bracket_order():
    settings = _settings(
        knockout_depth="quarterfinal",
        playoff_final=True,
        playoff_third_place=True,
        playoff_fifth_sixth=True,
        playoff_seventh_eighth=True,
    )
    plan = build_playoff_plan(settings, {"A": 4, "B": 4})
    keys = [s.bracket_key for s in plan]
    assert keys == [k for k in BRACKET_ORDER if k in keys]
    assert len(keys) == 10


def test_group_too_small_for_source():
    settings = _settings(playoff_seventh_eighth=True)
    with pytest.raises(ConfigurationError, match="at least 4 teams"):
        build_playoff_plan(settings, {"A": 3, "B": 4})


def test_playoffs_need_groups():
    settings = _settings(has_groups=False, playoff_final=True)
    with pytest.raises(ConfigurationError):
        build_playoff_plan(settings, {None: 6})


def test_quarterfinals_reject_three_groups():
    settings = _settings(knockout_depth="quarterfinal", playoff_final=True)
    with pytest.raises(ConfigurationError, match="2 or 4 groups"):
        build_playoff_plan(settings, {"A": 4, "B": 4, "C": 4})


def test_final_is_always_sequential():
    settings = _settings(playoff_parallel_modes={"final": PARALLEL_ALLOWED})
    assert effective_parallel_mode(settings, "final") == SEQUENTIAL_ONLY


def test_parallel_modes_default_and_override():
    settings = _settings(playoff_parallel_modes={"third_place": SEQUENTIAL_ONLY})
    assert effective_parallel_mode(settings, "semi1") == PARALLEL_ALLOWED
    assert effective_parallel_mode(settings, "third_place") == SEQUENTIAL_ONLY


def test_global_toggle_makes_everything_sequential():
    settings = _settings(allow_parallel_playoffs=False)
    assert effective_parallel_mode(settings, "semi1") == SEQUENTIAL_ONLY
