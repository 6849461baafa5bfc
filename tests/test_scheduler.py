import random

import pytest

from judge_rotation import AlgorithmConfig, ConfigurationError, ScheduleRequest, generate_schedule
from judge_rotation.generator import AssignmentGenerator
from judge_rotation.models import IDLE, Judge, Schedule
from judge_rotation.scheduler import JudgeScheduler, build_scheduler
from tests.helpers import assert_listed_invariants, listed_tables, make_projects, request_payload


def test_single_room_splits_tables_between_two_judges():
    result = generate_schedule(request_payload(6, 2, 1, 1, seed=0))

    assert result.success
    assert result.issues == []
    assert listed_tables(result) == [[1, 2, 3], [4, 5, 6]]
    assert result.attempts == 1
    assert_listed_invariants(listed_tables(result), 6, 1)


def test_one_project_goes_to_exactly_one_judge():
    result = generate_schedule(request_payload(1, 2, 1, 1, seed=0))

    assert result.success
    lists = listed_tables(result)
    assert sorted(len(tables) for tables in lists) == [0, 1]
    assert_listed_invariants(lists, 1, 1)
    # One room seat for two judges
    assert any("already full" in w for w in result.warnings)


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_event_sized_run_succeeds(seed):
    payload = request_payload(50, 20, 3, 4, room_capacities=[8, 12, 6, 10], max_attempts=10, seed=seed)

    result = generate_schedule(payload)

    assert result.success
    assert result.issues == []
    assert result.attempts <= 10
    assert len(result.assignments) == 20
    assert_listed_invariants(listed_tables(result), 50, 3)
    loads = [len(tables) for tables in listed_tables(result)]
    assert sum(loads) == 150


def test_capacity_count_mismatch_is_rejected():
    payload = request_payload(50, 20, 3, 5, room_capacities=[8, 12, 6, 10])

    with pytest.raises(ConfigurationError):
        generate_schedule(payload)


def test_unreachable_target_fails_with_deficit():
    result = generate_schedule(request_payload(1, 1, 5, 1, max_attempts=3, seed=0))

    assert not result.success
    assert result.assignments == []
    assert result.attempts == 3
    assert len(result.history) == 3
    assert not any(record.accepted for record in result.history)
    (issue,) = result.issues
    assert "Table 1" in issue
    assert "short by 4" in issue


@pytest.mark.parametrize(
    "overrides",
    [
        {"projects": []},
        {"judges": []},
        {"judgings_per_project": 0},
        {"num_rooms": 0},
        {"max_attempts": 0},
        {"room_capacities": [3, 0]},
        {"projects": [{"name": "a", "table_number": 1}, {"name": "b", "table_number": 1}]},
    ],
)
def test_unusable_configuration_raises(overrides):
    payload = request_payload(4, 2, 1, 2)
    payload.update(overrides)

    with pytest.raises(ConfigurationError):
        generate_schedule(payload)


def test_duplicate_judge_ids_are_rejected():
    judges = [Judge(judge_id=0, name="a"), Judge(judge_id=0, name="b")]

    with pytest.raises(ConfigurationError):
        JudgeScheduler(make_projects(4), judges, 1, 2)


def test_same_seed_gives_same_schedule():
    payload = request_payload(30, 12, 2, 3, seed=7)

    first = generate_schedule(payload)
    second = generate_schedule(payload)

    assert listed_tables(first) == listed_tables(second)
    assert first.schedule.cells == second.schedule.cells


def test_explicit_random_source_is_used():
    payload = request_payload(30, 12, 2, 3)

    first = generate_schedule(payload, rng=random.Random(99))
    second = generate_schedule(payload, rng=random.Random(99))

    assert first.schedule.cells == second.schedule.cells


def test_request_overrides_config():
    request = ScheduleRequest.model_validate(request_payload(6, 2, 1, 1, max_attempts=4, seed=11))
    base = AlgorithmConfig(MAX_ATTEMPTS=50, RANDOM_SEED=1)

    scheduler = build_scheduler(request, config=base)

    assert scheduler.config.MAX_ATTEMPTS == 4
    assert scheduler.config.RANDOM_SEED == 11
    assert base.MAX_ATTEMPTS == 50
    assert [j.judge_id for j in scheduler.judges] == [0, 1]


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("JUDGE_ROTATION_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("JUDGE_ROTATION_SEED", "5")
    monkeypatch.setenv("JUDGE_ROTATION_MAX_DEVIATION", "1.5")
    monkeypatch.setenv("JUDGE_ROTATION_SHOW_PROGRESS", "yes")

    config = AlgorithmConfig.from_env(AlgorithmConfig(MAX_ATTEMPTS=20))

    assert config.MAX_ATTEMPTS == 3
    assert config.RANDOM_SEED == 5
    assert config.MAX_WORKLOAD_DEVIATION == 1.5
    assert config.SHOW_PROGRESS is True


def test_config_from_env_keeps_base_when_unset(monkeypatch):
    for name in ("MAX_ATTEMPTS", "SEED", "MAX_DEVIATION", "SHOW_PROGRESS"):
        monkeypatch.delenv(f"JUDGE_ROTATION_{name}", raising=False)

    config = AlgorithmConfig.from_env(AlgorithmConfig(MAX_ATTEMPTS=20))

    assert config == AlgorithmConfig(MAX_ATTEMPTS=20)


def test_result_converts_to_response():
    result = generate_schedule(request_payload(6, 2, 1, 1, seed=0))

    response = result.to_response().model_dump()

    assert response["success"] is True
    assert response["assignments"][0] == {"judge_name": "Judge 0", "table_numbers": [1, 2, 3]}
    assert response["issues"] == []
    assert response["attempts"] == 1


def test_unnamed_judges_use_display_ids():
    payload = request_payload(6, 2, 1, 1, seed=0)
    payload["judges"] = [{}, {"name": ""}]

    result = generate_schedule(payload)

    assert [a.judge_name for a in result.assignments] == ["Judge 1001", "Judge 1002"]


def test_assignments_drop_idle_cells():
    result = generate_schedule(request_payload(50, 20, 3, 4, room_capacities=[8, 12, 6, 10], seed=3))

    assert result.success
    for judge_id, assignment in enumerate(result.assignments):
        cells = result.schedule.slots(judge_id)
        assert assignment.table_numbers == [t for t in cells if t != IDLE]
        assert IDLE not in assignment.table_numbers


@pytest.mark.parametrize("num_projects, num_judges, judgings, num_rooms", [(7, 3, 3, 2), (5, 5, 5, 1)])
@pytest.mark.parametrize("seed", range(5))
def test_every_judge_sees_every_project(num_projects, num_judges, judgings, num_rooms, seed):
    payload = request_payload(num_projects, num_judges, judgings, num_rooms, seed=seed)

    result = generate_schedule(payload)

    assert result.success, result.issues
    assert result.attempts == 1
    lists = listed_tables(result)
    assert all(sorted(tables) == list(range(1, num_projects + 1)) for tables in lists)
    assert_listed_invariants(lists, num_projects, judgings)


def _scripted_generate(monkeypatch, *rows):
    """Make every generator return the next scripted schedule, repeating the last one."""
    calls = []

    def generate(self):
        cells = rows[min(len(calls), len(rows) - 1)]
        calls.append(cells)
        return Schedule(cells={j: list(seq) for j, seq in cells.items()})

    monkeypatch.setattr(AssignmentGenerator, "generate", generate)
    return calls


OVER_JUDGED = {0: [1, 2, 3], 1: [4, 1, 6]}
CLEAN = {0: [1, 2, 3], 1: [4, 5, 6]}


def test_over_judged_attempt_is_regenerated_without_repair(monkeypatch):
    calls = _scripted_generate(monkeypatch, OVER_JUDGED, CLEAN)

    result = generate_schedule(request_payload(6, 2, 1, 1, seed=0))

    assert len(calls) == 2
    assert result.success
    assert result.attempts == 2
    first, second = result.history
    assert first.repaired is False
    assert first.accepted is False
    assert first.compacted == 0
    assert first.issues_after_repair == first.issues_before_repair == 2
    assert second.accepted is True
    assert listed_tables(result) == [[1, 2, 3], [4, 5, 6]]


def test_always_over_judged_fails_with_the_last_issues(monkeypatch):
    _scripted_generate(monkeypatch, OVER_JUDGED)

    result = generate_schedule(request_payload(6, 2, 1, 1, max_attempts=2, seed=0))

    assert not result.success
    assert result.attempts == 2
    assert result.assignments == []
    assert not any(record.repaired for record in result.history)
    assert "Table 1 (Team 1) is over-judged: 2 times (should be 1)" in result.issues


def test_config_max_attempts_applies_when_request_leaves_it_unset(monkeypatch):
    monkeypatch.setenv("JUDGE_ROTATION_MAX_ATTEMPTS", "3")
    request = ScheduleRequest.model_validate(request_payload(1, 1, 5, 1, seed=0))

    scheduler = build_scheduler(request, config=AlgorithmConfig.from_env())
    result = scheduler.solve()

    assert scheduler.config.MAX_ATTEMPTS == 3
    assert result.attempts == 3
