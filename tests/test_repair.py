from judge_rotation.models import IDLE, IssueType, ProjectTally, Schedule
from judge_rotation.repair import RepairPass, compact_idle_slots
from judge_rotation.verifier import AssignmentVerifier
from tests.helpers import make_judges, make_projects


def _tally(table, count, target):
    return ProjectTally(table_number=table, name=f"Team {table}", count=count, target=target)


def test_fills_existing_idle_cell():
    schedule = Schedule(cells={0: [1, IDLE], 1: [2, 3]})

    unresolved = RepairPass(schedule).repair([_tally(4, 0, 1)])

    assert unresolved == []
    assert schedule.cells == {0: [1, 4], 1: [2, 3]}


def test_skips_idle_cells_that_would_collide():
    schedule = Schedule(cells={0: [IDLE, 2], 1: [1, IDLE]})
    repair = RepairPass(schedule)

    unresolved = repair.repair([_tally(1, 1, 2), _tally(2, 1, 2)])

    assert unresolved == []
    assert repair.insertions == 2
    assert schedule.cells == {0: [IDLE, 2, 1], 1: [1, IDLE, 2]}


def test_append_pads_past_occupied_slots():
    # Slot 1 already holds table 2 for another judge
    schedule = Schedule(cells={0: [1], 1: [3, 2], 2: [4]})

    RepairPass(schedule).repair([_tally(2, 1, 2)])

    assert schedule.cells[0] == [1, IDLE, 2]
    assert schedule.cells[1] == [3, 2]


def test_repaired_schedule_verifies_clean_after_compaction():
    schedule = Schedule(cells={0: [1, 2, IDLE], 1: [3, IDLE, 1], 2: [IDLE, 3, 4]})
    projects = make_projects(4)
    judges = make_judges(3)
    report = AssignmentVerifier(schedule, projects, judges, 2).verify_all()
    assert [t.table_number for t in report.under_judged] == [2, 4]

    assert RepairPass(schedule).repair(report.under_judged) == []

    again = AssignmentVerifier(schedule, projects, judges, 2).verify_all()
    assert again.under_judged == []
    # Judge 2's idle first slot shifts table 3 onto position 1 of its list
    assert [(i.issue_type, i.table_number, i.slot_index) for i in again.blocking_issues] == [
        (IssueType.LISTED_ORDER_COLLISION, 3, 0)
    ]

    compact_idle_slots(schedule)

    assert schedule.cells == {0: [1, 4, 2], 1: [3, 2, 1], 2: [4, 3]}
    assert AssignmentVerifier(schedule, projects, judges, 2).verify_all().blocking_issues == []


def test_residual_deficit_is_reported():
    schedule = Schedule(cells={0: [1]})

    unresolved = RepairPass(schedule).repair([_tally(1, 1, 5)])

    (issue,) = unresolved
    assert issue.issue_type == IssueType.UNDER_JUDGED
    assert issue.shortfall == 4
    assert issue.details == "Table 1 (Team 1) is judged 1 times (should be 5); short by 4"
    assert schedule.cells == {0: [1]}


def test_compaction_pulls_tables_forward():
    schedule = Schedule(cells={0: [IDLE, 2], 1: [1, IDLE, IDLE]})

    moves = compact_idle_slots(schedule)

    assert moves == 1
    assert schedule.cells == {0: [2], 1: [1]}


def test_compaction_reorders_other_judges_to_close_a_gap():
    # Table 1 is held at slot 0, so judge 1 has to give it up first
    schedule = Schedule(cells={0: [IDLE, 1], 1: [1, 2]})

    compact_idle_slots(schedule)

    assert schedule.cells == {0: [1], 1: [2, 1]}


def test_compaction_closes_gaps_that_need_a_chain_of_moves():
    cells = {
        0: [1, 2, 3, 4, 5, 6, 7],
        1: [2, 1, 4, 3, 6, 5, IDLE, 7],
        2: [7, 5, 6, 1, 2, 3, 4],
    }
    schedule = Schedule(cells={j: list(seq) for j, seq in cells.items()})

    compact_idle_slots(schedule)

    for judge_id, seq in cells.items():
        assert IDLE not in schedule.slots(judge_id)
        assert sorted(schedule.slots(judge_id)) == sorted(t for t in seq if t != IDLE)
    for slot_index in range(schedule.num_slots()):
        column = list(schedule.column(slot_index))
        assert len(column) == len(set(column))


def test_compaction_leaves_impossible_gaps_alone():
    # Both judges need table 1 at slot 0
    schedule = Schedule(cells={0: [IDLE, 1], 1: [1]})

    moves = compact_idle_slots(schedule)

    assert moves == 0
    assert schedule.cells == {0: [IDLE, 1], 1: [1]}


def test_compaction_keeps_every_assignment():
    cells = {0: [IDLE, 3, IDLE, 4], 1: [3, IDLE, 4, IDLE], 2: [IDLE, IDLE, 1, 2]}
    schedule = Schedule(cells={j: list(seq) for j, seq in cells.items()})

    compact_idle_slots(schedule)

    for judge_id, seq in cells.items():
        assert sorted(schedule.assigned_tables(judge_id)) == sorted(t for t in seq if t != IDLE)
        assert IDLE not in schedule.slots(judge_id)
    for slot_index in range(schedule.num_slots()):
        column = list(schedule.column(slot_index))
        assert len(column) == len(set(column))


def test_compaction_without_gaps_only_trims():
    schedule = Schedule(cells={0: [2, 1, IDLE], 1: [1, 2]})

    assert compact_idle_slots(schedule) == 0
    assert schedule.cells == {0: [2, 1], 1: [1, 2]}
