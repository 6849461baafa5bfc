"""
Independent checks over a finished schedule.

Everything is recomputed from the raw cells; nothing from the generator's
bookkeeping is trusted.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from judge_rotation.models import (
    IDLE,
    IssueType,
    Judge,
    Project,
    ProjectTally,
    Schedule,
    ScheduleIssue,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEVIATION = 2


@dataclass
class JudgingCountReport:
    issues: List[ScheduleIssue] = field(default_factory=list)
    under_judged: List[ProjectTally] = field(default_factory=list)
    over_judged: List[ProjectTally] = field(default_factory=list)


@dataclass
class VerificationReport:
    issues: List[ScheduleIssue] = field(default_factory=list)
    under_judged: List[ProjectTally] = field(default_factory=list)
    over_judged: List[ProjectTally] = field(default_factory=list)

    @property
    def blocking_issues(self) -> List[ScheduleIssue]:
        return [i for i in self.issues if i.blocking]

    @property
    def warnings(self) -> List[ScheduleIssue]:
        return [i for i in self.issues if not i.blocking]

    @property
    def success(self) -> bool:
        return not self.blocking_issues

    def issue_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = defaultdict(int)
        for issue in self.issues:
            counts[issue.issue_type.value] += 1
        return dict(counts)


class AssignmentVerifier:
    """Check the judging invariants of a schedule and describe every violation."""

    def __init__(
        self,
        schedule: Schedule,
        projects: Sequence[Project],
        judges: Sequence[Judge],
        judgings_per_project: int,
        max_deviation: float = DEFAULT_MAX_DEVIATION,
    ):
        self.schedule = schedule
        self.projects = list(projects)
        self.judges = {j.judge_id: j for j in judges}
        self.judgings_per_project = judgings_per_project
        self.max_deviation = max_deviation

    def _judge_name(self, judge_id: int) -> str:
        judge = self.judges.get(judge_id)
        return judge.display_name() if judge else f"#{judge_id}"

    def verify_judging_count(self) -> JudgingCountReport:
        counts: Dict[int, int] = {p.table_number: 0 for p in self.projects}
        for judge_id in self.schedule.judge_ids:
            for table in self.schedule.assigned_tables(judge_id):
                counts[table] = counts.get(table, 0) + 1

        report = JudgingCountReport()
        target = self.judgings_per_project
        for project in self.projects:
            tally = ProjectTally(
                table_number=project.table_number,
                name=project.display_name(),
                count=counts[project.table_number],
                target=target,
            )
            if tally.count < target:
                report.under_judged.append(tally)
                report.issues.append(
                    ScheduleIssue(
                        issue_type=IssueType.UNDER_JUDGED,
                        details=(
                            f"Table {tally.table_number} ({tally.name}) is judged {tally.count} "
                            f"times (should be {target}); short by {tally.shortfall}"
                        ),
                        table_number=tally.table_number,
                        shortfall=tally.shortfall,
                    )
                )
            elif tally.count > target:
                report.over_judged.append(tally)
                report.issues.append(
                    ScheduleIssue(
                        issue_type=IssueType.OVER_JUDGED,
                        details=(
                            f"Table {tally.table_number} ({tally.name}) is over-judged: "
                            f"{tally.count} times (should be {target})"
                        ),
                        table_number=tally.table_number,
                    )
                )
        return report

    def verify_simultaneous_judging(self) -> List[ScheduleIssue]:
        issues: List[ScheduleIssue] = []
        for slot_index in range(self.schedule.num_slots()):
            seen = set()
            duplicates: List[int] = []
            for table in self.schedule.column(slot_index):
                if table in seen and table not in duplicates:
                    duplicates.append(table)
                seen.add(table)
            for table in duplicates:
                issues.append(
                    ScheduleIssue(
                        issue_type=IssueType.SIMULTANEOUS_JUDGING,
                        details=(
                            f"In Slot {slot_index + 1}, table {table} is being judged "
                            f"simultaneously by multiple judges"
                        ),
                        table_number=table,
                        slot_index=slot_index,
                    )
                )
        return issues

    def verify_no_judges_start_at_same_table(self) -> List[ScheduleIssue]:
        first_slot: Dict[int, List[str]] = defaultdict(list)
        for judge_id in self.schedule.judge_ids:
            table = self.schedule.cell(judge_id, 0)
            if table != IDLE:
                first_slot[table].append(self._judge_name(judge_id))

        issues: List[ScheduleIssue] = []
        for table, names in first_slot.items():
            if len(names) > 1:
                issues.append(
                    ScheduleIssue(
                        issue_type=IssueType.START_COLLISION,
                        details=f"Multiple judges start at Table {table}: {', '.join(names)}",
                        table_number=table,
                        slot_index=0,
                    )
                )
        return issues

    def verify_no_repeat_visits(self) -> List[ScheduleIssue]:
        issues: List[ScheduleIssue] = []
        for judge_id in self.schedule.judge_ids:
            seen = set()
            for table in self.schedule.assigned_tables(judge_id):
                if table in seen:
                    issues.append(
                        ScheduleIssue(
                            issue_type=IssueType.REPEAT_VISIT,
                            details=f"Judge {self._judge_name(judge_id)} visits Table {table} more than once",
                            table_number=table,
                        )
                    )
                seen.add(table)
        return issues

    def verify_listed_order(self) -> List[ScheduleIssue]:
        """
        Collisions that appear once idle cells are dropped from each judge's list.

        Callers only see the idle-free table lists, so position N of every list
        must be collision free as well. Collisions already present at the raw
        slot are left to the slot checks.
        """
        listed = {j: self.schedule.assigned_tables(j) for j in self.schedule.judge_ids}
        width = max((len(tables) for tables in listed.values()), default=0)

        issues: List[ScheduleIssue] = []
        for position in range(width):
            raw_counts: Dict[int, int] = defaultdict(int)
            for table in self.schedule.column(position):
                raw_counts[table] += 1

            holders: Dict[int, List[str]] = defaultdict(list)
            for judge_id, tables in listed.items():
                if position < len(tables):
                    holders[tables[position]].append(self._judge_name(judge_id))

            for table, names in holders.items():
                if len(names) > 1 and raw_counts[table] < 2:
                    issues.append(
                        ScheduleIssue(
                            issue_type=IssueType.LISTED_ORDER_COLLISION,
                            details=(
                                f"Table {table} is listed at position {position + 1} for "
                                f"multiple judges once idle slots are dropped: {', '.join(names)}"
                            ),
                            table_number=table,
                            slot_index=position,
                        )
                    )
        return issues

    def verify_judge_workload(self) -> List[ScheduleIssue]:
        judge_ids = self.schedule.judge_ids
        if not judge_ids:
            return []
        loads = {j: len(self.schedule.assigned_tables(j)) for j in judge_ids}
        avg_load = sum(loads.values()) / len(loads)

        issues: List[ScheduleIssue] = []
        for judge_id, count in loads.items():
            if abs(count - avg_load) > self.max_deviation:
                issues.append(
                    ScheduleIssue(
                        issue_type=IssueType.WORKLOAD_IMBALANCE,
                        details=(
                            f"Judge {self._judge_name(judge_id)} has {count} projects "
                            f"(average is {avg_load:.1f})"
                        ),
                    )
                )
        return issues

    def verify_all(self) -> VerificationReport:
        counts = self.verify_judging_count()
        report = VerificationReport(
            under_judged=counts.under_judged,
            over_judged=counts.over_judged,
        )
        report.issues.extend(counts.issues)
        report.issues.extend(self.verify_simultaneous_judging())
        report.issues.extend(self.verify_no_judges_start_at_same_table())
        report.issues.extend(self.verify_no_repeat_visits())
        report.issues.extend(self.verify_listed_order())
        report.issues.extend(self.verify_judge_workload())
        return report
