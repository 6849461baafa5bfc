"""
Core data types for the judge rotation scheduler.

A schedule is a matrix indexed by (judge id, slot index). Each cell holds the
table number of the project the judge evaluates at that slot, or ``IDLE``.
Slots are synchronized time steps shared by every judge.
"""

from typing import List, Dict, Set, Optional, Iterator
from dataclasses import dataclass, field
from collections import defaultdict
from enum import Enum


# Sentinel for "no project assigned at this slot"
IDLE = -1

# Judge ids are 0-based; reports show them offset like the event badges do
DISPLAY_ID_OFFSET = 1001


class ConfigurationError(ValueError):
    """Raised when the scheduling input cannot be used at all."""


class IssueType(Enum):
    UNDER_JUDGED = "under_judged"
    OVER_JUDGED = "over_judged"
    SIMULTANEOUS_JUDGING = "simultaneous_judging"
    START_COLLISION = "start_collision"
    REPEAT_VISIT = "repeat_visit"
    LISTED_ORDER_COLLISION = "listed_order_collision"
    WORKLOAD_IMBALANCE = "workload_imbalance"
    UNDER_CAPACITY = "under_capacity"


BLOCKING_ISSUE_TYPES: Set[IssueType] = {
    IssueType.UNDER_JUDGED,
    IssueType.OVER_JUDGED,
    IssueType.SIMULTANEOUS_JUDGING,
    IssueType.START_COLLISION,
    IssueType.REPEAT_VISIT,
    IssueType.LISTED_ORDER_COLLISION,
}


@dataclass
class ScheduleIssue:
    issue_type: IssueType
    details: str
    table_number: Optional[int] = None
    slot_index: Optional[int] = None
    shortfall: int = 0

    def __str__(self):
        return self.details

    @property
    def blocking(self) -> bool:
        return self.issue_type in BLOCKING_ISSUE_TYPES


@dataclass(frozen=True)
class Project:
    table_number: int
    name: str
    room_id: Optional[int] = None

    def __repr__(self):
        return f"Project(table={self.table_number}, room={self.room_id})"

    def display_name(self) -> str:
        """Return name if available, otherwise the table label."""
        return self.name if self.name else f"Table {self.table_number}"


@dataclass(frozen=True)
class Judge:
    judge_id: int
    name: str

    def __repr__(self):
        return f"Judge({self.judge_id}, name={self.name})"

    def display_name(self) -> str:
        """Return name if available, otherwise the display id."""
        return self.name if self.name else f"Judge {self.judge_id + DISPLAY_ID_OFFSET}"


@dataclass
class Room:
    room_id: int
    projects: List[Project]
    # Maximum number of judges that may be in the room at once
    capacity: int

    def __repr__(self):
        return f"Room({self.room_id}, tables={self.table_numbers}, capacity={self.capacity})"

    @property
    def table_numbers(self) -> List[int]:
        return [p.table_number for p in self.projects]


@dataclass
class ProjectTally:
    """Judging count of one project compared against its target."""

    table_number: int
    name: str
    count: int
    target: int

    @property
    def shortfall(self) -> int:
        return max(0, self.target - self.count)

    @property
    def excess(self) -> int:
        return max(0, self.count - self.target)


@dataclass
class Schedule:
    """
    Mutable judge-by-slot matrix.

    Each judge owns a growable list of cells so the repair pass can fill idle
    cells or extend a judge's sequence without disturbing slot indexes.
    """

    cells: Dict[int, List[int]] = field(default_factory=dict)

    def __len__(self):
        return len(self.cells)

    @property
    def judge_ids(self) -> List[int]:
        return sorted(self.cells)

    def slots(self, judge_id: int) -> List[int]:
        return self.cells[judge_id]

    def num_slots(self) -> int:
        """Length of the longest judge sequence."""
        return max((len(seq) for seq in self.cells.values()), default=0)

    def cell(self, judge_id: int, slot_index: int) -> int:
        seq = self.cells[judge_id]
        return seq[slot_index] if slot_index < len(seq) else IDLE

    def column(self, slot_index: int) -> Iterator[int]:
        """Yield the non-idle table numbers at a slot, one per occupied judge."""
        for judge_id in self.judge_ids:
            value = self.cell(judge_id, slot_index)
            if value != IDLE:
                yield value

    def assigned_tables(self, judge_id: int) -> List[int]:
        return [t for t in self.cells[judge_id] if t != IDLE]

    def occupancy(self) -> Dict[int, Set[int]]:
        """Build the slot index -> occupied table numbers index from the cells."""
        index: Dict[int, Set[int]] = defaultdict(set)
        for seq in self.cells.values():
            for slot_index, value in enumerate(seq):
                if value != IDLE:
                    index[slot_index].add(value)
        return index

    def copy(self) -> "Schedule":
        return Schedule(cells={j: list(seq) for j, seq in self.cells.items()})
