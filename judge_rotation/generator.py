"""
Greedy round-robin assignment of judges to project tables.

Judges are processed in ascending id order. Each one rotates through every
room, starting from the room it was allocated, and fills a few slots per room
with the least-judged table that is free at that slot.
"""

import math
import logging
import random
from collections import defaultdict
from typing import Dict, List, Sequence, Set, Iterable

from judge_rotation.models import IDLE, Room, Schedule, ScheduleIssue
from judge_rotation.rooms import assign_starting_rooms

logger = logging.getLogger(__name__)


class AssignmentGenerator:
    """
    Build one complete schedule attempt.

    Counters and the slot-occupancy index are owned by the instance, so a new
    generator must be created for every attempt.
    """

    def __init__(
        self,
        rooms: Sequence[Room],
        num_judges: int,
        judgings_per_project: int,
        rng: random.Random,
    ):
        self.rooms = list(rooms)
        self.num_rooms = len(self.rooms)
        self.num_judges = num_judges
        self.judgings_per_project = judgings_per_project

        table_numbers = [t for room in self.rooms for t in room.table_numbers]
        self.project_counts: Dict[int, int] = {t: 0 for t in table_numbers}
        self.judge_counts: Dict[int, int] = {j: 0 for j in range(num_judges)}

        # slot index -> tables already taken by earlier judges at that slot
        self.occupancy: Dict[int, Set[int]] = defaultdict(set)

        # e.g. 50 projects x 3 judgings over 20 judges: 7 each, 10 judges get 8
        self.total_judgings = len(table_numbers) * judgings_per_project
        self.base_per_judge = self.total_judgings // num_judges
        self.extra_assignments = self.total_judgings % num_judges
        self.max_per_judge = self.base_per_judge + (1 if self.extra_assignments > 0 else 0)
        self.teams_per_phase = math.ceil(self.max_per_judge / self.num_rooms)

        self.starting_rooms, self.allocation_issues = assign_starting_rooms(
            num_judges, self.rooms, rng
        )

    def target_assignments(self, judge_id: int) -> int:
        """The first ``total % num_judges`` judges take one extra judging."""
        return self.base_per_judge + (1 if judge_id < self.extra_assignments else 0)

    def _eligible(self, tables: Iterable[int], taken: Set[int], visited: Set[int]) -> List[int]:
        return [
            t
            for t in tables
            if t not in taken
            and t not in visited
            and self.project_counts[t] < self.judgings_per_project
        ]

    def _candidates(
        self, pool: List[int], current_room: Room, taken: Set[int], visited: Set[int]
    ) -> List[int]:
        available = self._eligible(pool, taken, visited)
        if available:
            return available
        # Nothing left in this room for this slot; borrow from the first other room that has one
        for other in self.rooms:
            if other.room_id == current_room.room_id:
                continue
            available = self._eligible(other.table_numbers, taken, visited)
            if available:
                return available
        return []

    def _schedule_judge(self, judge_id: int) -> List[int]:
        cells: List[int] = []
        visited: Set[int] = set()
        remaining = self.target_assignments(judge_id)
        start_room = self.starting_rooms[judge_id]

        for phase in range(self.num_rooms):
            room = self.rooms[(start_room + phase) % self.num_rooms]
            pool = list(room.table_numbers)
            slots_this_phase = min(self.teams_per_phase, remaining)

            for _ in range(slots_this_phase):
                slot_index = len(cells)
                taken = self.occupancy[slot_index]
                available = self._candidates(pool, room, taken, visited)

                if not available:
                    cells.append(IDLE)
                    continue

                # min() keeps the first table among equal counts
                table = min(available, key=lambda t: self.project_counts[t])
                cells.append(table)
                visited.add(table)
                taken.add(table)
                self.project_counts[table] += 1
                self.judge_counts[judge_id] += 1
                remaining -= 1
                if table in pool:
                    pool.remove(table)

        return cells

    def generate(self) -> Schedule:
        schedule = Schedule()
        for judge_id in range(self.num_judges):
            schedule.cells[judge_id] = self._schedule_judge(judge_id)

        idle = sum(seq.count(IDLE) for seq in schedule.cells.values())
        logger.debug(
            "Generated %d judge sequences (%d judgings, %d idle slots)",
            len(schedule),
            sum(self.judge_counts.values()),
            idle,
        )
        return schedule

    @property
    def warnings(self) -> List[ScheduleIssue]:
        return list(self.allocation_issues)
