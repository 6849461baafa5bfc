"""
Top up under-judged projects in place and close idle gaps in judge sequences.

Over-judged projects cannot be fixed here; the retry driver regenerates the
whole schedule for those.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence, Set

from judge_rotation.models import (
    DISPLAY_ID_OFFSET,
    IDLE,
    IssueType,
    ProjectTally,
    Schedule,
    ScheduleIssue,
)

logger = logging.getLogger(__name__)


class RepairPass:
    def __init__(self, schedule: Schedule):
        self.schedule = schedule
        self.occupancy: Dict[int, Set[int]] = schedule.occupancy()
        self.insertions = 0

    def _find_idle_slot(self, cells: List[int], table: int) -> Optional[int]:
        for slot_index, value in enumerate(cells):
            if value == IDLE and table not in self.occupancy.get(slot_index, ()):
                return slot_index
        return None

    def _append_slot(self, cells: List[int], table: int) -> int:
        """Extend ``cells`` up to the first free index at or past its end."""
        slot_index = len(cells)
        while table in self.occupancy.get(slot_index, ()):
            slot_index += 1
        cells.extend([IDLE] * (slot_index + 1 - len(cells)))
        return slot_index

    def _place(self, judge_id: int, table: int) -> int:
        cells = self.schedule.slots(judge_id)
        slot_index = self._find_idle_slot(cells, table)
        how = "idle slot"
        if slot_index is None:
            slot_index = self._append_slot(cells, table)
            how = "extra slot"
        cells[slot_index] = table
        self.occupancy.setdefault(slot_index, set()).add(table)
        self.insertions += 1
        logger.debug(
            "Assigned Table %d to Judge %d at Slot %d (%s)",
            table,
            judge_id + DISPLAY_ID_OFFSET,
            slot_index + 1,
            how,
        )
        return slot_index

    def repair(self, under_judged: Sequence[ProjectTally]) -> List[ScheduleIssue]:
        """
        Add the missing judgings for each project.

        Judges are tried in id order, skipping those who already have the
        project. Returns an ``UNDER_JUDGED`` issue for every project whose
        deficit could not be closed.
        """
        unresolved: List[ScheduleIssue] = []
        for tally in under_judged:
            table = tally.table_number
            needed = tally.shortfall
            added = 0
            logger.info("Fixing Table %d (needs %d more judgement(s))", table, needed)

            for judge_id in self.schedule.judge_ids:
                if added >= needed:
                    break
                if table in self.schedule.slots(judge_id):
                    continue
                self._place(judge_id, table)
                added += 1

            if added < needed:
                missing = needed - added
                logger.warning(
                    "Could only add %d/%d missing judgement(s) for Table %d", added, needed, table
                )
                unresolved.append(
                    ScheduleIssue(
                        issue_type=IssueType.UNDER_JUDGED,
                        details=(
                            f"Table {table} ({tally.name}) is judged {tally.count + added} times "
                            f"(should be {tally.target}); short by {missing}"
                        ),
                        table_number=table,
                        shortfall=missing,
                    )
                )
        return unresolved


def _has_interior_idle(cells: List[int]) -> bool:
    seen_idle = False
    for value in cells:
        if value == IDLE:
            seen_idle = True
        elif seen_idle:
            return True
    return False


def _augment(
    judge_id: int,
    adjacency: Dict[int, List[int]],
    owner: Dict[int, int],
    partner: Dict[int, int],
    visited: Set[int],
) -> bool:
    """Kuhn augmenting path from an unmatched judge, preferring free tables."""
    for table in adjacency[judge_id]:
        if table not in owner:
            owner[table] = judge_id
            partner[judge_id] = table
            return True
    for table in adjacency[judge_id]:
        if table in visited:
            continue
        visited.add(table)
        if _augment(owner[table], adjacency, owner, partner, visited):
            owner[table] = judge_id
            partner[judge_id] = table
            return True
    return False


def _cover(
    table: int,
    holders: Dict[int, List[int]],
    required: Set[int],
    owner: Dict[int, int],
    partner: Dict[int, int],
    visited: Set[int],
) -> bool:
    """
    Match an uncovered required table without unmatching any judge.

    Walks alternating paths until it reaches a judge whose current table is
    not required; that table is released.
    """
    for judge_id in holders.get(table, ()):
        if judge_id in visited or partner.get(judge_id) == table:
            continue
        visited.add(judge_id)
        mate = partner.get(judge_id)
        if mate is not None and mate in required:
            if not _cover(mate, holders, required, owner, partner, visited):
                continue
        elif mate is not None:
            del owner[mate]
        owner[table] = judge_id
        partner[judge_id] = table
        return True
    return False


def resequence_slots(schedule: Schedule) -> Optional[Dict[int, List[int]]]:
    """
    Reorder every judge's tables so each judge uses slots ``0..n-1`` with no idle gap.

    Slots are filled from the last one down. At each slot every judge that
    still needs it is matched to one of its remaining tables, and so is every
    table whose remaining judgings equal the number of slots left. Tables
    already sitting at that slot are kept where possible. Returns the new rows,
    or ``None`` when no such ordering is found.
    """
    remaining: Dict[int, Set[int]] = {}
    for judge_id in schedule.judge_ids:
        tables = schedule.assigned_tables(judge_id)
        if len(set(tables)) != len(tables):
            return None
        remaining[judge_id] = set(tables)
    table_load: Counter = Counter(t for tables in remaining.values() for t in tables)
    width = max((len(tables) for tables in remaining.values()), default=0)
    rows: Dict[int, List[int]] = {j: [IDLE] * len(tables) for j, tables in remaining.items()}

    for slot_index in range(width - 1, -1, -1):
        if any(load > slot_index + 1 for load in table_load.values()):
            return None
        active = [j for j in schedule.judge_ids if len(remaining[j]) == slot_index + 1]
        adjacency = {j: sorted(remaining[j]) for j in active}
        holders: Dict[int, List[int]] = defaultdict(list)
        for judge_id in active:
            for table in adjacency[judge_id]:
                holders[table].append(judge_id)

        owner: Dict[int, int] = {}
        partner: Dict[int, int] = {}
        for judge_id in active:
            current = schedule.cell(judge_id, slot_index)
            if current in remaining[judge_id] and current not in owner:
                owner[current] = judge_id
                partner[judge_id] = current

        for judge_id in active:
            if judge_id not in partner and not _augment(
                judge_id, adjacency, owner, partner, set()
            ):
                return None

        required = {t for t, load in table_load.items() if load == slot_index + 1}
        for table in sorted(required):
            if table not in owner and not _cover(table, holders, required, owner, partner, set()):
                return None

        for judge_id, table in partner.items():
            rows[judge_id][slot_index] = table
            remaining[judge_id].discard(table)
            table_load[table] -= 1

    return rows


def _pull_forward(schedule: Schedule) -> int:
    """Move single later tables into earlier idle cells where nobody holds them."""
    occupancy: Dict[int, Counter] = defaultdict(Counter)
    for cells in schedule.cells.values():
        for slot_index, value in enumerate(cells):
            if value != IDLE:
                occupancy[slot_index][value] += 1

    moves = 0
    for judge_id in schedule.judge_ids:
        cells = schedule.slots(judge_id)
        for a in range(len(cells)):
            if cells[a] != IDLE:
                continue
            for b in range(a + 1, len(cells)):
                table = cells[b]
                if table == IDLE or occupancy[a][table]:
                    continue
                cells[a], cells[b] = table, IDLE
                occupancy[b][table] -= 1
                occupancy[a][table] += 1
                moves += 1
                break
    return moves


def compact_idle_slots(schedule: Schedule) -> int:
    """
    Remove idle gaps that sit before a judge's last table.

    The whole schedule is resequenced so every judge's tables occupy a
    contiguous prefix of slots. When that fails, single tables are pulled
    forward into free idle cells instead. Neither step introduces a
    collision or changes which tables a judge visits. Trailing idle cells are
    dropped. Returns the number of tables that changed slot.
    """
    moves = 0
    if any(_has_interior_idle(cells) for cells in schedule.cells.values()):
        rows = resequence_slots(schedule)
        if rows is None:
            logger.debug("Could not resequence the schedule; pulling tables forward")
            moves = _pull_forward(schedule)
        else:
            for judge_id, row in rows.items():
                old = schedule.slots(judge_id)
                moves += sum(1 for slot_index, t in enumerate(row) if old[slot_index] != t)
                schedule.cells[judge_id] = row

    for cells in schedule.cells.values():
        while cells and cells[-1] == IDLE:
            cells.pop()

    if moves:
        logger.debug("Compacted %d idle slot(s)", moves)
    return moves
