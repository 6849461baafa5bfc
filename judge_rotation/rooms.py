"""
Room layout for a judging run.

Projects are partitioned into ordered rooms, then judges are spread over the
rooms in proportion to how many judges each room can hold at once.
"""

import math
import logging
import random
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from judge_rotation.models import ConfigurationError, IssueType, Project, Room, ScheduleIssue

logger = logging.getLogger(__name__)


def partition_rooms(
    projects: Sequence[Project],
    num_rooms: int,
    room_capacities: Optional[Sequence[int]] = None,
) -> List[Room]:
    """
    Split the project roster into ``num_rooms`` rooms ordered by table number.

    With explicit capacities the first ``capacities[0]`` tables go to room 1,
    the next ``capacities[1]`` to room 2 and so on. Tables left over when the
    capacities add up to less than the roster are dealt round-robin over the
    rooms. Without capacities the roster is cut into contiguous chunks of
    ``ceil(len(projects) / num_rooms)`` and each room holds as many judges as it
    has projects.
    """
    if not projects:
        raise ConfigurationError("No projects provided")
    if not isinstance(num_rooms, int) or num_rooms < 1:
        raise ConfigurationError(f"Invalid number of rooms: {num_rooms!r}")

    ordered = sorted(projects, key=lambda p: p.table_number)

    if room_capacities is not None:
        if len(room_capacities) != num_rooms:
            raise ConfigurationError(
                f"Got {len(room_capacities)} room capacities for {num_rooms} rooms"
            )
        if any(not isinstance(c, int) or c < 1 for c in room_capacities):
            raise ConfigurationError(f"Room capacities must be positive: {list(room_capacities)}")

        buckets: List[List[Project]] = []
        idx = 0
        for capacity in room_capacities:
            buckets.append(ordered[idx : idx + capacity])
            idx += capacity

        leftovers = ordered[idx:]
        if leftovers:
            logger.warning(
                "Room capacities cover %d of %d projects; dealing %d leftover tables across rooms",
                idx,
                len(ordered),
                len(leftovers),
            )
        for i, project in enumerate(leftovers):
            buckets[i % num_rooms].append(project)

        capacities = list(room_capacities)
    else:
        per_room = math.ceil(len(ordered) / num_rooms)
        buckets = [ordered[i * per_room : (i + 1) * per_room] for i in range(num_rooms)]
        capacities = [len(bucket) for bucket in buckets]

    rooms = []
    for i, (bucket, capacity) in enumerate(zip(buckets, capacities)):
        room_id = i + 1
        rooms.append(
            Room(
                room_id=room_id,
                projects=[replace(p, room_id=room_id) for p in bucket],
                capacity=capacity,
            )
        )
    return rooms


def allocate_judges_per_room(num_judges: int, rooms: Sequence[Room]) -> List[int]:
    """
    Number of judges starting in each room, proportional to room capacity.

    Each room first gets ``floor(capacity / total * num_judges)`` capped at its
    capacity. Judges lost to flooring then go one at a time to the rooms with
    the largest fractional share, skipping full rooms. The sum may fall short of
    ``num_judges`` when every room is full.
    """
    total_capacity = sum(room.capacity for room in rooms)
    if total_capacity <= 0:
        return [0] * len(rooms)

    judges_per_room: List[int] = []
    fractions: List[Tuple[int, float]] = []
    for idx, room in enumerate(rooms):
        ideal = room.capacity / total_capacity * num_judges
        base = math.floor(ideal)
        judges_per_room.append(min(base, room.capacity))
        fractions.append((idx, ideal - base))

    # Stable sort keeps room order among equal fractions
    fractions.sort(key=lambda item: item[1], reverse=True)

    remaining = num_judges - sum(judges_per_room)
    while remaining > 0:
        placed = False
        for idx, _ in fractions:
            if remaining == 0:
                break
            if judges_per_room[idx] < rooms[idx].capacity:
                judges_per_room[idx] += 1
                remaining -= 1
                placed = True
        if not placed:
            break

    return judges_per_room


def assign_starting_rooms(
    num_judges: int, rooms: Sequence[Room], rng: random.Random
) -> Tuple[List[int], List[ScheduleIssue]]:
    """
    Give every judge a starting room index (position in ``rooms``).

    Returns the starting room per judge index and any under-capacity warnings.
    The room list is shuffled with ``rng`` so that which judges land in busy
    rooms changes from run to run.
    """
    issues: List[ScheduleIssue] = []
    judges_per_room = allocate_judges_per_room(num_judges, rooms)

    starts: List[int] = []
    for room_idx, count in enumerate(judges_per_room):
        starts.extend([room_idx] * count)

    overflow = num_judges - len(starts)
    if overflow > 0:
        total_capacity = sum(room.capacity for room in rooms)
        details = (
            f"Rooms hold {total_capacity} judges at once but {num_judges} judges are scheduled; "
            f"{overflow} judge(s) start in rooms that are already full"
        )
        logger.warning(details)
        issues.append(ScheduleIssue(issue_type=IssueType.UNDER_CAPACITY, details=details))
        by_capacity = sorted(range(len(rooms)), key=lambda i: rooms[i].capacity, reverse=True)
        for i in range(overflow):
            starts.append(by_capacity[i % len(by_capacity)])

    rng.shuffle(starts)
    return starts, issues
