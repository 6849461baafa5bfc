"""Random demo rosters for trying the scheduler without real input files."""

import random
import string
from typing import List

from judge_rotation.schemas import JudgeInfo, ProjectInfo

FIRST_NAMES = [
    "John",
    "Jane",
    "Mary",
    "James",
    "Patricia",
    "Michael",
    "Linda",
    "Robert",
    "Elizabeth",
    "William",
    "Jessica",
    "David",
    "Sarah",
    "Thomas",
]

LAST_NAMES = [
    "Smith",
    "Johnson",
    "Williams",
    "Brown",
    "Jones",
    "Garcia",
    "Miller",
    "Davis",
    "Rodriguez",
    "Martinez",
    "Hernandez",
    "Lopez",
    "Gonzalez",
    "Wilson",
]

# Four rooms of uneven size, 36 judges at once
DEMO_ROOM_CAPACITIES = (8, 12, 6, 10)


def generate_demo_judges(num_judges: int, rng: random.Random) -> List[JudgeInfo]:
    return [
        JudgeInfo(name=f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}")
        for _ in range(num_judges)
    ]


def generate_demo_projects(num_projects: int, rng: random.Random) -> List[ProjectInfo]:
    """Projects with random three-letter names at tables 1..num_projects."""
    return [
        ProjectInfo(
            name="".join(rng.choice(string.ascii_lowercase) for _ in range(3)),
            table_number=i + 1,
        )
        for i in range(num_projects)
    ]
