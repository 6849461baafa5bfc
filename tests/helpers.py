from collections import Counter
from typing import Dict, List, Optional

from judge_rotation.models import Judge, Project

JUDGE_NAMES = ["Alice", "Bob", "Carol", "Dave", "Erin", "Frank", "Grace", "Heidi"]


def make_projects(n: int, start: int = 1) -> List[Project]:
    return [Project(table_number=t, name=f"Team {t}") for t in range(start, start + n)]


def make_judges(n: int) -> List[Judge]:
    return [
        Judge(judge_id=i, name=JUDGE_NAMES[i] if i < len(JUDGE_NAMES) else f"Judge {i}")
        for i in range(n)
    ]


def request_payload(
    num_projects: int,
    num_judges: int,
    judgings_per_project: int,
    num_rooms: int,
    room_capacities: Optional[List[int]] = None,
    **extra,
) -> Dict:
    payload = {
        "projects": [
            {"name": f"Team {t}", "table_number": t} for t in range(1, num_projects + 1)
        ],
        "judges": [{"name": f"Judge {i}"} for i in range(num_judges)],
        "judgings_per_project": judgings_per_project,
        "num_rooms": num_rooms,
        "room_capacities": room_capacities,
    }
    payload.update(extra)
    return payload


def listed_tables(result) -> List[List[int]]:
    return [a.table_numbers for a in result.assignments]


def assert_listed_invariants(lists: List[List[int]], num_projects: int, judgings: int) -> None:
    """Check the judging invariants on the idle-free lists handed to callers."""
    counts = Counter(t for tables in lists for t in tables)
    assert counts == Counter({t: judgings for t in range(1, num_projects + 1)})

    for tables in lists:
        assert len(tables) == len(set(tables))

    width = max((len(tables) for tables in lists), default=0)
    for position in range(width):
        column = [tables[position] for tables in lists if position < len(tables)]
        assert len(column) == len(set(column)), f"collision at position {position}"

    firsts = [tables[0] for tables in lists if tables]
    assert len(firsts) == len(set(firsts))
