import random

import matplotlib

matplotlib.use("Agg")

import pytest

from judge_rotation.rooms import partition_rooms
from tests.helpers import make_judges, make_projects


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def event_rooms():
    """50 tables over four rooms holding 8, 12, 6 and 10 judges."""
    return partition_rooms(make_projects(50), 4, [8, 12, 6, 10])


@pytest.fixture
def four_judges():
    return make_judges(4)
