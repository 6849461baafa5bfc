from judge_rotation.models import ConfigurationError
from judge_rotation.scheduler import AlgorithmConfig, ScheduleResult, generate_schedule
from judge_rotation.schemas import ScheduleRequest

__all__ = [
    "AlgorithmConfig",
    "ConfigurationError",
    "ScheduleRequest",
    "ScheduleResult",
    "generate_schedule",
]
