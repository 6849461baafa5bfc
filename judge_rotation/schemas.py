"""
Pydantic models for the scheduler's input and output boundary.

``ScheduleRequest`` is the configuration accepted by ``generate_schedule``;
``ScheduleResponse`` is the JSON shape handed back to callers. The roster
models describe the JSON files read by the command line tool.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from judge_rotation.models import ConfigurationError


class ProjectInfo(BaseModel):
    """A project (team) sitting at a numbered table."""

    name: str = Field(default="", description="Display name of the project or team")
    table_number: int = Field(gt=0, description="Unique positive table number")


class JudgeInfo(BaseModel):
    """A single judge."""

    name: str = Field(default="", description="Display name of the judge")


class ProjectsData(BaseModel):
    """Collection of all projects."""

    projects: List[ProjectInfo] = Field(description="List of projects")


class JudgesData(BaseModel):
    """Collection of all judges."""

    judges: List[JudgeInfo] = Field(description="List of judges")


class ScheduleRequest(BaseModel):
    projects: List[ProjectInfo] = Field(min_length=1, description="Projects to be judged")
    judges: List[JudgeInfo] = Field(min_length=1, description="Judges, in id order")
    judgings_per_project: int = Field(gt=0, description="Distinct judges required per project")
    num_rooms: int = Field(gt=0, description="Number of physical rooms")
    room_capacities: Optional[List[int]] = Field(
        default=None, description="Judges each room can hold at once, one entry per room"
    )
    max_attempts: int = Field(default=10, gt=0, description="Bound on regeneration attempts")
    seed: Optional[int] = Field(default=None, description="Seed for the run-local random source")

    @model_validator(mode="after")
    def _check_consistency(self) -> "ScheduleRequest":
        seen = set()
        for project in self.projects:
            if project.table_number in seen:
                raise ValueError(f"Duplicate table number {project.table_number}")
            seen.add(project.table_number)
        if self.room_capacities is not None:
            if len(self.room_capacities) != self.num_rooms:
                raise ValueError(
                    f"Got {len(self.room_capacities)} room capacities for {self.num_rooms} rooms"
                )
            if any(c < 1 for c in self.room_capacities):
                raise ValueError(f"Room capacities must be positive: {self.room_capacities}")
        return self

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ScheduleRequest":
        """Validate a plain mapping, raising ConfigurationError on bad input."""
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            messages = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid schedule configuration: {messages}") from e


class JudgeAssignmentInfo(BaseModel):
    judge_name: str = Field(description="Display name of the judge")
    table_numbers: List[int] = Field(description="Tables to visit in order, idle slots omitted")


class ScheduleResponse(BaseModel):
    success: bool
    assignments: List[JudgeAssignmentInfo] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    attempts: int = 0


def load_projects(path: str) -> List[ProjectInfo]:
    """Load projects from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    try:
        return ProjectsData(**data).projects
    except ValidationError as e:
        raise ConfigurationError(f"Invalid projects file {path}: {e}") from e


def load_judges(path: str) -> List[JudgeInfo]:
    """Load judges from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    try:
        return JudgesData(**data).judges
    except ValidationError as e:
        raise ConfigurationError(f"Invalid judges file {path}: {e}") from e
