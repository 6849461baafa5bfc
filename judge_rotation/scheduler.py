"""
Judge Rotation Scheduler

Assigns judges to project tables across several rooms so that every project
is seen by exactly K distinct judges, no two judges stand at the same table in
the same slot, and judges rotate through all rooms with balanced workloads.

Each attempt generates a fresh schedule, verifies it, tops up under-judged
projects in place, and is either accepted or discarded. Attempts are bounded
by ``max_attempts``.

Also writes results to `data/outputs/` when run from the command line.
"""

from typing import List, Dict, Tuple, Optional, Any, Mapping, Sequence, Union
from dataclasses import dataclass, field, replace
import argparse
import json
import logging
import os
import random
import sys

import tqdm
from dotenv import load_dotenv

from judge_rotation.demo import DEMO_ROOM_CAPACITIES, generate_demo_judges, generate_demo_projects
from judge_rotation.generator import AssignmentGenerator
from judge_rotation.models import (
    DISPLAY_ID_OFFSET,
    IDLE,
    ConfigurationError,
    Judge,
    Project,
    Schedule,
    ScheduleIssue,
)
from judge_rotation.repair import RepairPass, compact_idle_slots
from judge_rotation.rooms import partition_rooms
from judge_rotation.schemas import (
    JudgeAssignmentInfo,
    ScheduleRequest,
    ScheduleResponse,
    load_judges,
    load_projects,
)
from judge_rotation.utils import _ensure_dir, _project_root, _resolve_path
from judge_rotation.verifier import AssignmentVerifier, VerificationReport

logger = logging.getLogger(__name__)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AlgorithmConfig:
    """Configuration for the scheduling run."""

    MAX_ATTEMPTS: int = 10
    RANDOM_SEED: Optional[int] = None
    MAX_WORKLOAD_DEVIATION: float = 2.0
    SHOW_PROGRESS: bool = False

    @classmethod
    def from_env(cls, base: Optional["AlgorithmConfig"] = None) -> "AlgorithmConfig":
        """Apply JUDGE_ROTATION_* environment overrides on top of ``base``."""
        config = replace(base) if base is not None else cls()
        env = os.environ
        if env.get("JUDGE_ROTATION_MAX_ATTEMPTS"):
            config.MAX_ATTEMPTS = int(env["JUDGE_ROTATION_MAX_ATTEMPTS"])
        if env.get("JUDGE_ROTATION_SEED"):
            config.RANDOM_SEED = int(env["JUDGE_ROTATION_SEED"])
        if env.get("JUDGE_ROTATION_MAX_DEVIATION"):
            config.MAX_WORKLOAD_DEVIATION = float(env["JUDGE_ROTATION_MAX_DEVIATION"])
        if env.get("JUDGE_ROTATION_SHOW_PROGRESS"):
            config.SHOW_PROGRESS = _env_flag(env["JUDGE_ROTATION_SHOW_PROGRESS"])
        return config


@dataclass
class JudgeAssignment:
    judge_name: str
    table_numbers: List[int]


@dataclass
class AttemptRecord:
    attempt: int
    issues_before_repair: int
    issues_after_repair: int
    repaired: bool = False
    insertions: int = 0
    compacted: int = 0
    accepted: bool = False


@dataclass
class ScheduleResult:
    success: bool
    assignments: List[JudgeAssignment] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    attempts: int = 0
    schedule: Optional[Schedule] = None
    history: List[AttemptRecord] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_response(self) -> ScheduleResponse:
        return ScheduleResponse(
            success=self.success,
            assignments=[
                JudgeAssignmentInfo(judge_name=a.judge_name, table_numbers=a.table_numbers)
                for a in self.assignments
            ],
            issues=self.issues,
            warnings=self.warnings,
            attempts=self.attempts,
        )


class JudgeScheduler:
    """
    Retry driver around generation, verification and repair.

    The scheduler owns a single random source for the run. Every attempt
    builds its own generator and counters, so nothing carries over between
    attempts except the state of that random source.
    """

    def __init__(
        self,
        projects: Sequence[Project],
        judges: Sequence[Judge],
        judgings_per_project: int,
        num_rooms: int,
        room_capacities: Optional[Sequence[int]] = None,
        config: Optional[AlgorithmConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or AlgorithmConfig()
        self._validate(projects, judges, judgings_per_project, self.config.MAX_ATTEMPTS)

        self.projects = list(projects)
        self.judges = list(judges)
        self.judgings_per_project = judgings_per_project
        self.num_rooms = num_rooms
        self.rooms = partition_rooms(self.projects, num_rooms, room_capacities)

        if rng is not None:
            self.rng = rng
        else:
            self.rng = random.Random(self.config.RANDOM_SEED)
            if self.config.RANDOM_SEED is not None:
                logger.info(f"Random seed set to {self.config.RANDOM_SEED} for reproducibility")

        # Track every attempt's outcome for logging/reporting
        self.attempt_history: List[AttemptRecord] = []

    @staticmethod
    def _validate(
        projects: Sequence[Project],
        judges: Sequence[Judge],
        judgings_per_project: int,
        max_attempts: int,
    ) -> None:
        if not projects:
            raise ConfigurationError("No projects provided")
        if not judges:
            raise ConfigurationError("No judges provided")
        if not isinstance(judgings_per_project, int) or judgings_per_project < 1:
            raise ConfigurationError(f"Invalid judgings per project: {judgings_per_project!r}")
        if not isinstance(max_attempts, int) or max_attempts < 1:
            raise ConfigurationError(f"Invalid max attempts: {max_attempts!r}")

        seen = set()
        for project in projects:
            if not isinstance(project.table_number, int) or project.table_number < 1:
                raise ConfigurationError(
                    f"Project {project.name!r} has invalid table number {project.table_number!r}"
                )
            if project.table_number in seen:
                raise ConfigurationError(f"Duplicate table number {project.table_number}")
            seen.add(project.table_number)

        ids = [j.judge_id for j in judges]
        if len(set(ids)) != len(ids):
            raise ConfigurationError("Judge ids must be unique")

    def _verify(self, schedule: Schedule) -> VerificationReport:
        verifier = AssignmentVerifier(
            schedule,
            self.projects,
            self.judges,
            self.judgings_per_project,
            max_deviation=self.config.MAX_WORKLOAD_DEVIATION,
        )
        return verifier.verify_all()

    def run_attempt(
        self, attempt: int
    ) -> Tuple[Schedule, VerificationReport, List[ScheduleIssue], AttemptRecord]:
        """
        Generate and verify one schedule.

        Over-judged attempts are returned as they are. Otherwise under-judged
        projects are topped up, idle cells are compacted and the schedule is
        verified again from scratch.
        """
        generator = AssignmentGenerator(
            self.rooms, len(self.judges), self.judgings_per_project, self.rng
        )
        # Generator works on judge indexes; re-key the cells by judge id
        raw = generator.generate()
        schedule = Schedule(
            cells={judge.judge_id: raw.cells[idx] for idx, judge in enumerate(self.judges)}
        )

        report = self._verify(schedule)
        record = AttemptRecord(
            attempt=attempt,
            issues_before_repair=len(report.blocking_issues),
            issues_after_repair=len(report.blocking_issues),
        )

        if report.over_judged:
            logger.warning(
                "Attempt %d over-judged %d project(s); regenerating from scratch",
                attempt,
                len(report.over_judged),
            )
        else:
            if report.under_judged:
                logger.info(
                    "Attempt %d left %d project(s) under-judged; attempting repair",
                    attempt,
                    len(report.under_judged),
                )
                repair = RepairPass(schedule)
                unresolved = repair.repair(report.under_judged)
                record.repaired = True
                record.insertions = repair.insertions
                if not unresolved:
                    logger.info("Successfully fixed all under-judged projects")
            record.compacted = compact_idle_slots(schedule)
            report = self._verify(schedule)
            record.issues_after_repair = len(report.blocking_issues)

        record.accepted = report.success
        return schedule, report, generator.warnings, record

    def _build_assignments(self, schedule: Schedule) -> List[JudgeAssignment]:
        return [
            JudgeAssignment(
                judge_name=judge.display_name(),
                table_numbers=schedule.assigned_tables(judge.judge_id),
            )
            for judge in self.judges
        ]

    def _stats(self, schedule: Schedule, report: VerificationReport) -> Dict[str, Any]:
        loads = [len(schedule.assigned_tables(j)) for j in schedule.judge_ids]
        return {
            "total_projects": len(self.projects),
            "total_judges": len(self.judges),
            "num_rooms": len(self.rooms),
            "judgings_per_project": self.judgings_per_project,
            "total_judgings": sum(loads),
            "num_slots": schedule.num_slots(),
            "idle_slots": sum(seq.count(IDLE) for seq in schedule.cells.values()),
            "average_load": sum(loads) / len(loads) if loads else 0,
            "min_load": min(loads, default=0),
            "max_load": max(loads, default=0),
            "issues_by_type": report.issue_counts(),
        }

    def solve(self) -> ScheduleResult:
        """
        Main solving method.

        Returns a successful result as soon as one attempt passes every
        blocking check. Otherwise returns a failed result carrying the last
        attempt's unresolved issues.
        """
        self.attempt_history = []
        max_attempts = self.config.MAX_ATTEMPTS
        last_report: Optional[VerificationReport] = None
        last_schedule: Optional[Schedule] = None
        last_warnings: List[ScheduleIssue] = []

        bar = tqdm.tqdm(
            range(1, max_attempts + 1),
            desc="Scheduling attempts",
            disable=not self.config.SHOW_PROGRESS,
        )
        for attempt in bar:
            logger.info("Attempt %d of %d", attempt, max_attempts)
            schedule, report, allocation_warnings, record = self.run_attempt(attempt)
            self.attempt_history.append(record)
            last_report, last_schedule = report, schedule
            last_warnings = allocation_warnings + report.warnings
            bar.set_postfix(issues=record.issues_after_repair, repaired=record.repaired)

            if report.success:
                logger.info("All verifications passed on attempt %d", attempt)
                bar.close()
                return ScheduleResult(
                    success=True,
                    assignments=self._build_assignments(schedule),
                    issues=[],
                    warnings=[str(w) for w in last_warnings],
                    attempts=attempt,
                    schedule=schedule,
                    history=list(self.attempt_history),
                    stats=self._stats(schedule, report),
                )

            logger.warning("Issues found in assignments:")
            for issue in report.blocking_issues:
                logger.warning("  - %s", issue)
            if attempt < max_attempts:
                logger.info("Retrying assignment generation...")
        bar.close()

        logger.error("Failed to generate valid assignments after %d attempts", max_attempts)
        return ScheduleResult(
            success=False,
            assignments=[],
            issues=[str(i) for i in last_report.blocking_issues],
            warnings=[str(w) for w in last_warnings],
            attempts=max_attempts,
            schedule=last_schedule,
            history=list(self.attempt_history),
            stats=self._stats(last_schedule, last_report),
        )


def build_scheduler(
    request: ScheduleRequest,
    config: Optional[AlgorithmConfig] = None,
    rng: Optional[random.Random] = None,
) -> JudgeScheduler:
    """
    Turn a validated request into a scheduler with 0-based sequential judge ids.

    ``max_attempts`` and ``seed`` override ``config`` only when the request
    sets them explicitly.
    """
    config = replace(config) if config is not None else AlgorithmConfig()
    if "max_attempts" in request.model_fields_set:
        config.MAX_ATTEMPTS = request.max_attempts
    if request.seed is not None:
        config.RANDOM_SEED = request.seed

    projects = [Project(table_number=p.table_number, name=p.name) for p in request.projects]
    judges = [Judge(judge_id=i, name=j.name) for i, j in enumerate(request.judges)]
    return JudgeScheduler(
        projects,
        judges,
        request.judgings_per_project,
        request.num_rooms,
        room_capacities=request.room_capacities,
        config=config,
        rng=rng,
    )


def generate_schedule(
    request: Union[ScheduleRequest, Mapping[str, Any]],
    rng: Optional[random.Random] = None,
    config: Optional[AlgorithmConfig] = None,
) -> ScheduleResult:
    """
    Build a judging schedule from a configuration.

    ``request`` is a ``ScheduleRequest`` or a mapping with the same fields.
    Raises ConfigurationError before any attempt when the input is unusable;
    every other problem is reported in the returned result.
    """
    if not isinstance(request, ScheduleRequest):
        request = ScheduleRequest.from_payload(dict(request))
    scheduler = build_scheduler(request, config=config, rng=rng)
    return scheduler.solve()


def main():
    """Main function with CLI support."""
    parser = argparse.ArgumentParser(
        description="Judge Rotation Scheduler - Assigns judges to project tables across rooms"
    )
    parser.add_argument("--judges", type=str, help="Path to judges JSON file")
    parser.add_argument("--projects", type=str, help="Path to projects JSON file")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Generate a random demo roster instead of reading files",
    )
    parser.add_argument(
        "--num-judges", type=int, default=20, help="Judges in the demo roster (default: 20)"
    )
    parser.add_argument(
        "--num-projects", type=int, default=50, help="Projects in the demo roster (default: 50)"
    )
    parser.add_argument(
        "--judgings-per-project",
        type=int,
        default=3,
        help="Number of distinct judges per project (default: 3)",
    )
    parser.add_argument(
        "--num-rooms", type=int, default=4, help="Number of judging rooms (default: 4)"
    )
    parser.add_argument(
        "--room-capacities",
        type=int,
        nargs="+",
        help="Judges each room can hold at once, one value per room",
    )
    parser.add_argument("--max-attempts", type=int, help="Maximum regeneration attempts")
    parser.add_argument("--config", type=str, help="Path to JSON file with algorithm configuration")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible results")
    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory to write outputs (default: data/outputs under project root)",
    )
    parser.add_argument("--quiet", action="store_true", help="Hide the progress bar")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging level",
    )
    args = parser.parse_args()
    if not args.demo and (not args.judges or not args.projects):
        parser.error("--judges and --projects are required unless using --demo")

    # Configure logging
    numeric_level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    # Load environment variables from .env file
    load_dotenv()
    config = AlgorithmConfig.from_env()

    # Load algorithm config if provided
    if args.config:
        try:
            with open(_resolve_path(args.config), "r") as f:
                config_data = json.load(f)
            config = AlgorithmConfig.from_env(AlgorithmConfig(**config_data))
            logging.info(f"Loaded algorithm configuration from {args.config}")
        except (OSError, ValueError, TypeError) as e:
            logging.error(f"Error loading configuration file: {e}", exc_info=True)
            sys.exit(1)

    # Override with command-line values if provided
    if args.seed is not None:
        config.RANDOM_SEED = args.seed
    if args.max_attempts is not None:
        config.MAX_ATTEMPTS = args.max_attempts
    config.SHOW_PROGRESS = not args.quiet

    room_capacities = args.room_capacities
    if args.demo:
        demo_rng = random.Random(config.RANDOM_SEED)
        judges = generate_demo_judges(args.num_judges, demo_rng)
        projects = generate_demo_projects(args.num_projects, demo_rng)
        if room_capacities is None and args.num_rooms == len(DEMO_ROOM_CAPACITIES):
            room_capacities = list(DEMO_ROOM_CAPACITIES)
    else:
        try:
            projects = load_projects(_resolve_path(args.projects))
            judges = load_judges(_resolve_path(args.judges))
        except (OSError, ValueError) as e:
            logging.error(f"Error loading rosters: {e}")
            sys.exit(1)

    payload = {
        "projects": [p.model_dump() for p in projects],
        "judges": [j.model_dump() for j in judges],
        "judgings_per_project": args.judgings_per_project,
        "num_rooms": args.num_rooms,
        "room_capacities": room_capacities,
        "max_attempts": config.MAX_ATTEMPTS,
        "seed": config.RANDOM_SEED,
    }

    try:
        request = ScheduleRequest.from_payload(payload)
        scheduler = build_scheduler(request, config=config)
    except ConfigurationError as e:
        logging.error(str(e))
        sys.exit(1)

    logging.info("=== Judge Rotation Setup ===")
    logging.info(f"- Judges: {len(scheduler.judges)}")
    logging.info(f"- Projects: {len(scheduler.projects)}")
    logging.info(f"- Judgings per project: {scheduler.judgings_per_project}")
    logging.info(f"- Rooms: {len(scheduler.rooms)}")
    for room in scheduler.rooms:
        logging.info(
            f"  Room {room.room_id}: {len(room.projects)} projects, capacity: {room.capacity} judges"
        )
    logging.info(f"- Max attempts: {config.MAX_ATTEMPTS}")

    result = scheduler.solve()

    # Save results
    from judge_rotation import reporting

    output_dir = (
        _resolve_path(args.output_dir)
        if args.output_dir
        else os.path.join(_project_root(), "data/outputs")
    )
    _ensure_dir(output_dir)

    results_path = os.path.join(output_dir, "schedule.json")
    reporting.save_result_json(result, results_path)
    logging.info(f"Saved results to {results_path}")

    md_path = os.path.join(output_dir, "schedule.md")
    reporting.save_schedule_markdown(result, scheduler.judges, scheduler.projects, md_path)
    logging.info(f"Saved Markdown schedule to {md_path}")

    issues_md_path = os.path.join(output_dir, "schedule_issues.md")
    reporting.save_issues_markdown(result, issues_md_path)
    logging.info(f"Saved issues report to {issues_md_path}")

    if result.schedule is not None:
        plot_path = os.path.join(output_dir, "judge_workload.png")
        try:
            reporting.save_workload_plot(
                result, scheduler.judges, plot_path, config.MAX_WORKLOAD_DEVIATION
            )
            logging.info(f"Saved workload plot to {plot_path}")
        except (OSError, ValueError) as e:
            logging.warning(f"Failed to save workload plot: {e}")

    # Print results summary to logs
    logging.info("=== Judge Rotation Solution ===")
    logging.info(f"- Success: {result.success}")
    logging.info(f"- Attempts used: {result.attempts}")
    for record in result.history:
        logging.info(
            f"  Attempt {record.attempt}: {record.issues_before_repair} issue(s) before repair, "
            f"{record.issues_after_repair} after"
            + (f" ({record.insertions} insertion(s))" if record.repaired else "")
        )
    for warning in result.warnings:
        logging.warning(f"  Warning: {warning}")

    if not result.success:
        logging.error("No valid assignments could be generated.")
        for issue in result.issues:
            logging.error(f"  - {issue}")
        sys.exit(1)

    logging.info("\nDetailed Judge Assignments:")
    for judge, assignment in zip(scheduler.judges, result.assignments):
        logging.info(
            f"  {assignment.judge_name} (ID {judge.judge_id + DISPLAY_ID_OFFSET}): "
            f"tables {assignment.table_numbers}"
        )


if __name__ == "__main__":
    main()
