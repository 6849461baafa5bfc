"""Write a scheduling result to JSON, Markdown and a workload chart."""

import json
import logging
from typing import List, Sequence

import matplotlib.pyplot as plt

from judge_rotation.models import DISPLAY_ID_OFFSET, IDLE, Judge, Project
from judge_rotation.utils import _to_json_compatible

logger = logging.getLogger(__name__)

IDLE_LABEL = "No team for this time slot"


def save_result_json(result, output_path: str) -> None:
    """Save the result plus the raw slot matrix (idle cells kept as -1)."""
    payload = {
        "result": result.to_response(),
        "stats": result.stats,
        "history": result.history,
    }
    if result.schedule is not None:
        payload["slots"] = result.schedule
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(_to_json_compatible(payload), f, indent=2)


def save_schedule_markdown(
    result, judges: Sequence[Judge], projects: Sequence[Project], output_path: str
) -> None:
    """Save a human-readable Markdown table of every judge's slots."""
    lines: List[str] = []
    if not result.success or result.schedule is None:
        lines.append("No valid assignments could be generated.")
        with open(output_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        return

    schedule = result.schedule
    by_table = {p.table_number: p for p in projects}
    num_slots = schedule.num_slots()

    header = ["Judge", "Judge ID"] + [f"Slot {i + 1}" for i in range(num_slots)]
    lines.append("| " + " | ".join(header) + " |")
    lines.append("|" + "---|" * len(header))
    for judge in judges:
        row = [judge.display_name(), str(judge.judge_id + DISPLAY_ID_OFFSET)]
        for slot_index in range(num_slots):
            table = schedule.cell(judge.judge_id, slot_index)
            if table == IDLE:
                row.append(IDLE_LABEL)
            else:
                project = by_table.get(table)
                name = project.display_name() if project else "?"
                row.append(f"{name} (Table {table})")
        lines.append("| " + " | ".join(row) + " |")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines).strip() + "\n")


def save_issues_markdown(result, output_path: str) -> None:
    """Save a Markdown report of the outcome, the issues and each attempt."""
    lines: List[str] = []

    lines.append("Summary:")
    lines.append(f"- Success: {result.success}")
    lines.append(f"- Attempts: {result.attempts}")
    for key in ("total_projects", "total_judges", "num_rooms", "num_slots", "idle_slots"):
        if key in result.stats:
            lines.append(f"- {key.replace('_', ' ').capitalize()}: {result.stats[key]}")
    issues_by_type = result.stats.get("issues_by_type")
    if isinstance(issues_by_type, dict) and issues_by_type:
        lines.append("- Issues by type:")
        for itype, count in issues_by_type.items():
            lines.append(f"  - {itype}: {count}")
    lines.append("")

    lines.append("Issues:")
    if result.issues:
        lines.extend(f"- {issue}" for issue in result.issues)
    else:
        lines.append("- No issues.")
    lines.append("")

    lines.append("Warnings:")
    if result.warnings:
        lines.extend(f"- {warning}" for warning in result.warnings)
    else:
        lines.append("- No warnings.")
    lines.append("")

    lines.append("Attempts:")
    for record in result.history:
        outcome = "accepted" if record.accepted else "rejected"
        repaired = f", repaired with {record.insertions} insertion(s)" if record.repaired else ""
        compacted = f", {record.compacted} idle slot(s) compacted" if record.compacted else ""
        lines.append(
            f"- Attempt {record.attempt}: {outcome}; {record.issues_before_repair} issue(s) "
            f"before repair, {record.issues_after_repair} after{repaired}{compacted}"
        )

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines).strip() + "\n")


def save_workload_plot(
    result, judges: Sequence[Judge], output_path: str, max_deviation: float = 2.0
) -> None:
    """Bar chart of judgings per judge against the mean and the allowed band."""
    if result.schedule is None:
        raise ValueError("Result has no schedule to plot")

    labels = [str(j.judge_id + DISPLAY_ID_OFFSET) for j in judges]
    loads = [len(result.schedule.assigned_tables(j.judge_id)) for j in judges]
    mean = sum(loads) / len(loads) if loads else 0.0

    fig, ax = plt.subplots(figsize=(max(6, 0.4 * len(labels)), 4.5))
    colors = ["#d62728" if abs(load - mean) > max_deviation else "#1f77b4" for load in loads]
    ax.bar(labels, loads, color=colors)
    ax.axhline(mean, color="#ff7f0e", linewidth=1.5, label=f"Mean ({mean:.1f})")
    ax.axhspan(mean - max_deviation, mean + max_deviation, color="#ff7f0e", alpha=0.12)
    ax.set_title("Judgings per Judge")
    ax.set_xlabel("Judge ID")
    ax.set_ylabel("Assigned projects")
    ax.tick_params(axis="x", labelrotation=90)
    ax.grid(True, axis="y", linestyle=":", alpha=0.5)
    ax.legend(loc="upper right")

    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    logger.debug("Workload plot written to %s", output_path)
