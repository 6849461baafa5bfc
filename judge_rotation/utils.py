import os
from typing import Any
from dataclasses import is_dataclass, asdict

from pydantic import BaseModel

from judge_rotation.models import Schedule


def _ensure_dir(path: str) -> str:
    os.makedirs(path, exist_ok=True)
    return path


def _project_root() -> str:
    """Return absolute path to the project root (one level up from the package directory)."""
    return os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))


def _resolve_path(path: str) -> str:
    """Resolve relative paths to the project root if they don't exist as given."""
    if not path or os.path.exists(path):
        return path
    if os.path.isabs(path):
        return path
    return os.path.join(_project_root(), path)


def _to_json_compatible(obj: Any) -> Any:
    """
    Convert report payloads to JSON primitives.

    Schedules become ``{"<judge id>": [table, ...]}`` with idle cells kept as
    -1, pydantic models are dumped in JSON mode, and dataclasses (attempt
    records) become dicts. Dict keys are stringified because slot and judge
    ids are ints.
    """
    if isinstance(obj, Schedule):
        return {str(judge_id): list(obj.slots(judge_id)) for judge_id in obj.judge_ids}
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if is_dataclass(obj) and not isinstance(obj, type):
        return {k: _to_json_compatible(v) for k, v in asdict(obj).items()}
    if isinstance(obj, (list, tuple)):
        return [_to_json_compatible(v) for v in obj]
    if isinstance(obj, dict):
        return {str(k): _to_json_compatible(v) for k, v in obj.items()}
    return obj
