"""Console rendering and fix-artifact persistence for analysis results.

We keep printing out of the orchestrator; these helpers return strings or write files.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from triage.core.models import Result
from triage.fix import strip_noise_markers

logger = logging.getLogger(__name__)


def fixed_yaml_filename(result: Result) -> str:
    # `result.name` is the composite key as stored ("namespace/name"), so this may contain a directory.
    return f"fixed-{result.kind}-{result.name}.yaml"


def render_result(index: int, result: Result) -> str:
    lines: List[str] = [f"{index}: {result.kind} {result.name}"]
    if result.parent_object is not None:
        lines[0] += f"({result.parent_object})"
    for f in result.errors:
        lines.append(f"- Error: {f.text}")
    if result.explanation:
        lines.append("")
        lines.append(result.explanation)
    return "\n".join(lines)


def write_fixed_yaml(result: Result, output_dir: str = ".") -> Optional[Path]:
    """
    Persist `result.fixed_yaml` (noise-stripped, trailing newline).

    Returns the written path, or None when there is nothing to write or the write failed.
    Failures are logged and never raised so one bad artifact does not stop the run.
    """
    if not result.fixed_yaml:
        return None

    clean = strip_noise_markers(result.fixed_yaml)
    path = Path(output_dir) / fixed_yaml_filename(result)
    logger.info("Saving fixed YAML for %s/%s to %s", result.kind, result.name, path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(clean + "\n", encoding="utf-8")
    except OSError as e:
        logger.error("Error saving file %s: %s", path, e)
        return None

    if not path.exists():
        logger.error("File verification failed: %s", path)
        return None
    return path


def result_to_dict(result: Result) -> Dict[str, Any]:
    return result.model_dump(mode="json")


def results_to_json(results: List[Result]) -> str:
    payload = {
        "status": "ProblemDetected" if results else "OK",
        "problems": sum(len(r.errors) for r in results),
        "results": [result_to_dict(r) for r in results],
    }
    return json.dumps(payload, indent=2, sort_keys=False)
