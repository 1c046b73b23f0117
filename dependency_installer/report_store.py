from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .pipeline import PipelineResult
from .prerequisites import PrerequisiteStatus

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def build_report(
    *,
    log_path: str,
    prerequisites: Sequence[PrerequisiteStatus],
    result: Optional[PipelineResult],
) -> Dict[str, Any]:
    """Summarize a run. result is None when the pipeline never started."""

    execution: Dict[str, Any] = {
        "started": result is not None,
        "succeeded": bool(result and result.succeeded),
        "completed_sections": list(result.ran_sections) if result else [],
        "skipped_sections": list(result.skipped_sections) if result else [],
        "failure": None,
    }
    if result is not None and not result.succeeded:
        execution["failure"] = {
            "section": result.failed_section,
            "command": result.failed_command,
            "exit_code": result.exit_code,
        }

    return {
        "log_path": log_path,
        "prerequisites": [asdict(s) for s in prerequisites],
        "execution": execution,
    }


def save_report(path: str, report: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fmt = _detect_format(p)
    if fmt in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML report requested but PyYAML is not available. "
                "Use a .json report path or install PyYAML."
            ) from e
        p.write_text(yaml.safe_dump(report, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(report, indent=2, sort_keys=True) + "\n", encoding="utf-8")

    logger.debug("Wrote run report to %s", p)
