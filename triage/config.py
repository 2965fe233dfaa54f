from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True)
class TriageConfig:
    # Scope
    namespace: str
    label_selector: str

    # Feature flags
    explain: bool
    fix: bool
    anonymize: bool

    timeout_seconds: float
    output_dir: str
    # Optional YAML file with the `integrations:` activation mapping
    config_path: Optional[str]


def load_config() -> TriageConfig:
    try:
        timeout = float((os.getenv("TRIAGE_TIMEOUT_SECONDS") or "").strip() or "300")
    except ValueError:
        timeout = 300.0
    timeout = max(5.0, min(timeout, 3600.0))

    return TriageConfig(
        namespace=(os.getenv("TRIAGE_NAMESPACE") or "").strip(),
        label_selector=(os.getenv("TRIAGE_LABEL_SELECTOR") or "").strip(),
        explain=_env_bool("TRIAGE_EXPLAIN", False),
        fix=_env_bool("TRIAGE_FIX", False),
        anonymize=_env_bool("TRIAGE_ANONYMIZE", False),
        timeout_seconds=timeout,
        output_dir=(os.getenv("TRIAGE_OUTPUT_DIR") or "").strip() or ".",
        config_path=(os.getenv("TRIAGE_CONFIG") or "").strip() or None,
    )
