"""Canonical domain models shared by analyzers, the orchestrator and output.

Design note:
- Result/Failure are strict: they are what we send to the completion service and what we render.
- `PreAnalysis.object` is a raw snapshot dict because analyzers read many different resource kinds.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Sensitive(BaseModelStrict):
    """A substring of a failure text that must not leave the process unmasked."""

    unmasked: str
    masked: str


class Failure(BaseModelStrict):
    text: str
    sensitive: List[Sensitive] = Field(default_factory=list)


class ObjectRef(BaseModelStrict):
    kind: str
    name: str
    namespace: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}"


class Result(BaseModelStrict):
    kind: str
    # Composite key: "{namespace}/{name}" for namespaced kinds, plain name otherwise.
    name: str
    parent_object: Optional[ObjectRef] = None
    errors: List[Failure] = Field(default_factory=list)
    explanation: str = ""
    fixed_yaml: str = ""

    def error_text(self) -> str:
        return "\n".join(f.text for f in self.errors)


class PreAnalysis(BaseModelStrict):
    """Per-object accumulator used while an analyzer scans; collapsed into a Result if failures exist."""

    object: Dict[str, Any] = Field(default_factory=dict)
    failures: List[Failure] = Field(default_factory=list)


def object_key(obj: Dict[str, Any]) -> str:
    """Return the `namespace/name` key for a snapshot (just `name` for cluster-scoped objects)."""
    meta = obj.get("metadata") or {}
    name = meta.get("name") or ""
    namespace = meta.get("namespace") or ""
    return f"{namespace}/{name}" if namespace else name
