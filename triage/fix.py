"""Corrected-manifest generation for failing objects.

Prompt building and output cleanup are plain functions so they can be tested without a completion
service. Cleanup happens in two narrow places:
- `repair_api_version_prefix` once, when a completion becomes `Result.fixed_yaml`
- `strip_noise_markers` once, right before the artifact is written
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Set

from triage.core.context import RunContext
from triage.core.errors import CompletionServiceNotConfigured
from triage.core.models import Failure, Result
from triage.llm.client import CompletionService

logger = logging.getLogger(__name__)

FIXABLE_KINDS = frozenset({"Pod"})

API_VERSION_PREFIX = "apiVersion:"
NOISE_MARKERS = ("    # Fixed image name",)

# (component, substring that flags it, guidance line); order is the order guidance is rendered in.
_COMPONENTS = (
    ("image", "image", "Image references and pull policies"),
    ("configmap", "ConfigMap", "ConfigMap references and mounting"),
    ("healthcheck", "probe", "Health check probe configuration"),
    ("resources", "OOMKilled", "Resource limits and requests"),
)


def classify_failure_components(failures: Iterable[Failure]) -> Set[str]:
    """Each failure may flag several components; checks are independent."""
    found: Set[str] = set()
    for f in failures:
        for component, needle, _ in _COMPONENTS:
            if needle in f.text:
                found.add(component)
    return found


def _short_name(composite: str) -> str:
    return composite.rsplit("/", 1)[-1]


def build_pod_fix_prompt(
    result: Result,
    failure_texts: Optional[Iterable[str]] = None,
    display_name: Optional[str] = None,
) -> str:
    name = display_name if display_name is not None else result.name
    texts = list(failure_texts) if failure_texts is not None else [f.text for f in result.errors]
    issues = "\n".join(f"- {t}" for t in texts)
    prompt = (
        "Given a Kubernetes Pod with issues:\n"
        f"Pod Name: {name}\n"
        "Issues Found:\n"
        f"{issues}\n"
        "\n"
        "Please provide a corrected Pod YAML that:\n"
        "1. ONLY contains the YAML manifest\n"
        "2. Starts with 'apiVersion: v1'\n"
        "3. Uses kind: Pod\n"
        f"4. Keeps the pod name: {_short_name(name)}\n"
        "5. Fixes all identified issues"
    )

    components = classify_failure_components(result.errors)
    if components:
        prompt += "\n\nPay special attention to:"
        for component, _, guidance in _COMPONENTS:
            if component in components:
                prompt += f"\n- {guidance}"
    return prompt


def generate_fix(
    result: Result,
    completion: Optional[CompletionService],
    ctx: RunContext,
    *,
    failure_texts: Optional[Iterable[str]] = None,
    display_name: Optional[str] = None,
) -> str:
    """Ask the completion service for a corrected manifest; returns the whitespace-trimmed response."""
    if completion is None:
        raise CompletionServiceNotConfigured()
    prompt = build_pod_fix_prompt(result, failure_texts, display_name)
    logger.debug("fix prompt for %s/%s:\n%s", result.kind, result.name, prompt)
    return completion.get_completion(ctx, prompt).strip()


def repair_api_version_prefix(text: str) -> str:
    """Drop any preamble before the first `apiVersion:`; no-op if absent or already leading."""
    t = (text or "").strip()
    if t.startswith(API_VERSION_PREFIX):
        return t
    idx = t.find(API_VERSION_PREFIX)
    if idx < 0:
        return t
    logger.warning("completion did not start with %s; trimming %d leading chars", API_VERSION_PREFIX, idx)
    return t[idx:]


def strip_noise_markers(text: str) -> str:
    cleaned = (text or "").strip()
    for marker in NOISE_MARKERS:
        cleaned = cleaned.replace(marker, "")
    return cleaned
