"""Pod analyzer.

Detection order per pod (order is surfaced verbatim to users and prompts):
1. Pending + PodScheduled/Unschedulable condition message
2. init container statuses
3. regular container statuses

The detection itself is `detect_pod_failures()`: pod snapshot + event lookup in, failures out.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from triage.analyzers.base import BaseAnalyzer, meta_of, status_of
from triage.analyzers.events import fetch_latest_event
from triage.core.context import AnalyzerContext
from triage.core.models import Failure

EventLookup = Callable[[str, str], Optional[Dict[str, Any]]]


class WaitingReason(str, Enum):
    # Upstream kubelet reason strings; values must not change.
    CONTAINER_CREATING = "ContainerCreating"
    CRASH_LOOP_BACK_OFF = "CrashLoopBackOff"
    IMAGE_PULL_BACK_OFF = "ImagePullBackOff"
    CREATE_CONTAINER_CONFIG_ERROR = "CreateContainerConfigError"
    PRE_CREATE_HOOK_ERROR = "PreCreateHookError"
    CREATE_CONTAINER_ERROR = "CreateContainerError"
    PRE_START_HOOK_ERROR = "PreStartHookError"
    RUN_CONTAINER_ERROR = "RunContainerError"
    IMAGE_INSPECT_ERROR = "ImageInspectError"
    ERR_IMAGE_PULL = "ErrImagePull"
    ERR_IMAGE_NEVER_PULL = "ErrImageNeverPull"
    INVALID_IMAGE_NAME = "InvalidImageName"


class EventReason(str, Enum):
    FAILED_CREATE_POD_SANDBOX = "FailedCreatePodSandBox"
    FAILED_MOUNT = "FailedMount"
    UNHEALTHY = "Unhealthy"


ERROR_WAITING_REASONS = frozenset(
    r.value
    for r in (
        WaitingReason.CRASH_LOOP_BACK_OFF,
        WaitingReason.IMAGE_PULL_BACK_OFF,
        WaitingReason.CREATE_CONTAINER_CONFIG_ERROR,
        WaitingReason.PRE_CREATE_HOOK_ERROR,
        WaitingReason.CREATE_CONTAINER_ERROR,
        WaitingReason.PRE_START_HOOK_ERROR,
        WaitingReason.RUN_CONTAINER_ERROR,
        WaitingReason.IMAGE_INSPECT_ERROR,
        WaitingReason.ERR_IMAGE_PULL,
        WaitingReason.ERR_IMAGE_NEVER_PULL,
        WaitingReason.INVALID_IMAGE_NAME,
    )
)

ERROR_EVENT_REASONS = frozenset(
    r.value for r in (EventReason.FAILED_CREATE_POD_SANDBOX, EventReason.FAILED_MOUNT)
)

PHASE_PENDING = "Pending"
PHASE_RUNNING = "Running"


def is_error_reason(reason: Optional[str]) -> bool:
    return (reason or "") in ERROR_WAITING_REASONS


def is_event_error_reason(reason: Optional[str]) -> bool:
    return (reason or "") in ERROR_EVENT_REASONS


def crashloop_message(termination_reason: str, container: str, pod: str) -> str:
    return f"the last termination reason is {termination_reason} container={container} pod={pod}"


def _unschedulable_failures(status: Dict[str, Any]) -> List[Failure]:
    out: List[Failure] = []
    for cond in status.get("conditions") or []:
        if cond.get("type") == "PodScheduled" and cond.get("reason") == "Unschedulable":
            msg = cond.get("message") or ""
            if msg:
                out.append(Failure(text=msg))
    return out


def container_status_failures(
    statuses: List[Dict[str, Any]],
    *,
    pod_name: str,
    namespace: str,
    phase: str,
    latest_event: EventLookup,
) -> List[Failure]:
    failures: List[Failure] = []

    for cs in statuses or []:
        state = cs.get("state") or {}
        waiting = state.get("waiting")
        if waiting:
            reason = waiting.get("reason") or ""
            if reason == WaitingReason.CONTAINER_CREATING.value and phase == PHASE_PENDING:
                # Still being created or blocked (sandbox, volume mounts): the status alone says nothing.
                evt = latest_event(namespace, pod_name)
                if evt is None:
                    continue
                if is_event_error_reason(evt.get("reason")) and evt.get("message"):
                    failures.append(Failure(text=evt["message"]))
                continue

            terminated = ((cs.get("last_state") or {}).get("terminated")) or None
            if reason == WaitingReason.CRASH_LOOP_BACK_OFF.value and terminated is not None:
                failures.append(
                    Failure(text=crashloop_message(terminated.get("reason") or "", cs.get("name") or "", pod_name))
                )
            elif is_error_reason(reason) and waiting.get("message"):
                failures.append(Failure(text=waiting["message"]))
            continue

        # Running but not ready: usually a failing readiness probe, visible only through events.
        if not cs.get("ready") and phase == PHASE_RUNNING:
            evt = latest_event(namespace, pod_name)
            if evt is None:
                continue
            if evt.get("reason") == EventReason.UNHEALTHY.value and evt.get("message"):
                failures.append(Failure(text=evt["message"]))

    return failures


def detect_pod_failures(pod: Dict[str, Any], latest_event: EventLookup) -> List[Failure]:
    meta = meta_of(pod)
    status = status_of(pod)
    name = meta.get("name") or ""
    namespace = meta.get("namespace") or ""
    phase = status.get("phase") or ""

    failures: List[Failure] = []
    if phase == PHASE_PENDING:
        failures.extend(_unschedulable_failures(status))

    for key in ("init_container_statuses", "container_statuses"):
        failures.extend(
            container_status_failures(
                status.get(key) or [],
                pod_name=name,
                namespace=namespace,
                phase=phase,
                latest_event=latest_event,
            )
        )
    return failures


class PodAnalyzer(BaseAnalyzer):
    kind = "Pod"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        return detect_pod_failures(obj, lambda ns, name: fetch_latest_event(ctx, ns, name))
