"""Storage, node and scaling-policy analyzers."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from triage.analyzers.base import BaseAnalyzer, meta_of, spec_of, status_of
from triage.analyzers.events import fetch_latest_event
from triage.anonymize import sensitive
from triage.core.context import AnalyzerContext
from triage.core.models import Failure

_SCALE_TARGET_KINDS = ("Deployment", "ReplicaSet", "StatefulSet", "ReplicationController")

_LOG_ERROR_RE = re.compile(r"(error|exception|fail)", re.IGNORECASE)


class PvcAnalyzer(BaseAnalyzer):
    kind = "PersistentVolumeClaim"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta, status = meta_of(obj), status_of(obj)
        if status.get("phase") != "Pending":
            return []
        evt = fetch_latest_event(ctx, meta.get("namespace") or "", meta.get("name") or "")
        if evt is None:
            return []
        if evt.get("reason") == "ProvisioningFailed" and evt.get("message"):
            return [Failure(text=evt["message"])]
        return []


class NodeAnalyzer(BaseAnalyzer):
    kind = "Node"
    resolve_parent = False

    def list_objects(self, ctx: AnalyzerContext) -> List[Dict[str, Any]]:
        # Cluster-scoped: the namespace filter does not apply.
        return ctx.client.list_objects(
            self.kind, "", ctx.label_selector, request_timeout=ctx.run.request_timeout()
        )

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        name = meta_of(obj).get("name") or ""
        out: List[Failure] = []
        for cond in status_of(obj).get("conditions") or []:
            ctype, cstatus = cond.get("type"), cond.get("status")
            if ctype == "Ready":
                if cstatus == "True":
                    continue
            elif cstatus == "False":
                continue
            out.append(
                Failure(
                    text=f"{name} has condition of type {ctype}, reason {cond.get('reason')}: {cond.get('message')}",
                    sensitive=sensitive(name),
                )
            )
        return out


class HpaAnalyzer(BaseAnalyzer):
    kind = "HorizontalPodAutoscaler"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta, spec = meta_of(obj), spec_of(obj)
        ns = meta.get("namespace") or ""
        ref = spec.get("scale_target_ref") or {}
        target_kind, target_name = ref.get("kind") or "", ref.get("name") or ""

        if target_kind not in _SCALE_TARGET_KINDS:
            return [
                Failure(text=f"HorizontalPodAutoscaler uses {target_kind} as ScaleTargetRef which is not an option.")
            ]
        if target_kind == "ReplicationController":
            return []

        target = ctx.client.get_object(target_kind, ns, target_name, request_timeout=ctx.run.request_timeout())
        if target is None:
            return [
                Failure(
                    text=f"HorizontalPodAutoscaler uses {target_kind}/{target_name} as ScaleTargetRef which does not exist.",
                    sensitive=sensitive(target_name),
                )
            ]

        containers = (((spec_of(target).get("template") or {}).get("spec")) or {}).get("containers") or []
        for c in containers:
            resources = c.get("resources") or {}
            if not resources.get("requests") and not resources.get("limits"):
                return [
                    Failure(
                        text=f"{target_kind} {ns}/{target_name} does not have resource configured.",
                        sensitive=sensitive(ns, target_name),
                    )
                ]
        return []


class PdbAnalyzer(BaseAnalyzer):
    kind = "PodDisruptionBudget"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        spec, status = spec_of(obj), status_of(obj)
        out: List[Failure] = []
        for cond in status.get("conditions") or []:
            if cond.get("type") != "DisruptionAllowed" or cond.get("status") != "False":
                continue
            reason = cond.get("reason") or ""
            match_labels = (spec.get("selector") or {}).get("match_labels") or {}
            if not match_labels:
                out.append(Failure(text=f"{reason}: {cond.get('message') or ''}"))
                continue
            for k in sorted(match_labels):
                v = str(match_labels[k])
                out.append(
                    Failure(text=f"{reason}, expected pdb pod label {k}={v}", sensitive=sensitive(k, v))
                )
        return out


def error_lines(raw_logs: str) -> List[str]:
    return [line for line in (raw_logs or "").splitlines() if _LOG_ERROR_RE.search(line)]


class LogAnalyzer(BaseAnalyzer):
    """Scans the recent logs of every container for error-looking lines."""

    kind = "Log"
    list_kind = "Pod"
    tail_lines = 100

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta = meta_of(obj)
        ns, name = meta.get("namespace") or "", meta.get("name") or ""
        out: List[Failure] = []
        for c in spec_of(obj).get("containers") or []:
            cname = c.get("name") or ""
            raw = ctx.client.read_pod_log(
                name, ns, cname, self.tail_lines, request_timeout=ctx.run.request_timeout()
            )
            lines = error_lines(raw or "")
            if lines:
                out.append(
                    Failure(
                        text=f"container={cname} pod={name}\n" + "\n".join(lines),
                        sensitive=sensitive(name),
                    )
                )
        return out
