"""Controller analyzers: Deployment, ReplicaSet, StatefulSet, CronJob."""

from __future__ import annotations

from typing import Any, Dict, List

from triage.analyzers.base import BaseAnalyzer, meta_of, spec_of, status_of
from triage.anonymize import sensitive
from triage.core.context import AnalyzerContext
from triage.core.models import Failure

_CRON_MACROS = frozenset(
    {"@yearly", "@annually", "@monthly", "@weekly", "@daily", "@midnight", "@hourly"}
)


class DeploymentAnalyzer(BaseAnalyzer):
    kind = "Deployment"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta, spec, status = meta_of(obj), spec_of(obj), status_of(obj)
        ns, name = meta.get("namespace") or "", meta.get("name") or ""
        desired = spec.get("replicas")
        desired = 1 if desired is None else int(desired)
        current = int(status.get("replicas") or 0)
        ready = int(status.get("ready_replicas") or 0)

        if current > desired:
            updated = int(status.get("updated_replicas") or 0)
            return [
                Failure(
                    text=(
                        f"Deployment {ns}/{name} has {desired} replicas in spec but {current} replicas in status "
                        f"because status field is not updated yet after scaling and {updated} updated replicas"
                    ),
                    sensitive=sensitive(ns, name),
                )
            ]
        if ready < desired:
            return [
                Failure(
                    text=f"Deployment {ns}/{name} has {desired} replicas but {ready} are available with status running",
                    sensitive=sensitive(ns, name),
                )
            ]
        return []


class ReplicaSetAnalyzer(BaseAnalyzer):
    kind = "ReplicaSet"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        status = status_of(obj)
        if int(status.get("replicas") or 0) != 0:
            return []
        out: List[Failure] = []
        for cond in status.get("conditions") or []:
            if cond.get("type") == "ReplicaFailure" and cond.get("reason") == "FailedCreate" and cond.get("message"):
                out.append(Failure(text=cond["message"]))
        return out


class StatefulSetAnalyzer(BaseAnalyzer):
    kind = "StatefulSet"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta, spec = meta_of(obj), spec_of(obj)
        ns = meta.get("namespace") or ""
        out: List[Failure] = []

        svc_name = spec.get("service_name") or ""
        if svc_name:
            svc = ctx.client.get_object("Service", ns, svc_name, request_timeout=ctx.run.request_timeout())
            if svc is None:
                out.append(
                    Failure(
                        text=f"StatefulSet uses the service {ns}/{svc_name} which does not exist.",
                        sensitive=sensitive(ns, svc_name),
                    )
                )

        seen = set()
        for tpl in spec.get("volume_claim_templates") or []:
            sc = (tpl.get("spec") or {}).get("storage_class_name") or ""
            if not sc or sc in seen:
                continue
            seen.add(sc)
            found = ctx.client.get_object("StorageClass", "", sc, request_timeout=ctx.run.request_timeout())
            if found is None:
                out.append(Failure(text=f"StatefulSet uses the storage class {sc} which does not exist."))
        return out


def _schedule_looks_valid(schedule: str) -> bool:
    s = (schedule or "").strip()
    if not s:
        return False
    if s.startswith("@"):
        return s in _CRON_MACROS or s.startswith("@every ")
    fields = s.split()
    if fields[0].startswith(("TZ=", "CRON_TZ=")):
        fields = fields[1:]
    return len(fields) == 5


class CronJobAnalyzer(BaseAnalyzer):
    kind = "CronJob"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta, spec = meta_of(obj), spec_of(obj)
        name = meta.get("name") or ""
        out: List[Failure] = []

        if spec.get("suspend"):
            out.append(Failure(text=f"CronJob {name} is suspended", sensitive=sensitive(name)))
            return out

        schedule = spec.get("schedule") or ""
        if not _schedule_looks_valid(schedule):
            out.append(
                Failure(text=f"CronJob {name} has an invalid schedule: {schedule}", sensitive=sensitive(name))
            )

        deadline = spec.get("starting_deadline_seconds")
        if deadline is not None and int(deadline) < 0:
            out.append(Failure(text=f"CronJob {name} has a negative starting deadline", sensitive=sensitive(name)))
        return out
