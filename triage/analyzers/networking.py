"""Networking analyzers: Service, Ingress, NetworkPolicy."""

from __future__ import annotations

from typing import Any, Dict, List

from triage.analyzers.base import BaseAnalyzer, meta_of, spec_of
from triage.anonymize import sensitive
from triage.core.context import AnalyzerContext
from triage.core.models import Failure

INGRESS_CLASS_ANNOTATION = "kubernetes.io/ingress.class"


def label_selector_string(match_labels: Dict[str, Any]) -> str:
    return ",".join(f"{k}={match_labels[k]}" for k in sorted(match_labels))


class ServiceAnalyzer(BaseAnalyzer):
    kind = "Service"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta, spec = meta_of(obj), spec_of(obj)
        ns, name = meta.get("namespace") or "", meta.get("name") or ""
        selector = spec.get("selector") or {}
        if not selector:
            # Selector-less services manage their endpoints by hand.
            return []

        ep = ctx.client.get_object("Endpoints", ns, name, request_timeout=ctx.run.request_timeout())
        subsets = (ep or {}).get("subsets") or []

        out: List[Failure] = []
        if not subsets:
            for k in sorted(selector):
                v = str(selector[k])
                out.append(
                    Failure(
                        text=f"Service has no endpoints, expected label {k}={v}",
                        sensitive=sensitive(k, v),
                    )
                )
            return out

        not_ready: List[str] = []
        for subset in subsets:
            for addr in subset.get("not_ready_addresses") or []:
                ref = addr.get("target_ref") or {}
                if ref.get("name"):
                    not_ready.append(f"{ref.get('kind') or 'Pod'}/{ref['name']}")
                else:
                    not_ready.append(addr.get("ip") or "")
        if not_ready:
            out.append(
                Failure(
                    text=f"Service has not ready endpoints, pods: [{', '.join(not_ready)}], expected {len(not_ready)}",
                )
            )
        return out


class IngressAnalyzer(BaseAnalyzer):
    kind = "Ingress"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta, spec = meta_of(obj), spec_of(obj)
        ns, name = meta.get("namespace") or "", meta.get("name") or ""
        out: List[Failure] = []

        class_name = spec.get("ingress_class_name") or (meta.get("annotations") or {}).get(INGRESS_CLASS_ANNOTATION)
        if not class_name:
            out.append(
                Failure(
                    text=f"Ingress {ns}/{name} does not specify an Ingress class.",
                    sensitive=sensitive(ns, name),
                )
            )
        elif spec.get("ingress_class_name"):
            ic = ctx.client.get_object("IngressClass", "", class_name, request_timeout=ctx.run.request_timeout())
            if ic is None:
                out.append(Failure(text=f"Ingress uses the ingress class {class_name} which does not exist."))

        seen_services = set()
        for rule in spec.get("rules") or []:
            for path in ((rule.get("http") or {}).get("paths")) or []:
                svc_name = (((path.get("backend") or {}).get("service")) or {}).get("name") or ""
                if not svc_name or svc_name in seen_services:
                    continue
                seen_services.add(svc_name)
                svc = ctx.client.get_object("Service", ns, svc_name, request_timeout=ctx.run.request_timeout())
                if svc is None:
                    out.append(
                        Failure(
                            text=f"Ingress uses the service {ns}/{svc_name} which does not exist.",
                            sensitive=sensitive(ns, svc_name),
                        )
                    )

        for tls in spec.get("tls") or []:
            secret_name = tls.get("secret_name") or ""
            if not secret_name:
                continue
            secret = ctx.client.get_object("Secret", ns, secret_name, request_timeout=ctx.run.request_timeout())
            if secret is None:
                out.append(
                    Failure(
                        text=f"Ingress uses the secret {ns}/{secret_name} as a TLS certificate which does not exist.",
                        sensitive=sensitive(ns, secret_name),
                    )
                )
        return out


class NetworkPolicyAnalyzer(BaseAnalyzer):
    kind = "NetworkPolicy"

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        meta, spec = meta_of(obj), spec_of(obj)
        ns, name = meta.get("namespace") or "", meta.get("name") or ""
        pod_selector = spec.get("pod_selector") or {}
        match_labels = pod_selector.get("match_labels") or {}

        if not match_labels and not pod_selector.get("match_expressions"):
            return [Failure(text=f"Network policy allows traffic to all pods: {name}", sensitive=sensitive(name))]
        if not match_labels:
            return []

        pods = ctx.client.list_objects(
            "Pod", ns, label_selector_string(match_labels), request_timeout=ctx.run.request_timeout()
        )
        if not pods:
            return [Failure(text=f"Network policy is not applied to any pods: {name}", sensitive=sensitive(name))]
        return []
