"""Analyzers for non-Pod kinds."""

from __future__ import annotations

import pytest

from conftest import event, make_pod


def _meta(name, namespace="default", **extra):
    m = {"name": name, "namespace": namespace, "owner_references": None}
    m.update(extra)
    return m


def _texts(results):
    return [[f.text for f in r.errors] for r in results]


def test_deployment_with_unavailable_replicas(k8s, analyzer_ctx) -> None:
    from triage.analyzers.workloads import DeploymentAnalyzer

    k8s.add("Deployment", {"metadata": _meta("web"), "spec": {"replicas": 3}, "status": {"replicas": 3, "ready_replicas": 1}})
    k8s.add("Deployment", {"metadata": _meta("ok"), "spec": {"replicas": 2}, "status": {"replicas": 2, "ready_replicas": 2}})

    results = DeploymentAnalyzer().analyze(analyzer_ctx)
    assert [r.name for r in results] == ["default/web"]
    assert _texts(results) == [["Deployment default/web has 3 replicas but 1 are available with status running"]]


def test_deployment_scaling_in_progress(k8s, analyzer_ctx) -> None:
    from triage.analyzers.workloads import DeploymentAnalyzer

    k8s.add(
        "Deployment",
        {"metadata": _meta("web"), "spec": {"replicas": 1}, "status": {"replicas": 3, "updated_replicas": 1}},
    )
    text = _texts(DeploymentAnalyzer().analyze(analyzer_ctx))[0][0]
    assert text.startswith("Deployment default/web has 1 replicas in spec but 3 replicas in status")


def test_replicaset_failed_create(k8s, analyzer_ctx) -> None:
    from triage.analyzers.workloads import ReplicaSetAnalyzer

    k8s.add(
        "ReplicaSet",
        {
            "metadata": _meta("web-1"),
            "status": {
                "replicas": 0,
                "conditions": [
                    {"type": "ReplicaFailure", "reason": "FailedCreate", "message": 'pods "web-1-" is forbidden: quota'}
                ],
            },
        },
    )
    assert _texts(ReplicaSetAnalyzer().analyze(analyzer_ctx)) == [['pods "web-1-" is forbidden: quota']]


def test_pvc_pending_reports_provisioning_failure(k8s, analyzer_ctx) -> None:
    from triage.analyzers.cluster import PvcAnalyzer

    k8s.add("PersistentVolumeClaim", {"metadata": _meta("data"), "status": {"phase": "Pending"}})
    k8s.events[("default", "data")] = [event("ProvisioningFailed", 'storageclass "fast" not found')]

    assert _texts(PvcAnalyzer().analyze(analyzer_ctx)) == [['storageclass "fast" not found']]


def test_service_without_endpoints_lists_selector_labels(k8s, analyzer_ctx) -> None:
    from triage.analyzers.networking import ServiceAnalyzer

    k8s.add("Service", {"metadata": _meta("web"), "spec": {"selector": {"tier": "fe", "app": "web"}}})

    results = ServiceAnalyzer().analyze(analyzer_ctx)
    assert _texts(results) == [
        ["Service has no endpoints, expected label app=web", "Service has no endpoints, expected label tier=fe"]
    ]
    assert [s.unmasked for s in results[0].errors[0].sensitive] == ["app", "web"]


def test_service_with_not_ready_endpoints(k8s, analyzer_ctx) -> None:
    from triage.analyzers.networking import ServiceAnalyzer

    k8s.add("Service", {"metadata": _meta("web"), "spec": {"selector": {"app": "web"}}})
    k8s.add(
        "Endpoints",
        {
            "metadata": _meta("web"),
            "subsets": [
                {
                    "addresses": None,
                    "not_ready_addresses": [{"ip": "10.0.0.5", "target_ref": {"kind": "Pod", "name": "web-abc"}}],
                }
            ],
        },
    )
    assert _texts(ServiceAnalyzer().analyze(analyzer_ctx)) == [
        ["Service has not ready endpoints, pods: [Pod/web-abc], expected 1"]
    ]


def test_ingress_missing_class_service_and_secret(k8s, analyzer_ctx) -> None:
    from triage.analyzers.networking import IngressAnalyzer

    k8s.add(
        "Ingress",
        {
            "metadata": _meta("web", annotations=None),
            "spec": {
                "ingress_class_name": None,
                "rules": [{"http": {"paths": [{"backend": {"service": {"name": "web-svc"}}}]}}],
                "tls": [{"secret_name": "web-tls"}],
            },
        },
    )
    assert _texts(IngressAnalyzer().analyze(analyzer_ctx)) == [
        [
            "Ingress default/web does not specify an Ingress class.",
            "Ingress uses the service default/web-svc which does not exist.",
            "Ingress uses the secret default/web-tls as a TLS certificate which does not exist.",
        ]
    ]


def test_ingress_with_annotation_class_and_existing_backends_is_clean(k8s, analyzer_ctx) -> None:
    from triage.analyzers.networking import IngressAnalyzer

    k8s.add("Service", {"metadata": _meta("web-svc")})
    k8s.add(
        "Ingress",
        {
            "metadata": _meta("web", annotations={"kubernetes.io/ingress.class": "nginx"}),
            "spec": {"rules": [{"http": {"paths": [{"backend": {"service": {"name": "web-svc"}}}]}}]},
        },
    )
    assert IngressAnalyzer().analyze(analyzer_ctx) == []


def test_statefulset_missing_service_and_storage_class(k8s, analyzer_ctx) -> None:
    from triage.analyzers.workloads import StatefulSetAnalyzer

    k8s.add(
        "StatefulSet",
        {
            "metadata": _meta("db"),
            "spec": {
                "service_name": "db-headless",
                "volume_claim_templates": [{"spec": {"storage_class_name": "fast"}}],
            },
        },
    )
    assert _texts(StatefulSetAnalyzer().analyze(analyzer_ctx)) == [
        [
            "StatefulSet uses the service default/db-headless which does not exist.",
            "StatefulSet uses the storage class fast which does not exist.",
        ]
    ]


def test_cronjob_checks(k8s, analyzer_ctx) -> None:
    from triage.analyzers.workloads import CronJobAnalyzer

    k8s.add("CronJob", {"metadata": _meta("paused"), "spec": {"suspend": True, "schedule": "*/5 * * * *"}})
    k8s.add("CronJob", {"metadata": _meta("bad"), "spec": {"schedule": "every minute", "starting_deadline_seconds": -5}})
    k8s.add("CronJob", {"metadata": _meta("good"), "spec": {"schedule": "@hourly"}})

    assert _texts(CronJobAnalyzer().analyze(analyzer_ctx)) == [
        ["CronJob paused is suspended"],
        ["CronJob bad has an invalid schedule: every minute", "CronJob bad has a negative starting deadline"],
    ]


def test_node_conditions(k8s, analyzer_ctx) -> None:
    from triage.analyzers.cluster import NodeAnalyzer

    analyzer_ctx.namespace = "ignored-for-nodes"
    k8s.add(
        "Node",
        {
            "metadata": {"name": "node-1", "namespace": None},
            "status": {
                "conditions": [
                    {"type": "MemoryPressure", "status": "True", "reason": "KubeletHasInsufficientMemory", "message": "low"},
                    {"type": "DiskPressure", "status": "False", "reason": "KubeletHasNoDiskPressure", "message": "ok"},
                    {"type": "Ready", "status": "True", "reason": "KubeletReady", "message": "ready"},
                ]
            },
        },
    )
    results = NodeAnalyzer().analyze(analyzer_ctx)
    assert [r.name for r in results] == ["node-1"]
    assert _texts(results) == [["node-1 has condition of type MemoryPressure, reason KubeletHasInsufficientMemory: low"]]
    assert results[0].parent_object is None


def test_hpa_missing_target_and_missing_resources(k8s, analyzer_ctx) -> None:
    from triage.analyzers.cluster import HpaAnalyzer

    k8s.add(
        "HorizontalPodAutoscaler",
        {"metadata": _meta("h1"), "spec": {"scale_target_ref": {"kind": "Deployment", "name": "gone"}}},
    )
    k8s.add(
        "HorizontalPodAutoscaler",
        {"metadata": _meta("h2"), "spec": {"scale_target_ref": {"kind": "Deployment", "name": "web"}}},
    )
    k8s.add(
        "Deployment",
        {"metadata": _meta("web"), "spec": {"template": {"spec": {"containers": [{"name": "app", "resources": {}}]}}}},
    )

    assert _texts(HpaAnalyzer().analyze(analyzer_ctx)) == [
        ["HorizontalPodAutoscaler uses Deployment/gone as ScaleTargetRef which does not exist."],
        ["Deployment default/web does not have resource configured."],
    ]


def test_pdb_disruption_not_allowed(k8s, analyzer_ctx) -> None:
    from triage.analyzers.cluster import PdbAnalyzer

    k8s.add(
        "PodDisruptionBudget",
        {
            "metadata": _meta("web-pdb"),
            "spec": {"selector": {"match_labels": {"app": "web"}}},
            "status": {"conditions": [{"type": "DisruptionAllowed", "status": "False", "reason": "InsufficientPods"}]},
        },
    )
    assert _texts(PdbAnalyzer().analyze(analyzer_ctx)) == [["InsufficientPods, expected pdb pod label app=web"]]


def test_network_policy_checks(k8s, analyzer_ctx) -> None:
    from triage.analyzers.networking import NetworkPolicyAnalyzer

    k8s.add("NetworkPolicy", {"metadata": _meta("allow-all"), "spec": {"pod_selector": {}}})
    k8s.add("NetworkPolicy", {"metadata": _meta("orphan"), "spec": {"pod_selector": {"match_labels": {"app": "gone"}}}})
    k8s.add("NetworkPolicy", {"metadata": _meta("used"), "spec": {"pod_selector": {"match_labels": {"app": "web"}}}})
    k8s.add("Pod", make_pod("web-1", labels={"app": "web"}))

    assert _texts(NetworkPolicyAnalyzer().analyze(analyzer_ctx)) == [
        ["Network policy allows traffic to all pods: allow-all"],
        ["Network policy is not applied to any pods: orphan"],
    ]


def test_log_analyzer_collects_error_lines(k8s, analyzer_ctx) -> None:
    from triage.analyzers.cluster import LogAnalyzer

    k8s.add("Pod", make_pod("web-1"))
    k8s.logs[("default", "web-1", "app")] = "starting\nERROR: db connection refused\nok\nretry failed\n"

    results = LogAnalyzer().analyze(analyzer_ctx)
    assert results[0].kind == "Log"
    assert _texts(results) == [["container=app pod=web-1\nERROR: db connection refused\nretry failed"]]


def test_analyzer_without_detect_hook_fails_loudly(k8s, analyzer_ctx) -> None:
    from triage.analyzers.base import BaseAnalyzer

    class _Unfinished(BaseAnalyzer):
        kind = "Pod"

    k8s.add("Pod", make_pod("web-1"))
    with pytest.raises(NotImplementedError, match="_Unfinished does not implement detect"):
        _Unfinished().analyze(analyzer_ctx)
