"""
Pytest config.

Pins the repo root on sys.path so `import triage` works without an install, and provides an
in-memory Kubernetes provider plus snapshot builders shared by the analyzer tests.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


class FakeK8sProvider:
    """Dict-backed stand-in for DefaultK8sProvider."""

    def __init__(self) -> None:
        self.objects: Dict[str, List[Dict[str, Any]]] = {}
        self.events: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
        self.logs: Dict[Tuple[str, str, str], str] = {}
        self.list_errors: Dict[str, Exception] = {}
        self.event_error: Optional[Exception] = None
        self.list_calls: List[Tuple[str, str, str]] = []
        self.event_calls: List[Tuple[str, str]] = []

    def add(self, kind: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        self.objects.setdefault(kind, []).append(obj)
        return obj

    def list_objects(self, kind, namespace="", label_selector="", *, request_timeout=None):
        self.list_calls.append((kind, namespace, label_selector))
        if kind in self.list_errors:
            raise self.list_errors[kind]
        out = []
        wanted = dict(p.split("=", 1) for p in label_selector.split(",") if p) if label_selector else {}
        for obj in self.objects.get(kind, []):
            meta = obj.get("metadata") or {}
            if namespace and meta.get("namespace") != namespace:
                continue
            labels = meta.get("labels") or {}
            if any(labels.get(k) != v for k, v in wanted.items()):
                continue
            out.append(obj)
        return out

    def get_object(self, kind, namespace, name, *, request_timeout=None):
        for obj in self.objects.get(kind, []):
            meta = obj.get("metadata") or {}
            if meta.get("name") == name and (meta.get("namespace") or "") == (namespace or ""):
                return obj
        return None

    def get_events(self, *, namespace, resource_name, resource_kind=None, limit=30, request_timeout=None):
        self.event_calls.append((namespace, resource_name))
        if self.event_error is not None:
            raise self.event_error
        return list(self.events.get((namespace, resource_name), []))[:limit]

    def read_pod_log(self, pod_name, namespace, container=None, tail_lines=100, *, request_timeout=None):
        return self.logs.get((namespace, pod_name, container or ""))


def make_pod(
    name: str,
    namespace: str = "default",
    *,
    phase: str = "Running",
    container_statuses: Optional[List[Dict[str, Any]]] = None,
    init_container_statuses: Optional[List[Dict[str, Any]]] = None,
    conditions: Optional[List[Dict[str, Any]]] = None,
    owner_references: Optional[List[Dict[str, Any]]] = None,
    labels: Optional[Dict[str, str]] = None,
    containers: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    return {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": labels or {},
            "owner_references": owner_references,
        },
        "spec": {"containers": containers or [{"name": "app", "image": "nginx"}]},
        "status": {
            "phase": phase,
            "conditions": conditions,
            "container_statuses": container_statuses,
            "init_container_statuses": init_container_statuses,
        },
    }


def waiting(name: str, reason: str, message: str = "", *, terminated_reason: Optional[str] = None) -> Dict[str, Any]:
    cs: Dict[str, Any] = {
        "name": name,
        "ready": False,
        "state": {"waiting": {"reason": reason, "message": message or None}, "running": None, "terminated": None},
        "last_state": {"terminated": None},
    }
    if terminated_reason is not None:
        cs["last_state"] = {"terminated": {"reason": terminated_reason, "exit_code": 137}}
    return cs


def running(name: str, *, ready: bool) -> Dict[str, Any]:
    return {
        "name": name,
        "ready": ready,
        "state": {"waiting": None, "running": {"started_at": None}, "terminated": None},
        "last_state": {},
    }


def event(reason: str, message: str, ts: str = "2025-01-01T00:00:00+00:00") -> Dict[str, Any]:
    return {"type": "Warning", "reason": reason, "message": message, "last_timestamp": ts}


@pytest.fixture
def k8s() -> FakeK8sProvider:
    return FakeK8sProvider()


@pytest.fixture
def analyzer_ctx(k8s):
    from triage.core.context import AnalyzerContext, RunContext

    return AnalyzerContext(client=k8s, run=RunContext())
