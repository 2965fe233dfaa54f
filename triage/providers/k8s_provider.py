"""Kubernetes API client for listing analyzable objects and related read-only context.

Objects are returned as snapshot dicts (`model.to_dict()`, snake_case keys) so analyzers never depend
on kubernetes client model classes and tests can feed plain dicts.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from dateutil import parser as date_parser

from triage.core.errors import UpstreamQueryError
from triage.core.models import ObjectRef

_apis: Dict[str, Any] = {}
_config_loaded = False
_init_lock = threading.Lock()


@runtime_checkable
class K8sProvider(Protocol):
    def list_objects(
        self,
        kind: str,
        namespace: str = "",
        label_selector: str = "",
        *,
        request_timeout: Optional[float] = None,
    ) -> List[Dict[str, Any]]: ...

    def get_object(
        self, kind: str, namespace: str, name: str, *, request_timeout: Optional[float] = None
    ) -> Optional[Dict[str, Any]]: ...

    def get_events(
        self,
        *,
        namespace: str,
        resource_name: str,
        resource_kind: Optional[str] = None,
        limit: int = 30,
        request_timeout: Optional[float] = None,
    ) -> List[Dict[str, Any]]: ...

    def read_pod_log(
        self,
        pod_name: str,
        namespace: str,
        container: Optional[str] = None,
        tail_lines: int = 100,
        *,
        request_timeout: Optional[float] = None,
    ) -> Optional[str]: ...


class DefaultK8sProvider:
    def list_objects(
        self,
        kind: str,
        namespace: str = "",
        label_selector: str = "",
        *,
        request_timeout: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        return list_objects(kind, namespace, label_selector, request_timeout=request_timeout)

    def get_object(
        self, kind: str, namespace: str, name: str, *, request_timeout: Optional[float] = None
    ) -> Optional[Dict[str, Any]]:
        return get_object(kind, namespace, name, request_timeout=request_timeout)

    def get_events(
        self,
        *,
        namespace: str,
        resource_name: str,
        resource_kind: Optional[str] = None,
        limit: int = 30,
        request_timeout: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        return get_events(
            namespace=namespace,
            resource_name=resource_name,
            resource_kind=resource_kind,
            limit=limit,
            request_timeout=request_timeout,
        )

    def read_pod_log(
        self,
        pod_name: str,
        namespace: str,
        container: Optional[str] = None,
        tail_lines: int = 100,
        *,
        request_timeout: Optional[float] = None,
    ) -> Optional[str]:
        return read_pod_log(pod_name, namespace, container, tail_lines, request_timeout=request_timeout)


def get_k8s_provider() -> K8sProvider:
    """Seam for swapping provider implementations (tests pass in-memory fakes)."""
    return DefaultK8sProvider()


def _api(group: str) -> Any:
    """
    Return a cached API group client ("core", "apps", "batch", "networking", "autoscaling", "policy", "storage").

    Config loading (in-cluster, then kubeconfig) happens once per process.
    """
    global _config_loaded

    api = _apis.get(group)
    if api is not None:
        return api

    with _init_lock:
        api = _apis.get(group)
        if api is not None:
            return api

        from kubernetes import client, config

        if not _config_loaded:
            try:
                config.load_incluster_config()
            except config.ConfigException:
                config.load_kube_config()
            _config_loaded = True

        factories: Dict[str, Callable[[], Any]] = {
            "core": client.CoreV1Api,
            "apps": client.AppsV1Api,
            "batch": client.BatchV1Api,
            "networking": client.NetworkingV1Api,
            "autoscaling": client.AutoscalingV2Api,
            "policy": client.PolicyV1Api,
            "storage": client.StorageV1Api,
        }
        api = factories[group]()
        _apis[group] = api
        return api


# kind -> (api group, namespaced list fn, all-namespaces list fn, read fn); cluster-scoped kinds have no
# namespaced variant.
_KIND_METHODS: Dict[str, Tuple[str, Optional[str], str, str]] = {
    "Pod": ("core", "list_namespaced_pod", "list_pod_for_all_namespaces", "read_namespaced_pod"),
    "Service": ("core", "list_namespaced_service", "list_service_for_all_namespaces", "read_namespaced_service"),
    "Endpoints": (
        "core",
        "list_namespaced_endpoints",
        "list_endpoints_for_all_namespaces",
        "read_namespaced_endpoints",
    ),
    "Secret": ("core", "list_namespaced_secret", "list_secret_for_all_namespaces", "read_namespaced_secret"),
    "PersistentVolumeClaim": (
        "core",
        "list_namespaced_persistent_volume_claim",
        "list_persistent_volume_claim_for_all_namespaces",
        "read_namespaced_persistent_volume_claim",
    ),
    "Node": ("core", None, "list_node", "read_node"),
    "Deployment": (
        "apps",
        "list_namespaced_deployment",
        "list_deployment_for_all_namespaces",
        "read_namespaced_deployment",
    ),
    "ReplicaSet": (
        "apps",
        "list_namespaced_replica_set",
        "list_replica_set_for_all_namespaces",
        "read_namespaced_replica_set",
    ),
    "StatefulSet": (
        "apps",
        "list_namespaced_stateful_set",
        "list_stateful_set_for_all_namespaces",
        "read_namespaced_stateful_set",
    ),
    "DaemonSet": (
        "apps",
        "list_namespaced_daemon_set",
        "list_daemon_set_for_all_namespaces",
        "read_namespaced_daemon_set",
    ),
    "Job": ("batch", "list_namespaced_job", "list_job_for_all_namespaces", "read_namespaced_job"),
    "CronJob": ("batch", "list_namespaced_cron_job", "list_cron_job_for_all_namespaces", "read_namespaced_cron_job"),
    "Ingress": (
        "networking",
        "list_namespaced_ingress",
        "list_ingress_for_all_namespaces",
        "read_namespaced_ingress",
    ),
    "IngressClass": ("networking", None, "list_ingress_class", "read_ingress_class"),
    "NetworkPolicy": (
        "networking",
        "list_namespaced_network_policy",
        "list_network_policy_for_all_namespaces",
        "read_namespaced_network_policy",
    ),
    "HorizontalPodAutoscaler": (
        "autoscaling",
        "list_namespaced_horizontal_pod_autoscaler",
        "list_horizontal_pod_autoscaler_for_all_namespaces",
        "read_namespaced_horizontal_pod_autoscaler",
    ),
    "PodDisruptionBudget": (
        "policy",
        "list_namespaced_pod_disruption_budget",
        "list_pod_disruption_budget_for_all_namespaces",
        "read_namespaced_pod_disruption_budget",
    ),
    "StorageClass": ("storage", None, "list_storage_class", "read_storage_class"),
}


def _kind_methods(kind: str) -> Tuple[str, Optional[str], str, str]:
    try:
        return _KIND_METHODS[kind]
    except KeyError:
        raise UpstreamQueryError(f"unsupported kind: {kind}") from None


def _api_error(what: str, e: Exception) -> UpstreamQueryError:
    # Preserve ApiException details when the kubernetes client raised.
    from kubernetes.client.rest import ApiException

    if isinstance(e, ApiException):
        return UpstreamQueryError(f"Failed to {what}: Kubernetes API error: {e.reason} - {e.body}")
    return UpstreamQueryError(f"Failed to {what}: {str(e)}")


def _timeout_kwargs(request_timeout: Optional[float]) -> Dict[str, Any]:
    return {"_request_timeout": request_timeout} if request_timeout is not None else {}


def list_objects(
    kind: str,
    namespace: str = "",
    label_selector: str = "",
    *,
    request_timeout: Optional[float] = None,
) -> List[Dict[str, Any]]:
    """
    List objects of `kind` (read-only). An empty namespace means all namespaces.

    Returns:
        List of snapshot dicts (metadata/spec/status, snake_case keys).
    """
    group, namespaced_fn, all_fn, _ = _kind_methods(kind)
    kwargs: Dict[str, Any] = _timeout_kwargs(request_timeout)
    if label_selector:
        kwargs["label_selector"] = label_selector
    try:
        api = _api(group)
        if namespace and namespaced_fn:
            obj_list = getattr(api, namespaced_fn)(namespace=namespace, **kwargs)
        else:
            obj_list = getattr(api, all_fn)(**kwargs)
        return [item.to_dict() for item in obj_list.items or []]
    except Exception as e:
        raise _api_error(f"list {kind}", e) from e


def get_object(
    kind: str, namespace: str, name: str, *, request_timeout: Optional[float] = None
) -> Optional[Dict[str, Any]]:
    """Read one object (read-only). Returns None when it does not exist."""
    from kubernetes.client.rest import ApiException

    group, namespaced_fn, _, read_fn = _kind_methods(kind)
    kwargs: Dict[str, Any] = _timeout_kwargs(request_timeout)
    try:
        api = _api(group)
        if namespaced_fn:
            obj = getattr(api, read_fn)(name=name, namespace=namespace, **kwargs)
        else:
            obj = getattr(api, read_fn)(name=name, **kwargs)
        return obj.to_dict()
    except ApiException as e:
        if e.status == 404:
            return None
        raise _api_error(f"read {kind} {namespace}/{name}", e) from e
    except Exception as e:
        raise _api_error(f"read {kind} {namespace}/{name}", e) from e


def _event_ts(ev: Dict[str, Any]) -> float:
    raw = ev.get("last_timestamp") or ev.get("event_time") or ev.get("first_timestamp")
    if raw is None:
        return 0.0
    if hasattr(raw, "timestamp"):
        return raw.timestamp()
    try:
        return date_parser.isoparse(str(raw)).timestamp()
    except (ValueError, TypeError, OverflowError):
        return 0.0


def sort_events_newest_first(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Most recent first (prefer last_timestamp, then event_time, then first_timestamp)."""
    return sorted(events, key=_event_ts, reverse=True)


def get_events(
    *,
    namespace: str,
    resource_name: str,
    resource_kind: Optional[str] = None,
    limit: int = 30,
    request_timeout: Optional[float] = None,
) -> List[Dict[str, Any]]:
    """
    List recent Kubernetes Events for one object (read-only).

    Returns up to `limit` events (most recent first) with:
      {type, reason, message, count, first_timestamp, last_timestamp, event_time, involved_object}
    """
    field_selectors = [f"involvedObject.name={resource_name}"]
    if resource_kind:
        field_selectors.insert(0, f"involvedObject.kind={resource_kind}")
    try:
        v1 = _api("core")
        ev_list = v1.list_namespaced_event(
            namespace=namespace,
            field_selector=",".join(field_selectors),
            **_timeout_kwargs(request_timeout),
        )
        events: List[Dict[str, Any]] = []
        for ev in ev_list.items or []:
            involved_obj = getattr(ev, "involved_object", None)
            events.append(
                {
                    "type": ev.type,
                    "reason": ev.reason,
                    "message": ev.message,
                    "count": ev.count,
                    "first_timestamp": ev.first_timestamp.isoformat() if getattr(ev, "first_timestamp", None) else None,
                    "last_timestamp": ev.last_timestamp.isoformat() if getattr(ev, "last_timestamp", None) else None,
                    "event_time": ev.event_time.isoformat() if getattr(ev, "event_time", None) else None,
                    "involved_object": (
                        {
                            "kind": getattr(involved_obj, "kind", None),
                            "name": getattr(involved_obj, "name", None),
                            "namespace": getattr(involved_obj, "namespace", None),
                        }
                        if involved_obj
                        else None
                    ),
                }
            )
        return sort_events_newest_first(events)[: max(0, limit)]
    except Exception as e:
        raise _api_error("fetch events", e) from e


def read_pod_log(
    pod_name: str,
    namespace: str,
    container: Optional[str] = None,
    tail_lines: int = 100,
    *,
    request_timeout: Optional[float] = None,
) -> Optional[str]:
    """Read logs from a pod container (read-only, best-effort). None if logs are unavailable."""
    kwargs: Dict[str, Any] = {"name": pod_name, "namespace": namespace, "tail_lines": tail_lines}
    if container:
        kwargs["container"] = container
    kwargs.update(_timeout_kwargs(request_timeout))
    try:
        return _api("core").read_namespaced_pod_log(**kwargs)
    except Exception:
        return None


def _controller_ref(meta: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    refs = meta.get("owner_references") or []
    for ref in refs:
        if ref.get("controller"):
            return ref
    return refs[0] if refs else None


def get_parent(
    provider: K8sProvider,
    obj: Dict[str, Any],
    *,
    max_depth: int = 5,
    request_timeout: Optional[float] = None,
) -> Optional[ObjectRef]:
    """
    Resolve the top-most controlling owner of an object (read-only).

    Common chains:
      Pod -> ReplicaSet -> Deployment
      Pod -> StatefulSet
      Pod -> Job -> CronJob

    Returns None when the object has no owner. Owners we cannot read stop the walk at the last known ref.
    """
    meta = obj.get("metadata") or {}
    namespace = meta.get("namespace") or ""
    ref = _controller_ref(meta)
    if ref is None:
        return None

    parent = ObjectRef(kind=ref.get("kind") or "", name=ref.get("name") or "", namespace=namespace or None)
    depth = 0
    while depth < max_depth:
        depth += 1
        if parent.kind not in _KIND_METHODS:
            break
        try:
            owner = provider.get_object(parent.kind, namespace, parent.name, request_timeout=request_timeout)
        except UpstreamQueryError:
            break
        if not owner:
            break
        ref = _controller_ref(owner.get("metadata") or {})
        if ref is None:
            break
        parent = ObjectRef(kind=ref.get("kind") or "", name=ref.get("name") or "", namespace=namespace or None)
    return parent
