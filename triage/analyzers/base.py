from __future__ import annotations

from typing import Any, Dict, List, Protocol, runtime_checkable

from triage.core.context import AnalyzerContext
from triage.core.models import Failure, PreAnalysis, Result, object_key
from triage.providers.k8s_provider import get_parent


@runtime_checkable
class Analyzer(Protocol):
    """
    Analyzer contract: inspect one resource kind and return one Result per failing object.

    Analyzers are:
    - read-only against the cluster
    - deterministic for identical cluster state (failure order is user-visible)
    - fail-fast on list errors (no partial results for the kind)
    """

    kind: str

    def analyze(self, ctx: AnalyzerContext) -> List[Result]:
        """Return Results in list order."""


class BaseAnalyzer:
    """
    Shared scan loop: reset metrics -> list objects -> detect per object -> collapse into Results.

    Subclasses implement `detect()`; it receives one snapshot and returns its failures in display order.
    """

    kind: str = ""
    # Kind passed to the provider when it differs from the analyzer name.
    list_kind: str = ""
    resolve_parent: bool = True

    def list_objects(self, ctx: AnalyzerContext) -> List[Dict[str, Any]]:
        return ctx.client.list_objects(
            self.list_kind or self.kind,
            ctx.namespace,
            ctx.label_selector,
            request_timeout=ctx.run.request_timeout(),
        )

    def detect(self, ctx: AnalyzerContext, obj: Dict[str, Any]) -> List[Failure]:
        """Template hook: return the failures of one snapshot in display order. Every analyzer overrides it."""
        raise NotImplementedError(f"{type(self).__name__} does not implement detect()")

    def analyze(self, ctx: AnalyzerContext) -> List[Result]:
        if ctx.metrics is not None:
            ctx.metrics.reset(self.kind)

        items = self.list_objects(ctx)

        pre_analysis: Dict[str, PreAnalysis] = {}
        for obj in items:
            ctx.run.raise_if_done()
            failures = self.detect(ctx, obj)
            if not failures:
                continue
            pre_analysis[object_key(obj)] = PreAnalysis(object=obj, failures=failures)
            if ctx.metrics is not None:
                meta = obj.get("metadata") or {}
                ctx.metrics.set(self.kind, meta.get("name") or "", meta.get("namespace") or "", len(failures))

        return [self._to_result(ctx, key, pa) for key, pa in pre_analysis.items()]

    def _to_result(self, ctx: AnalyzerContext, key: str, pa: PreAnalysis) -> Result:
        result = Result(kind=self.kind, name=key, errors=pa.failures)
        if self.resolve_parent:
            result.parent_object = get_parent(ctx.client, pa.object, request_timeout=ctx.run.request_timeout())
        return result


def meta_of(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.get("metadata") or {}


def spec_of(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.get("spec") or {}


def status_of(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.get("status") or {}
