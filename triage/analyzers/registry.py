from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from triage.analyzers.base import Analyzer
from triage.core.errors import IntegrationError, UnknownAnalyzerError
from triage.integrations import IntegrationProvider


@dataclass
class AnalyzerRegistry:
    """
    Name -> analyzer lookup for one process.

    Three layers: `core` (always available), `additional` (opt-in breadth) and `integration`
    (contributed by active integrations at construction time).
    """

    core: Dict[str, Analyzer] = field(default_factory=dict)
    additional: Dict[str, Analyzer] = field(default_factory=dict)
    integration: Dict[str, Analyzer] = field(default_factory=dict)
    integration_names: List[str] = field(default_factory=list)

    def load_integrations(self, provider: Optional[IntegrationProvider]) -> None:
        """
        Collect analyzers from active integrations.

        Any failure here is a configuration problem and aborts construction.
        """
        if provider is None:
            return
        for name in provider.list():
            try:
                active = provider.is_activated(name)
                if not active:
                    continue
                integ = provider.get(name)
                contributed: Dict[str, Analyzer] = {}
                integ.add_analyzers(contributed)
                names = list(integ.analyzer_names())
            except IntegrationError:
                raise
            except Exception as e:
                raise IntegrationError(f"integration {name}: {e}") from e
            self.integration.update(contributed)
            self.integration_names.extend(names)

    def list_filters(self) -> Tuple[List[str], List[str], List[str]]:
        return list(self.core), list(self.additional), list(self.integration_names)

    def get_analyzer_map(self) -> Tuple[Dict[str, Analyzer], Dict[str, Analyzer]]:
        """Return (core-only, merged) lookup tables."""
        merged: Dict[str, Analyzer] = {}
        merged.update(self.core)
        merged.update(self.additional)
        merged.update(self.integration)
        return dict(self.core), merged

    def resolve(self, kinds: Optional[Iterable[str]] = None, *, with_additional: bool = False) -> List[Analyzer]:
        """
        Map requested kinds to analyzers, preserving request order.

        No kinds means every core analyzer (plus the rest when `with_additional`).
        """
        core, merged = self.get_analyzer_map()
        if not kinds:
            table = merged if with_additional else core
            return list(table.values())
        out: List[Analyzer] = []
        for k in kinds:
            a = merged.get(k)
            if a is None:
                raise UnknownAnalyzerError(k)
            out.append(a)
        return out


def default_registry(integrations: Optional[IntegrationProvider] = None) -> AnalyzerRegistry:
    from triage.analyzers.cluster import HpaAnalyzer, LogAnalyzer, NodeAnalyzer, PdbAnalyzer, PvcAnalyzer
    from triage.analyzers.networking import IngressAnalyzer, NetworkPolicyAnalyzer, ServiceAnalyzer
    from triage.analyzers.pod import PodAnalyzer
    from triage.analyzers.workloads import (
        CronJobAnalyzer,
        DeploymentAnalyzer,
        ReplicaSetAnalyzer,
        StatefulSetAnalyzer,
    )

    reg = AnalyzerRegistry(
        core={
            "Pod": PodAnalyzer(),
            "Deployment": DeploymentAnalyzer(),
            "ReplicaSet": ReplicaSetAnalyzer(),
            "PersistentVolumeClaim": PvcAnalyzer(),
            "Service": ServiceAnalyzer(),
            "Ingress": IngressAnalyzer(),
            "StatefulSet": StatefulSetAnalyzer(),
            "CronJob": CronJobAnalyzer(),
            "Node": NodeAnalyzer(),
        },
        additional={
            "HorizontalPodAutoScaler": HpaAnalyzer(),
            "PodDisruptionBudget": PdbAnalyzer(),
            "NetworkPolicy": NetworkPolicyAnalyzer(),
            "Log": LogAnalyzer(),
        },
    )
    reg.load_integrations(integrations)
    return reg
