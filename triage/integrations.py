"""Optional integrations that contribute analyzers to the registry.

Activation is read from the `integrations:` mapping of the YAML config file:

    integrations:
      trivy:
        active: true
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Protocol

import yaml

from triage.core.errors import IntegrationError


class Integration(Protocol):
    def analyzer_names(self) -> List[str]: ...

    def add_analyzers(self, analyzers: MutableMapping[str, Any]) -> None: ...


class IntegrationProvider(Protocol):
    def list(self) -> List[str]: ...

    def is_activated(self, name: str) -> bool: ...

    def get(self, name: str) -> Integration: ...


def load_integration_settings(path: Optional[str]) -> Dict[str, Any]:
    """Return the `integrations` mapping from the config file (empty when no file is configured)."""
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise IntegrationError(f"failed to read integration config {path}: {e}") from e
    if not isinstance(data, dict):
        raise IntegrationError(f"integration config {path} must be a mapping")
    integrations = data.get("integrations") or {}
    if not isinstance(integrations, dict):
        raise IntegrationError(f"'integrations' in {path} must be a mapping")
    return integrations


class ConfigIntegrationProvider:
    """Known integrations plus their activation flags from config."""

    def __init__(
        self,
        integrations: Optional[Dict[str, Integration]] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._integrations: Dict[str, Integration] = dict(integrations or {})
        self._settings: Dict[str, Any] = dict(settings or {})

    def list(self) -> List[str]:
        return list(self._integrations)

    def is_activated(self, name: str) -> bool:
        if name not in self._integrations:
            raise IntegrationError(f"integration {name} not found")
        entry = self._settings.get(name)
        if entry is None:
            return False
        if not isinstance(entry, dict):
            raise IntegrationError(f"integration {name}: settings must be a mapping")
        active = entry.get("active", False)
        if not isinstance(active, bool):
            raise IntegrationError(f"integration {name}: 'active' must be a boolean")
        return active

    def get(self, name: str) -> Integration:
        try:
            return self._integrations[name]
        except KeyError:
            raise IntegrationError(f"integration {name} not found") from None
