"""Analyzers: one per resource kind, each turning live cluster state into per-object Results."""

from .base import Analyzer, BaseAnalyzer
from .registry import AnalyzerRegistry, default_registry

__all__ = ["Analyzer", "AnalyzerRegistry", "BaseAnalyzer", "default_registry"]
