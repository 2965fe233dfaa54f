#!/usr/bin/env python3
"""
kube-triage - find failing Kubernetes objects, explain them, draft fixed manifests.
"""

import argparse
import logging
import sys
from typing import List, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

logger = logging.getLogger(__name__)


def build_registry(config_path: Optional[str]):
    from triage.analyzers.registry import default_registry
    from triage.integrations import ConfigIntegrationProvider, load_integration_settings

    provider = ConfigIntegrationProvider(settings=load_integration_settings(config_path))
    return default_registry(provider)


def list_filters(config_path: Optional[str]) -> None:
    registry = build_registry(config_path)
    core, additional, integration = registry.list_filters()
    print("Active:")
    for name in sorted(core):
        print(f"> {name}")
    print("Unused (use --filter or --with-additional):")
    for name in sorted(additional):
        print(f"> {name}")
    if integration:
        print("Integrations:")
        for name in sorted(integration):
            print(f"> {name}")


def run_analysis(args: argparse.Namespace) -> int:
    from triage.analysis import Analysis
    from triage.config import load_config
    from triage.core.context import RunContext
    from triage.llm.client import get_completion_service
    from triage.metrics import AnalyzerErrorsMetric
    from triage.providers.k8s_provider import get_k8s_provider

    cfg = load_config()
    registry = build_registry(args.config or cfg.config_path)
    filters: List[str] = list(args.filter or [])
    analyzers = registry.resolve(filters, with_additional=args.with_additional)

    explain = args.explain or cfg.explain
    fix = args.fix or cfg.fix
    if fix and not explain:
        logger.warning("--fix has no effect without --explain")

    analysis = Analysis(
        completion=get_completion_service() if explain else None,
        analyzers=analyzers,
        client=get_k8s_provider(),
        namespace=args.namespace if args.namespace is not None else cfg.namespace,
        label_selector=args.selector if args.selector is not None else cfg.label_selector,
        run=RunContext(timeout_seconds=args.timeout or cfg.timeout_seconds),
        explain=explain,
        fix=fix,
        anonymize=args.anonymize or cfg.anonymize,
        metrics=AnalyzerErrorsMetric(),
        output_dir=cfg.output_dir,
        output_format=args.output,
    )
    analysis.analyze_results()
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Analyze failing Kubernetes objects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze all core kinds in every namespace
  python main.py

  # Pods in one namespace, with an explanation and a fixed manifest
  python main.py --filter Pod --namespace default --explain --fix
        """,
    )
    parser.add_argument("--list-filters", action="store_true", help="List available analyzers and exit")
    parser.add_argument(
        "--filter", "-f", action="append", metavar="KIND", help="Analyzer to run (repeatable; default: core set)"
    )
    parser.add_argument("--with-additional", action="store_true", help="Run additional analyzers too when no --filter")
    parser.add_argument("--namespace", "-n", help="Namespace to analyze (default: all namespaces)")
    parser.add_argument("--selector", "-L", help="Label selector (e.g. 'app=frontend')")
    parser.add_argument("--explain", action="store_true", help="Ask the completion service to explain each result")
    parser.add_argument("--fix", action="store_true", help="Draft a fixed manifest for supported kinds (needs --explain)")
    parser.add_argument("--anonymize", action="store_true", help="Mask sensitive values before sending them out")
    parser.add_argument("--output", "-o", choices=["text", "json"], default="text", help="Output format")
    parser.add_argument("--timeout", type=float, help="Overall run timeout in seconds (default: 300)")
    parser.add_argument("--config", help="YAML config file with integration activation")

    args = parser.parse_args()

    from triage.core.errors import ConfigurationError

    try:
        if args.list_filters:
            list_filters(args.config)
            return 0
        return run_analysis(args)
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"❌ Error during analysis: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
