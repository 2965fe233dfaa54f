"""Analysis run: analyzers -> Results -> (explanation, fix) -> output.

Determinism goals:
- analyzers run sequentially in the order they were selected
- Results keep discovery order all the way to output
- the first analyzer or completion error aborts the run
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from triage.analyzers.base import Analyzer
from triage.anonymize import mask_failure_text, mask_text, unmask_text
from triage.core.context import AnalyzerContext, RunContext
from triage.core.errors import CompletionServiceNotConfigured
from triage.core.models import Result
from triage.fix import FIXABLE_KINDS, generate_fix, repair_api_version_prefix
from triage.llm.client import CompletionService
from triage.metrics import AnalyzerErrorsMetric
from triage.report import render_result, results_to_json, write_fixed_yaml

logger = logging.getLogger(__name__)


@dataclass
class Analysis:
    completion: Optional[CompletionService]
    analyzers: List[Analyzer]
    client: object
    namespace: str = ""
    label_selector: str = ""
    run: RunContext = field(default_factory=RunContext)
    explain: bool = False
    fix: bool = False
    anonymize: bool = False
    metrics: Optional[AnalyzerErrorsMetric] = None
    output_dir: str = "."
    output_format: str = "text"
    printer: Callable[[str], None] = print

    def _analyzer_context(self) -> AnalyzerContext:
        return AnalyzerContext(
            client=self.client,
            run=self.run,
            namespace=self.namespace,
            label_selector=self.label_selector,
            metrics=self.metrics,
        )

    def get_results(self) -> List[Result]:
        results: List[Result] = []
        ctx = self._analyzer_context()
        for analyzer in self.analyzers:
            self.run.raise_if_done()
            logger.debug("running analyzer %s", getattr(analyzer, "kind", type(analyzer).__name__))
            results.extend(analyzer.analyze(ctx))
        return results

    def _failure_texts(self, result: Result) -> List[str]:
        if self.anonymize:
            return [mask_failure_text(f) for f in result.errors]
        return [f.text for f in result.errors]

    def _display_name(self, result: Result) -> str:
        if self.anonymize:
            return mask_text(result.name, result.errors)
        return result.name

    def get_explanation(self, result: Result) -> str:
        if self.completion is None:
            raise CompletionServiceNotConfigured()

        error_text = "\n".join(self._failure_texts(result))
        prompt = (
            "Given the following Kubernetes error:\n"
            f"Error: {error_text}\n"
            f"Context: {self._display_name(result)}\n"
            "\n"
            "Please explain the problem and provide a solution."
        )
        explanation = self.completion.get_explanation(prompt)
        if self.anonymize:
            explanation = unmask_text(explanation, result.errors)
        return explanation

    def handle_fixes(self, result: Result) -> None:
        """Attach a corrected manifest; only when both explain and fix are on and the kind supports it."""
        if not (self.fix and self.explain):
            return
        if result.kind not in FIXABLE_KINDS:
            return
        raw = generate_fix(
            result,
            self.completion,
            self.run,
            failure_texts=self._failure_texts(result),
            display_name=self._display_name(result),
        )
        if self.anonymize:
            raw = unmask_text(raw, result.errors)
        result.fixed_yaml = repair_api_version_prefix(raw)

    def enrich(self, results: List[Result]) -> None:
        for i, result in enumerate(results):
            logger.info("Processing result %d: %s/%s", i, result.kind, result.name)
            if self.explain:
                self.run.raise_if_done()
                result.explanation = self.get_explanation(result)
                logger.info("Got explanation of length: %d", len(result.explanation))
            self.handle_fixes(result)

    def output_results(self, results: List[Result]) -> None:
        if self.output_format == "json":
            self.printer(results_to_json(results))
        else:
            if not results:
                self.printer("No problems detected")
            for i, result in enumerate(results):
                self.printer(render_result(i, result))
        for result in results:
            path = write_fixed_yaml(result, self.output_dir)
            if path is not None and self.output_format != "json":
                self.printer(f"\nFixed YAML has been saved to: {path}")

    def analyze_results(self) -> List[Result]:
        if self.explain and self.completion is None:
            raise CompletionServiceNotConfigured()
        results = self.get_results()
        logger.info("Got %d results to analyze", len(results))
        self.enrich(results)
        self.output_results(results)
        return results
