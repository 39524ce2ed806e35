"""Parallel conformance checking across components."""
from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from tiergate.analysis.classifier import TierClassifier
from tiergate.analysis.imports import ImportExtractor
from tiergate.analysis.introspector import CodeIntrospector
from tiergate.analysis.models import ComponentRecord
from tiergate.analysis.resolver import ModuleResolver
from tiergate.analysis.spec_parser import SpecParser
from tiergate.analysis.tier_table import TierRuleTable
from tiergate.engine.conformance import ConformanceEngine
from tiergate.engine.discovery import DiscoveredComponent
from tiergate.engine.report import CheckReport, ComponentResult

logger = logging.getLogger(__name__)


def default_workers(configured: int = 0) -> int:
    """Worker count from config; 0 means one per CPU."""
    if configured and configured > 0:
        return configured
    return os.cpu_count() or 1


class CheckRunner:
    """
    Run the per-component pipeline over a worker pool.

    spec -> Spec Parser
    source -> Import Graph Extractor -> Tier Classifier
           -> Code Introspector
    all of the above -> Conformance Engine -> ComponentResult

    Components share nothing but the read-only tier table. Each worker
    thread owns its module resolver (resolvers cache file contents).

    Args:
        repo_root: Repository root
        config: Loaded tiergate configuration
        table: Tier rule table
    """

    def __init__(self, repo_root: Path, config: Dict[str, Any], table: TierRuleTable):
        self.repo_root = repo_root.resolve()
        self.config = config
        self.table = table
        self.classifier = TierClassifier(table)
        self.engine = ConformanceEngine(table, self.classifier, self.repo_root)
        self.parser = SpecParser()
        self.introspector = CodeIntrospector(table, config.get("interactive_components", ()))
        self._local = threading.local()

    def run(
        self,
        components: Sequence[DiscoveredComponent],
        tier: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> CheckReport:
        """
        Check components in parallel.

        Args:
            components: Discovered components
            tier: Only report components whose declared tier equals this
            workers: Worker count (default: config `workers`, else CPU count)

        Returns:
            CheckReport; flagged interrupted (and partial) on Ctrl-C
        """
        max_workers = workers if workers and workers > 0 else default_workers(self.config.get("workers", 0))
        logger.info("Checking %d component(s) with %d worker(s)", len(components), max_workers)

        results: List[ComponentResult] = []
        finished = 0
        interrupted = False

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_component = {
                executor.submit(self._safe_check, component, tier): component
                for component in components
            }
            try:
                for future in as_completed(future_to_component):
                    finished += 1
                    result = future.result()
                    if result is None:
                        continue
                    results.append(result)
                    logger.debug("%s: %s", result.id, result.status)
            except KeyboardInterrupt:
                interrupted = True
                cancelled = sum(1 for f in future_to_component if f.cancel())
                logger.warning("Interrupted: cancelled %d pending component(s)", cancelled)

        report = CheckReport(
            results=results,
            interrupted=interrupted,
            table_version=self.table.version,
            pending=len(components) - finished if interrupted else 0,
        )
        errors = sum(1 for r in results if r.status == "error")
        logger.info(
            "Check complete: %d analysed, %d error(s)%s",
            len(results) - errors, errors, " (interrupted)" if interrupted else "",
        )
        return report

    def _safe_check(self, component: DiscoveredComponent, tier: Optional[int]) -> Optional[ComponentResult]:
        """Wrapper for check_component that turns any failure into an error-marked result."""
        try:
            return self.check_component(component, tier)
        except Exception as e:
            logger.error("Check failed for %s: %s", component.id, e, exc_info=True)
            return ComponentResult(id=component.id, error=f"Internal error: {e}")

    def check_component(
        self, component: DiscoveredComponent, tier: Optional[int] = None
    ) -> Optional[ComponentResult]:
        """
        Check one component.

        Returns:
            ComponentResult, or None when the declared tier does not match `tier`
        """
        try:
            spec = self.parser.parse_file(component.spec_path)
        except (OSError, UnicodeDecodeError) as e:
            return ComponentResult(id=component.id, error=f"Cannot read spec {component.spec_path.name}: {e}")

        if tier is not None and spec.tier != tier:
            return None
        if component.error:
            return ComponentResult(id=component.id, declared_tier=spec.tier, error=component.error)

        source = component.source_path
        try:
            text = source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return ComponentResult(id=component.id, declared_tier=spec.tier, error=f"Cannot read {source.name}: {e}")

        code = self.introspector.introspect(text, path=source, name=component.id.name)
        code.imports = ImportExtractor(self._resolver()).extract(text, source)
        inference = self.classifier.infer(code.imports)

        companion_handlers: List[str] = []
        for companion in component.mock_files + component.story_files:
            try:
                companion_text = companion.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("%s: cannot read companion %s: %s", component.id, companion.name, e)
                continue
            refs = self.introspector.handler_references(companion_text)
            companion_handlers.extend(f"{companion.name}: {ref}" for ref in refs)

        record = ComponentRecord(
            id=component.id,
            spec=spec,
            code=code,
            inference=inference,
            mock_files=list(component.mock_files),
            story_files=list(component.story_files),
            companion_handlers=companion_handlers,
            mock_defines_handlers=bool(companion_handlers),
        )
        return ComponentResult(
            id=component.id,
            declared_tier=spec.tier,
            inferred_tier=inference.tier,
            violations=self.engine.check(record),
            deciding_imports=inference.deciding_imports(),
        )

    def _resolver(self) -> ModuleResolver:
        resolver = getattr(self._local, "resolver", None)
        if resolver is None:
            resolver = ModuleResolver.from_config(self.repo_root, self.config)
            self._local.resolver = resolver
        return resolver
