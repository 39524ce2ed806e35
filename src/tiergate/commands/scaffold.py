"""
Scaffold a *.spec.md from component source.

Usage:
    tiergate scaffold src/components/UserCard.tsx            # print to stdout
    tiergate scaffold src/components/UserCard.tsx --write    # write UserCard.spec.md
    tiergate scaffold UserCard.tsx --tier 3 --write --force
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from tiergate.analysis.classifier import TierClassifier
from tiergate.analysis.imports import ImportExtractor
from tiergate.analysis.introspector import CodeIntrospector
from tiergate.analysis.resolver import ModuleResolver
from tiergate.commands.check import load_environment
from tiergate.engine.discovery import SPEC_SUFFIX
from tiergate.engine.spec_writer import render_spec
from tiergate.errors import TiergateError
from tiergate.utils.repo import find_repo_root

logger = logging.getLogger(__name__)


class ScaffoldCommand:
    """Generate a spec that matches what the component's code already says."""

    def __init__(self, repo_root: Optional[Path] = None, config_path: Optional[Path] = None):
        self.repo_root = (repo_root or find_repo_root()).resolve()
        self.config_path = config_path

    def scaffold(self, file: Path, tier: Optional[int] = None, write: bool = False, force: bool = False) -> int:
        """
        Render a spec for `file`.

        Args:
            file: Component source file
            tier: Tier to declare (default: inferred from imports)
            write: Write <stem>.spec.md next to the source instead of printing
            force: Overwrite an existing spec

        Returns:
            0 on success, 1 if the spec exists or the tier is unknown, 2 on errors
        """
        try:
            config, table = load_environment(self.repo_root, self.config_path)
            text = file.read_text(encoding="utf-8")
        except TiergateError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error reading {file}: {e}", file=sys.stderr)
            return 2

        introspector = CodeIntrospector(table, config.get("interactive_components", ()))
        code = introspector.introspect(text, path=file, name=file.stem)
        code.imports = ImportExtractor(ModuleResolver.from_config(self.repo_root, config)).extract(text, file)
        inference = TierClassifier(table).infer(code.imports)

        if tier is None:
            if inference.tier is None:
                unresolved = ", ".join(f"'{e.specifier}'" for e in inference.unresolved)
                print(f"Error: cannot infer tier, unresolved imports: {unresolved}", file=sys.stderr)
                print("Pass --tier to choose one", file=sys.stderr)
                return 1
            tier = inference.tier
        elif inference.tier is not None and inference.tier > tier:
            print(
                f"Warning: imports require tier {inference.tier}; declaring tier {tier} will fail the check",
                file=sys.stderr,
            )

        spec_text = render_spec(code, tier, table, name=file.stem)

        if not write:
            print(spec_text, end="")
            return 0

        target = file.with_name(file.stem + SPEC_SUFFIX)
        if target.exists() and not force:
            print(f"Spec already exists: {target}")
            print("Use --force to overwrite")
            return 1
        target.write_text(spec_text, encoding="utf-8")
        print(f"Created: {target}")
        logger.debug("Scaffolded %s at tier %d", target, tier)
        return 0
