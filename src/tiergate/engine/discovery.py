"""
Component Discovery
===================
Finds components to check: each *.spec.md plus its source file and its
companion *.mock.* and *.stories.* files.

Source file for `Foo.spec.md`, first match wins:
1. `Foo.tsx`, `Foo.ts`, `Foo.jsx`, `Foo.js` (configured extension order)
2. the only source file in the directory (tests, stories, mocks excluded)
3. `index.<ext>` in the directory
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from tiergate.analysis.models import ComponentId
from tiergate.analysis.tier_table import TierRuleTable
from tiergate.errors import DiscoveryError

logger = logging.getLogger(__name__)

SPEC_SUFFIX = ".spec.md"
_NOT_COMPONENT_SOURCE = (".spec.", ".test.", ".stories.", ".story.", ".mock.", ".d.ts")


@dataclass
class DiscoveredComponent:
    """
    A spec file and the files that belong with it.

    Attributes:
        id: Component identifier (spec stem + repo-relative directory)
        spec_path: The *.spec.md file
        source_path: Component source, None if none could be found
        mock_files: Companion mock-data files
        story_files: Companion story files
        error: Why the component cannot be analysed, if it cannot
    """

    id: ComponentId
    spec_path: Path
    source_path: Optional[Path] = None
    mock_files: List[Path] = field(default_factory=list)
    story_files: List[Path] = field(default_factory=list)
    error: Optional[str] = None


class ComponentDiscovery:
    """
    Locate components under a repository.

    Args:
        repo_root: Repository root (component directories are reported relative to it)
        table: Tier rule table (supplies mock-file patterns)
        config: Loaded tiergate configuration
    """

    def __init__(self, repo_root: Path, table: TierRuleTable, config: Dict):
        self.repo_root = repo_root.resolve()
        self.table = table
        self.skip_dirs = set(config.get("skip_dirs", []))
        self.extensions = tuple(config.get("source_extensions", (".tsx", ".ts", ".jsx", ".js")))

    def discover(self, paths: Optional[Sequence[Path]] = None) -> List[DiscoveredComponent]:
        """
        Discover components under `paths` (default: the whole repository).

        Raises:
            DiscoveryError: If a requested path does not exist.
        """
        roots = list(paths) if paths else [self.repo_root]
        specs: List[Path] = []
        for root in roots:
            root = root if root.is_absolute() else Path.cwd() / root
            if not root.exists():
                raise DiscoveryError(f"Path not found: {root}")
            if root.is_file():
                if not root.name.endswith(SPEC_SUFFIX):
                    raise DiscoveryError(f"Not a spec file: {root} (expected *{SPEC_SUFFIX})")
                specs.append(root.resolve())
            else:
                specs.extend(self.find_specs(root))

        unique = sorted(set(specs))
        logger.info("Discovered %d spec file(s)", len(unique))
        return [self.component_for(spec) for spec in unique]

    def find_specs(self, root: Path) -> List[Path]:
        """All *.spec.md files under root, pruning skip_dirs."""
        found = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in self.skip_dirs)
            for filename in sorted(filenames):
                if filename.endswith(SPEC_SUFFIX):
                    found.append((Path(dirpath) / filename).resolve())
        return found

    def component_for(self, spec_path: Path) -> DiscoveredComponent:
        """Pair a spec file with its source and companion files."""
        directory = spec_path.parent
        stem = spec_path.name[: -len(SPEC_SUFFIX)]
        rel_dir = Path(os.path.relpath(directory, self.repo_root)).as_posix()
        component = DiscoveredComponent(
            id=ComponentId(name=stem, directory="" if rel_dir == "." else rel_dir),
            spec_path=spec_path,
        )

        try:
            siblings = sorted(p for p in directory.iterdir() if p.is_file())
        except OSError as e:
            component.error = f"Cannot list {directory}: {e}"
            return component

        component.source_path = self._source_for(stem, siblings)
        if component.source_path is None:
            component.error = f"No component source found for {spec_path.name}"

        lone_spec = sum(1 for p in siblings if p.name.endswith(SPEC_SUFFIX)) == 1
        for sibling in siblings:
            if not (lone_spec or sibling.name.startswith(stem + ".")):
                continue
            if self.table.is_mock_file(sibling.name):
                component.mock_files.append(sibling)
            elif ".stories." in sibling.name or ".story." in sibling.name:
                component.story_files.append(sibling)
        return component

    def _source_for(self, stem: str, siblings: Iterable[Path]) -> Optional[Path]:
        sources = [
            p for p in siblings
            if p.suffix in self.extensions and not any(tag in p.name for tag in _NOT_COMPONENT_SOURCE)
        ]
        by_name = {p.name: p for p in sources}
        for ext in self.extensions:
            if stem + ext in by_name:
                return by_name[stem + ext]
        if len(sources) == 1:
            return sources[0]
        for ext in self.extensions:
            if "index" + ext in by_name:
                return by_name["index" + ext]
        return None
