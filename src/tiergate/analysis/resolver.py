"""
Module Resolution
=================
Maps import specifiers to canonical module paths.

Resolution order:
1. Relative specifiers ("./Button", "../lib/utils") resolve against the
   importing file's directory.
2. Alias specifiers ("@/lib/utils") resolve through tsconfig.json
   compilerOptions.paths, then the configured alias prefixes.
3. Anything else is a bare package specifier and is canonical as written.

Located files are followed through re-export barrels ("export { X } from
'./X'", "export * from './Y'", or "import { X } from './X'; export { X };")
to the module that really defines the imported symbol. A barrel that
re-exports from a package resolves to that package.

A relative or alias specifier that cannot be located is UNRESOLVED. It is
never guessed: callers report it for manual review.
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from tiergate.analysis.models import ResolutionStatus

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js")
MAX_BARREL_DEPTH = 8

# export { A, B as C } from './x'   /   export type { T } from './t'
_NAMED_REEXPORT = re.compile(
    r"export\s+(?:type\s+)?\{([^}]*)\}\s*from\s*['\"]([^'\"]+)['\"]", re.DOTALL
)
# export * from './x'   /   export * as ns from './x'
_STAR_REEXPORT = re.compile(r"export\s+\*\s*(?:as\s+(\w+)\s*)?from\s*['\"]([^'\"]+)['\"]")
# export const X / export function X / export class X / export default function X
_LOCAL_EXPORT = re.compile(
    r"export\s+(?:default\s+)?(?:declare\s+)?(?:async\s+)?"
    r"(?:const|let|var|function\*?|class|interface|type|enum)\s+(\w+)"
)
_LOCAL_EXPORT_LIST = re.compile(r"export\s+(?:type\s+)?\{([^}]*)\}\s*;?(?!\s*from)")
# export default Button;
_DEFAULT_EXPORT_NAME = re.compile(r"export\s+default\s+([\w$]+)\s*(?:;|$)", re.MULTILINE)
# import A, { B as C } from './x'   /   import * as ns from './x'
_IMPORT_BINDINGS = re.compile(r"\bimport\s+(?:type\s+)?([^'\";]*?)\s*from\s*['\"]([^'\"]+)['\"]")


@dataclass
class Resolution:
    """
    Result of resolving one specifier.

    Attributes:
        specifier: The specifier as written
        status: RESOLVED, EXTERNAL or UNRESOLVED
        module: Canonical module path (None when unresolved)
        file: Located file, for project modules
        via: Canonical paths of barrels followed on the way
        error: Why resolution failed
    """

    specifier: str
    status: ResolutionStatus
    module: Optional[str] = None
    file: Optional[Path] = None
    via: List[str] = field(default_factory=list)
    error: Optional[str] = None


class _BrokenBarrel(Exception):
    """A barrel re-exports the requested symbol from a module that cannot be located."""


def strip_js_comments(text: str) -> str:
    """Remove // and /* */ comments while leaving string literals intact."""
    pattern = re.compile(
        r"""("(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*'|`(?:\\.|[^`\\])*`)|(/\*.*?\*/|//[^\n]*)""",
        re.DOTALL,
    )

    def _replace(match: re.Match) -> str:
        if match.group(1):
            return match.group(1)
        # keep line numbers stable
        return "\n" * match.group(2).count("\n")

    return pattern.sub(_replace, text)


def load_tsconfig_aliases(tsconfig: Path, repo_root: Path) -> Dict[str, str]:
    """
    Read compilerOptions.paths from a tsconfig.json.

    Returns:
        Mapping of alias prefix -> repo-relative target prefix, e.g.
        {"@/": "src/"} for "@/*": ["./src/*"]. Exact aliases (no "*") map
        the full specifier to a repo-relative path.
    """
    try:
        raw = tsconfig.read_text(encoding="utf-8")
    except OSError as e:
        logger.debug("Cannot read %s: %s", tsconfig, e)
        return {}

    text = strip_js_comments(raw)
    text = re.sub(r",(\s*[}\]])", r"\1", text)
    try:
        data = json.loads(text)
    except ValueError as e:
        logger.warning("Ignoring unparseable %s: %s", tsconfig, e)
        return {}

    options = data.get("compilerOptions") or {}
    paths = options.get("paths") or {}
    base_dir = (tsconfig.parent / options.get("baseUrl", ".")).resolve()

    aliases: Dict[str, str] = {}
    for key, targets in paths.items():
        if not targets:
            continue
        target = targets[0]
        if key.endswith("*") and target.endswith("*"):
            prefix = key[:-1]
            target_dir = (base_dir / target[:-1]).resolve()
            aliases[prefix] = _relative_posix(target_dir, repo_root).rstrip("/") + "/"
        else:
            aliases[key] = _relative_posix((base_dir / target).resolve(), repo_root)
    return aliases


def _relative_posix(path: Path, root: Path) -> str:
    rel = os.path.relpath(path, root)
    return "" if rel == "." else Path(rel).as_posix()


class ModuleResolver:
    """
    Resolves import specifiers for files under one repository root.

    Instances cache file contents, so each worker should own its resolver.
    """

    def __init__(
        self,
        repo_root: Path,
        aliases: Optional[Dict[str, str]] = None,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        max_barrel_depth: int = MAX_BARREL_DEPTH,
    ):
        self.repo_root = repo_root.resolve()
        self.aliases = dict(aliases or {})
        self.extensions = tuple(extensions)
        self.max_barrel_depth = max_barrel_depth
        self._text_cache: Dict[Path, str] = {}

    @classmethod
    def from_config(cls, repo_root: Path, config: Dict) -> "ModuleResolver":
        """Build a resolver from config aliases plus tsconfig paths (tsconfig wins)."""
        aliases = dict(config.get("aliases", {}))
        tsconfig_name = config.get("tsconfig")
        if tsconfig_name:
            tsconfig = repo_root / tsconfig_name
            if tsconfig.is_file():
                aliases.update(load_tsconfig_aliases(tsconfig, repo_root.resolve()))
        return cls(
            repo_root,
            aliases=aliases,
            extensions=config.get("source_extensions", DEFAULT_EXTENSIONS),
        )

    def canonical(self, path: Path) -> str:
        """Repo-relative POSIX path without extension."""
        rel = _relative_posix(path.resolve(), self.repo_root)
        for ext in sorted(self.extensions, key=len, reverse=True):
            if rel.endswith(ext):
                return rel[: -len(ext)]
        return rel

    def resolve(self, specifier: str, importer: Path, symbol: str = "") -> Resolution:
        """
        Resolve a specifier imported by `importer`.

        Args:
            specifier: Module specifier as written
            importer: Path of the importing file
            symbol: Imported name, used to follow barrels

        Returns:
            Resolution with canonical module path or an error
        """
        base = self._base_path(specifier, importer)
        if base is None:
            return Resolution(specifier=specifier, status=ResolutionStatus.EXTERNAL, module=specifier)

        located = self._locate(base)
        if located is None:
            logger.debug("Unresolved import %r from %s", specifier, importer)
            return Resolution(
                specifier=specifier,
                status=ResolutionStatus.UNRESOLVED,
                error=f"Cannot locate '{specifier}' (looked for {self._display(base)})",
            )

        try:
            target, via = self._follow_barrels(located, symbol)
        except _BrokenBarrel as e:
            logger.debug("Unresolved barrel target for %r from %s: %s", specifier, importer, e)
            return Resolution(specifier=specifier, status=ResolutionStatus.UNRESOLVED, error=str(e))
        if isinstance(target, str):
            return Resolution(
                specifier=specifier,
                status=ResolutionStatus.EXTERNAL,
                module=target,
                via=via,
            )
        return Resolution(
            specifier=specifier,
            status=ResolutionStatus.RESOLVED,
            module=self.canonical(target),
            file=target,
            via=via,
        )

    def _base_path(self, specifier: str, importer: Path) -> Optional[Path]:
        if specifier.startswith("."):
            return importer.parent / specifier
        if specifier.startswith("/"):
            return self.repo_root / specifier.lstrip("/")

        if specifier in self.aliases and not specifier.endswith("/"):
            return self.repo_root / self.aliases[specifier]

        prefixes = [p for p in self.aliases if p.endswith("/")]
        for prefix in sorted(prefixes, key=len, reverse=True):
            if specifier.startswith(prefix):
                return self.repo_root / self.aliases[prefix] / specifier[len(prefix):]
        return None

    def _locate(self, base: Path) -> Optional[Path]:
        if base.is_file():
            return base
        # ESM-style "./Button.js" pointing at Button.ts(x)
        if base.suffix in (".js", ".jsx"):
            stem = base.with_suffix("")
            for ext in self.extensions:
                candidate = stem.with_name(stem.name + ext)
                if candidate.is_file():
                    return candidate
        for ext in self.extensions:
            candidate = base.with_name(base.name + ext)
            if candidate.is_file():
                return candidate
        if base.is_dir():
            for ext in self.extensions:
                candidate = base / f"index{ext}"
                if candidate.is_file():
                    return candidate
        return None

    def _follow_barrels(self, start: Path, symbol: str) -> Tuple[Union[Path, str], List[str]]:
        """
        Follow re-exports of `symbol` from `start` to its defining module.

        Returns the defining file, or the package specifier when a barrel
        re-exports from a package. Raises _BrokenBarrel when a barrel names
        a module that cannot be located.
        """
        if symbol in ("", "*"):
            return start, []

        via: List[str] = []
        current: Union[Path, str] = start
        name = symbol
        seen = {start.resolve()}
        for _ in range(self.max_barrel_depth):
            hop = self._reexport_target(current, name, seen)
            if hop is None:
                break
            via.append(self.canonical(current))
            current, name = hop
            if isinstance(current, str):
                break
            seen.add(current.resolve())
        return current, via

    def _hop(self, specifier: str, barrel: Path, name: str, seen: set) -> Optional[Tuple[Union[Path, str], str]]:
        base = self._base_path(specifier, barrel)
        if base is None:
            return specifier, name
        target = self._locate(base)
        if target is None:
            raise _BrokenBarrel(
                f"Cannot locate '{specifier}' re-exported by {self.canonical(barrel)}"
            )
        if target.resolve() in seen:
            return None
        return target, name

    def _reexport_target(self, path: Path, symbol: str, seen: set) -> Optional[Tuple[Union[Path, str], str]]:
        """Return (file or package, original name) that `path` re-exports `symbol` from, if any."""
        text = self._read(path)
        if text is None:
            return None

        # export { updateUser } where updateUser is imported above
        listed = _local_export_names(text)
        if symbol in listed:
            binding = _imported_bindings(text).get(listed[symbol])
            if binding is None:
                return None
            specifier, original = binding
            return self._hop(specifier, path, original, seen)

        if symbol in _local_exports(text):
            return None

        for match in _NAMED_REEXPORT.finditer(text):
            for entry in _split_specifiers(match.group(1)):
                original, exported = _alias_pair(entry)
                if exported == symbol:
                    return self._hop(match.group(2), path, original, seen)

        # export * never forwards the default export
        if symbol == "default":
            return None

        for match in _STAR_REEXPORT.finditer(text):
            if match.group(1):
                if match.group(1) == symbol:
                    target = self._locate_from(match.group(2), path)
                    if target is not None and target.resolve() not in seen:
                        return target, "*"
                continue
            target = self._locate_from(match.group(2), path)
            if target is None or target.resolve() in seen:
                continue
            if self._exports(target, symbol, seen | {target.resolve()}, depth=0):
                return target, symbol
        return None

    def _exports(self, path: Path, symbol: str, seen: set, depth: int) -> bool:
        """True if `path` exports `symbol`, directly or through its own re-exports."""
        if depth > self.max_barrel_depth:
            return False
        text = self._read(path)
        if text is None:
            return False
        if symbol in _local_exports(text):
            return True
        for match in _NAMED_REEXPORT.finditer(text):
            if any(_alias_pair(e)[1] == symbol for e in _split_specifiers(match.group(1))):
                return True
        for match in _STAR_REEXPORT.finditer(text):
            if match.group(1):
                if match.group(1) == symbol:
                    return True
                continue
            target = self._locate_from(match.group(2), path)
            if target is not None and target.resolve() not in seen:
                if self._exports(target, symbol, seen | {target.resolve()}, depth + 1):
                    return True
        return False

    def _locate_from(self, specifier: str, importer: Path) -> Optional[Path]:
        base = self._base_path(specifier, importer)
        return self._locate(base) if base is not None else None

    def _read(self, path: Path) -> Optional[str]:
        key = path.resolve()
        if key not in self._text_cache:
            try:
                self._text_cache[key] = strip_js_comments(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("Cannot read barrel %s: %s", path, e)
                return None
        return self._text_cache[key]

    def _display(self, base: Path) -> str:
        return _relative_posix(base.resolve(), self.repo_root) or "."


def _split_specifiers(block: str) -> List[str]:
    return [s.strip() for s in block.split(",") if s.strip()]


def _alias_pair(entry: str) -> Tuple[str, str]:
    """'A as B' -> ('A', 'B'); 'type T' -> ('T', 'T')."""
    entry = re.sub(r"^type\s+", "", entry.strip())
    parts = re.split(r"\s+as\s+", entry)
    if len(parts) == 2:
        return parts[0].strip(), parts[1].strip()
    return entry, entry


def _local_exports(text: str) -> set:
    names = set(_LOCAL_EXPORT.findall(text))
    for match in _LOCAL_EXPORT_LIST.finditer(text):
        names.update(_alias_pair(e)[1] for e in _split_specifiers(match.group(1)))
    return names


def _local_export_names(text: str) -> Dict[str, str]:
    """Exported name -> local name for `export { a as b }` lists and `export default a;`."""
    names: Dict[str, str] = {}
    for match in _LOCAL_EXPORT_LIST.finditer(text):
        for entry in _split_specifiers(match.group(1)):
            local, exported = _alias_pair(entry)
            names[exported] = local
    for match in _DEFAULT_EXPORT_NAME.finditer(text):
        names["default"] = match.group(1)
    return names


def _imported_bindings(text: str) -> Dict[str, Tuple[str, str]]:
    """Local name -> (specifier, imported name) for every static import in `text`."""
    bindings: Dict[str, Tuple[str, str]] = {}
    for match in _IMPORT_BINDINGS.finditer(text):
        clause, specifier = match.group(1), match.group(2)
        named = re.search(r"\{([^}]*)\}", clause)
        if named:
            for entry in _split_specifiers(named.group(1)):
                original, local = _alias_pair(entry)
                bindings[local] = (specifier, original)
            clause = clause[: named.start()] + clause[named.end():]
        namespace = re.search(r"\*\s*as\s+([\w$]+)", clause)
        if namespace:
            bindings[namespace.group(1)] = (specifier, "*")
            clause = clause[: namespace.start()] + clause[namespace.end():]
        default = clause.strip().strip(",").strip()
        if re.fullmatch(r"[\w$]+", default):
            bindings[default] = (specifier, "default")
    return bindings
