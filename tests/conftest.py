"""
Shared fixtures for tiergate tests.

Component repositories are built under tmp_path from {relative path: text}
mappings so each test states exactly the files it depends on.
"""
import copy
import textwrap
from pathlib import Path
from typing import Dict

import pytest

from tiergate.analysis.classifier import TierClassifier
from tiergate.analysis.introspector import CodeIntrospector
from tiergate.analysis.resolver import ModuleResolver
from tiergate.analysis.spec_parser import SpecParser
from tiergate.analysis.tier_table import load_tier_table
from tiergate.engine.conformance import ConformanceEngine
from tiergate.utils.config import DEFAULT_CONFIG


def write_files(root: Path, files: Dict[str, str]) -> Path:
    """Write dedented files under root and return root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return root


@pytest.fixture(scope="session")
def table():
    """Packaged tier convention (loaded once, read-only)."""
    return load_tier_table()


@pytest.fixture
def config():
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.fixture
def make_repo(tmp_path):
    """Build a component repository under tmp_path."""

    def _make(files: Dict[str, str]) -> Path:
        return write_files(tmp_path, files)

    return _make


@pytest.fixture
def resolver(tmp_path):
    return ModuleResolver(tmp_path, aliases={"@/": "src/"})


@pytest.fixture
def classifier(table):
    return TierClassifier(table)


@pytest.fixture
def engine(table, classifier):
    return ConformanceEngine(table, classifier)


@pytest.fixture
def parser():
    return SpecParser()


@pytest.fixture
def introspector(table, config):
    return CodeIntrospector(table, config["interactive_components"])
