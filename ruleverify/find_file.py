"""Discovery of rule tests and their stored snapshots on disk."""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import yaml

from .snapshot import RuleSnapshots, SnapshotCollection
from .test_case import RuleTestCase

SNAPSHOT_DIR = "__snapshots__"
CONFIG_FILE = "sgconfig.yml"
_CONFIG_SUFFIXES = frozenset({".yml", ".yaml"})

RegexFilter = Union["re.Pattern[str]", str, None]


@dataclass
class Harness:
    """Test cases, their stored snapshots, and where each rule's snapshots live."""

    test_cases: list[RuleTestCase] = field(default_factory=list)
    snapshots: SnapshotCollection = field(default_factory=dict)
    path_map: dict[str, Path] = field(default_factory=dict)


def _compile_filter(regex_filter: RegexFilter) -> re.Pattern[str] | None:
    if regex_filter is None or isinstance(regex_filter, re.Pattern):
        return regex_filter
    return re.compile(regex_filter)


def _included(regex_filter: re.Pattern[str] | None, rule_id: str) -> bool:
    return regex_filter is None or regex_filter.search(rule_id) is not None


def _load_yaml(path: Path, what: str) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"cannot parse {what} {path}: {exc}") from exc


def _find_config_path(config_path: str | os.PathLike[str] | None) -> Path:
    if config_path is not None:
        return Path(config_path)
    here = Path.cwd()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILE
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(f"no {CONFIG_FILE} found in {here} or its parents")


def _config_files(root: Path) -> Iterator[Path]:
    """Yield YAML files under ``root``, skipping hidden entries."""
    if root.is_file():
        if root.suffix in _CONFIG_SUFFIXES:
            yield root
        return
    if not root.is_dir():
        raise FileNotFoundError(f"cannot walk rule test directory {root}")
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            path = Path(dirpath) / name
            if path.suffix in _CONFIG_SUFFIXES and path.is_file():
                yield path


def _parse(loader: Any, data: Any, path: Path) -> Any:
    try:
        return loader(data)
    except ValueError as exc:
        raise ValueError(f"cannot parse test file {path}: {exc}") from exc


def find_tests(
    config_path: str | os.PathLike[str] | None = None,
    regex_filter: RegexFilter = None,
) -> Harness:
    """Collect tests from every test directory listed in the project configuration."""
    config = _find_config_path(config_path)
    data = _load_yaml(config, "configuration")
    if not isinstance(data, Mapping):
        raise ValueError(f"configuration {config} must be a mapping")
    test_configs = data.get("testConfigs") or []
    if not isinstance(test_configs, list):
        raise ValueError(f"configuration {config}: testConfigs must be a list")
    base_dir = config.parent
    harness = Harness()
    for entry in test_configs:
        if not isinstance(entry, Mapping) or not isinstance(entry.get("testDir"), str):
            raise ValueError(f"configuration {config}: each test config needs a testDir")
        snapshot_dir = entry.get("snapshotDir")
        if snapshot_dir is not None and not isinstance(snapshot_dir, str):
            raise ValueError(f"configuration {config}: snapshotDir must be a string")
        found = read_test_files(base_dir, entry["testDir"], snapshot_dir, regex_filter)
        harness.path_map.update(found.path_map)
        harness.test_cases.extend(found.test_cases)
        harness.snapshots.update(found.snapshots)
    return harness


def read_test_files(
    base_dir: str | os.PathLike[str],
    test_dirname: str | os.PathLike[str],
    snapshot_dirname: str | os.PathLike[str] | None = None,
    regex_filter: RegexFilter = None,
) -> Harness:
    """Read test cases and snapshots from one test directory."""
    pattern = _compile_filter(regex_filter)
    test_path = Path(base_dir) / test_dirname
    snapshot_path = test_path / (snapshot_dirname if snapshot_dirname is not None else SNAPSHOT_DIR)
    harness = Harness()
    for path in _config_files(test_path):
        data = _load_yaml(path, "test file")
        if path.is_relative_to(snapshot_path):
            snapshot = _parse(RuleSnapshots.from_dict, data, path)
            if not _included(pattern, snapshot.id):
                continue
            if snapshot.id in harness.snapshots:
                print(
                    f"Warning: found duplicate test case snapshot for `{snapshot.id}`",
                    file=sys.stderr,
                )
            harness.snapshots[snapshot.id] = snapshot
        else:
            test_case = _parse(RuleTestCase.from_dict, data, path)
            if _included(pattern, test_case.id):
                harness.path_map[test_case.id] = snapshot_path
                harness.test_cases.append(test_case)
    return harness