"""Running rule tests: verifying every case, reporting, and updating snapshots."""

from __future__ import annotations

import argparse
import os
import re
import sys
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar, Union

import yaml

from .case_result import CaseResult
from .find_file import CONFIG_FILE, find_tests, read_test_files
from .reporter import DefaultReporter, InteractiveReporter, Reporter
from .rule import RegexRule, Rule
from .snapshot import RuleSnapshots, SnapshotAction, SnapshotCollection
from .test_case import RuleTestCase

T = TypeVar("T")
R = TypeVar("R")

_MAX_WORKERS = 12
_RULE_SUFFIXES = frozenset({".yml", ".yaml"})

RegexFilter = Union["re.Pattern[str]", str, None]
PathLike = Union[str, "os.PathLike[str]"]


class VerifyFailure(Exception):
    """Raised when at least one rule test failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass
class VerifyOptions:
    """What to test and how to treat snapshots."""

    config: PathLike | None = None
    test_dir: PathLike | None = None
    snapshot_dir: PathLike | None = None
    skip_snapshot_tests: bool = False
    update_all: bool = False
    interactive: bool = False
    filter: RegexFilter = None

    def __post_init__(self) -> None:
        if self.skip_snapshot_tests and self.update_all:
            raise ValueError("skip_snapshot_tests conflicts with update_all")


def parallel_collect(cases: Sequence[T], func: Callable[[T], R | None]) -> list[R]:
    """Apply ``func`` to every case concurrently, keeping order and dropping None results."""
    if not cases:
        return []
    workers = min(os.cpu_count() or 1, _MAX_WORKERS)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return [result for result in pool.map(func, cases) if result is not None]


def verify_test_case_simple(
    test_case: RuleTestCase,
    rules: Mapping[str, Rule],
    snapshots: Mapping[str, RuleSnapshots] | None,
) -> CaseResult | None:
    """Verify one test case against its rule; None if no rule has the case's id."""
    rule = rules.get(test_case.id)
    if rule is None:
        return None
    if snapshots is None:
        return test_case.verify_rule(rule)
    return test_case.verify_with_snapshot(rule, snapshots.get(test_case.id))


def write_merged_to_disk(merged: Mapping[str, RuleSnapshots], path_map: Mapping[str, Path]) -> None:
    """Write each rule's snapshots to ``<id>-snapshot.yml`` in its snapshot directory."""
    for rule_id, snaps in merged.items():
        directory = Path(path_map[rule_id])
        if not directory.exists():
            directory.mkdir()
        (directory / f"{rule_id}-snapshot.yml").write_text(snaps.to_yaml(), encoding="utf-8")


def apply_snapshot_action(
    action: SnapshotAction,
    results: Iterable[CaseResult],
    snapshots: SnapshotCollection | None,
    path_map: Mapping[str, Path],
) -> None:
    """Write accepted snapshot changes to disk, if snapshots are in use and any were accepted."""
    if snapshots is None:
        return
    merged = action.update_snapshot_collection(snapshots, results)
    if merged is None:
        return
    write_merged_to_disk(merged, path_map)


def _locate_config(config_path: PathLike | None) -> Path:
    if config_path is not None:
        return Path(config_path)
    here = Path.cwd()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILE
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(f"no {CONFIG_FILE} found in {here} or its parents")


def _rule_files(root: Path) -> Iterable[Path]:
    if root.is_file():
        return [root]
    if not root.is_dir():
        raise FileNotFoundError(f"cannot find rule directory {root}")
    return sorted(
        path
        for path in root.rglob("*")
        if path.suffix in _RULE_SUFFIXES
        and path.is_file()
        and not any(part.startswith(".") for part in path.relative_to(root).parts)
    )


def load_rules(config_path: PathLike | None = None) -> dict[str, Rule]:
    """Load every rule from the rule directories named in the project configuration."""
    config = _locate_config(config_path)
    try:
        data = yaml.safe_load(config.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"cannot parse configuration {config}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ValueError(f"configuration {config} must be a mapping")
    rule_dirs = data.get("ruleDirs") or []
    if not isinstance(rule_dirs, list) or not all(isinstance(d, str) for d in rule_dirs):
        raise ValueError(f"configuration {config}: ruleDirs must be a list of strings")
    rules: dict[str, Rule] = {}
    for rule_dir in rule_dirs:
        for path in _rule_files(config.parent / rule_dir):
            try:
                documents = list(yaml.safe_load_all(path.read_text(encoding="utf-8")))
            except yaml.YAMLError as exc:
                raise ValueError(f"cannot parse rule file {path}: {exc}") from exc
            for document in documents:
                if document is None:
                    continue
                rule = RegexRule.from_dict(document)
                rules[rule.id] = rule
    return rules


def _make_reporter(options: VerifyOptions) -> Reporter:
    if options.interactive:
        return InteractiveReporter(output=sys.stdout)
    return DefaultReporter(output=sys.stdout, update_all=options.update_all)


def run_test_rule(options: VerifyOptions, reporter: Reporter | None = None) -> str:
    """Run all rule tests; return the closing message, or raise VerifyFailure."""
    if reporter is None:
        reporter = _make_reporter(options)
    rules = load_rules(options.config)
    if options.test_dir is not None:
        harness = read_test_files(
            Path.cwd(), options.test_dir, options.snapshot_dir, options.filter
        )
    else:
        harness = find_tests(options.config, options.filter)
    snapshots = None if options.skip_snapshot_tests else harness.snapshots
    reporter.before_report(harness.test_cases)

    lock = threading.Lock()

    def check_one_case(case: RuleTestCase) -> CaseResult | None:
        result = verify_test_case_simple(case, rules, snapshots)
        if result is None:
            with lock:
                reporter.output.write(f"Configuration not found! {case.id}\n")
        return result

    results = parallel_collect(harness.test_cases, check_one_case)
    reporter.report_failed_cases(results)
    action = reporter.collect_snapshot_action()
    apply_snapshot_action(action, results, snapshots, harness.path_map)
    reporter.report_summaries(results)
    passed, message = reporter.after_report(results)
    if not passed:
        raise VerifyFailure(message)
    reporter.output.write(f"{message}\n")
    return message


def _regex(text: str) -> re.Pattern[str]:
    try:
        return re.compile(text)
    except re.error as exc:
        raise argparse.ArgumentTypeError(f"invalid regex {text!r}: {exc}") from exc


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ruleverify", description="Test rules against their test cases.")
    parser.add_argument("-c", "--config", type=Path, help="path to the root config YAML")
    parser.add_argument("-t", "--test-dir", type=Path, help="the directory to search test YAML files")
    parser.add_argument(
        "--snapshot-dir", type=Path, help="directory name storing snapshots; default __snapshots__"
    )
    exclusive = parser.add_mutually_exclusive_group()
    exclusive.add_argument(
        "--skip-snapshot-tests",
        action="store_true",
        help="only check whether test code is reported, ignoring rule output",
    )
    exclusive.add_argument(
        "-U", "--update-all", action="store_true", help="update all snapshots that changed"
    )
    parser.add_argument(
        "-i", "--interactive", action="store_true", help="review snapshot updates one by one"
    )
    parser.add_argument(
        "-f", "--filter", type=_regex, metavar="REGEX", help="only run tests whose id matches REGEX"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point; returns the exit status."""
    args = _parser().parse_args(argv)
    options = VerifyOptions(
        config=args.config,
        test_dir=args.test_dir,
        snapshot_dir=args.snapshot_dir,
        skip_snapshot_tests=args.skip_snapshot_tests,
        update_all=args.update_all,
        interactive=args.interactive,
        filter=args.filter,
    )
    try:
        run_test_rule(options)
    except VerifyFailure as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    except (OSError, ValueError, KeyError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0