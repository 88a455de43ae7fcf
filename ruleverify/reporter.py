"""Reporting of rule test progress, failures and summaries."""

from __future__ import annotations

import difflib
import sys
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TextIO

import yaml

from .case_result import CaseKind, CaseResult, CaseStatus
from .snapshot import Snapshot, SnapshotAction
from .test_case import RuleTestCase

_BOLD = "1"
_ITALIC = "3"
_UNDERLINE = "4"
_WHITE = "37"
_GREEN = "32"
_ON_RED = "41"
_ON_GREEN = "42"
_ON_YELLOW = "43"

_OK_KINDS = frozenset({CaseKind.VALIDATED, CaseKind.REPORTED})
_SUMMARY_CHARS = {
    CaseKind.VALIDATED: ".",
    CaseKind.REPORTED: ".",
    CaseKind.WRONG: "W",
    CaseKind.UPDATED: "U",
    CaseKind.MISSING: "M",
    CaseKind.NOISY: "N",
    CaseKind.ERROR: "E",
}
_STAT_LABELS = (
    ("Pass", (CaseKind.VALIDATED, CaseKind.REPORTED)),
    ("Updated", (CaseKind.UPDATED,)),
    ("Wrong", (CaseKind.WRONG,)),
    ("Missing", (CaseKind.MISSING,)),
    ("Noisy", (CaseKind.NOISY,)),
    ("Error", (CaseKind.ERROR,)),
)
PROMPT = "Accept new snapshot? (Yes[y], No[n], Accept All[a], Quit[q])"


def _paint(text: str, *codes: str) -> str:
    return f"\x1b[{';'.join(codes)}m{text}\x1b[0m"


def report_summary(summary: Sequence[CaseStatus]) -> str:
    """One character per case, or counts per outcome when there are many cases."""
    if len(summary) <= 40:
        return "".join(_SUMMARY_CHARS[status.kind] for status in summary)
    counts = Counter(status.kind for status in summary)
    stats = (
        (label, sum(counts[kind] for kind in kinds)) for label, kinds in _STAT_LABELS
    )
    result = ", ".join(f"{label} × {count}" for label, count in stats if count > 0)
    return f"{result:.^50}"


def _indented_write(output: TextIO, code: str) -> None:
    for line in code.splitlines():
        output.write(f"  {line}\n")


def _snapshot_yaml(snapshot: Snapshot) -> str:
    return yaml.safe_dump(snapshot.to_dict(), sort_keys=False, allow_unicode=True)


def _write_diff(output: TextIO, expected: str, actual: str, context: int = 3) -> None:
    lines = list(
        difflib.unified_diff(expected.splitlines(), actual.splitlines(), n=context, lineterm="")
    )
    for line in lines[2:]:
        output.write(f"{line}\n")


def _write_case_detail(output: TextIO, case_id: str, status: CaseStatus) -> bool:
    """Describe a failing or updated case; return whether reporting should go on."""
    rule = _paint(case_id, _BOLD)
    kind = status.kind
    source = status.source or ""
    if kind in _OK_KINDS:
        return True
    if kind is CaseKind.UPDATED:
        output.write(
            f"[{_paint('Updated', _UNDERLINE)}] Rule {rule}'s snapshot baseline has been updated.\n\n"
        )
        _indented_write(output, source)
        output.write("\n")
    elif kind is CaseKind.WRONG:
        wrong = _paint("Wrong", _UNDERLINE)
        actual = _snapshot_yaml(status.actual or Snapshot())
        if status.expected is not None:
            output.write(f"[{wrong}] {rule} snapshot is different from baseline.\n")
            output.write(f"{_paint('Diff:', _ITALIC)}\n")
            _write_diff(output, _snapshot_yaml(status.expected), actual)
        else:
            output.write(f"[{wrong}] No {rule} baseline found.\n")
            output.write(f"{_paint('Generated Snapshot:', _ITALIC)}\n")
            _indented_write(output, actual)
        output.write(f"{_paint('For Code:', _ITALIC)}\n")
        _indented_write(output, source)
        output.write("\n")
    elif kind is CaseKind.MISSING:
        output.write(
            f"[{_paint('Missing', _UNDERLINE)}] Expect rule {rule} to report issues, "
            "but none found in:\n\n"
        )
        _indented_write(output, source)
        output.write("\n")
    elif kind is CaseKind.NOISY:
        output.write(
            f"[{_paint('Noisy', _UNDERLINE)}] Expect {rule} to report no issue, "
            "but some issues found in:\n\n"
        )
        _indented_write(output, source)
        output.write("\n")
    else:
        output.write(f"[{_paint('Error', _UNDERLINE)}] Fail to apply fix to {rule}\n")
    return True


@dataclass
class Reporter(ABC):
    """Writes test progress to ``output`` and decides what happens to snapshots."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def before_report(self, test_cases: Sequence[RuleTestCase]) -> None:
        self.output.write(f"Running {len(test_cases)} tests\n")

    def after_report(self, results: Sequence[CaseResult]) -> tuple[bool, str]:
        """Return whether all tests passed, with a closing message."""
        passed = sum(1 for result in results if result.passed())
        failed = len(results) - passed
        message = f"{passed} passed; {failed} failed;"
        if failed:
            return False, f"test failed. {message}"
        return True, f"test result: {_paint('ok', _GREEN)}. {message}"

    def report_failed_cases(self, results: Sequence[CaseResult]) -> None:
        self.output.write("\n----------- Case Details -----------\n")
        for result in results:
            if result.passed():
                continue
            for status in result.cases:
                if not self.report_case_detail(result.id, status):
                    return

    def report_summaries(self, results: Sequence[CaseResult]) -> None:
        for result in results:
            self.report_case_summary(result.id, result.cases)
        self.output.write("\n")

    def report_case_summary(self, case_id: str, summary: Sequence[CaseStatus]) -> None:
        if not summary:
            status = _paint("SKIP", _BOLD, _ON_YELLOW, _WHITE)
        elif all(case.is_pass() for case in summary):
            status = _paint("PASS", _BOLD, _ON_GREEN, _WHITE)
        else:
            status = _paint("FAIL", _BOLD, _ON_RED, _WHITE)
        self.output.write(f"{status} {case_id}  {report_summary(summary)}\n")

    @abstractmethod
    def report_case_detail(self, case_id: str, status: CaseStatus) -> bool:
        """Report one case, possibly accepting its snapshot; return whether to go on."""

    @abstractmethod
    def collect_snapshot_action(self) -> SnapshotAction:
        """What to do with snapshot changes after reporting."""


@dataclass
class DefaultReporter(Reporter):
    """Reports every failure; with ``update_all`` every changed snapshot is accepted."""

    update_all: bool = False

    def report_case_detail(self, case_id: str, status: CaseStatus) -> bool:
        if self.update_all:
            status.accept()
        return _write_case_detail(self.output, case_id, status)

    def collect_snapshot_action(self) -> SnapshotAction:
        return SnapshotAction.NEED_UPDATE if self.update_all else SnapshotAction.ACCEPT_NONE


@contextmanager
def _alternate_screen(output: TextIO) -> Iterator[None]:
    isatty = getattr(output, "isatty", None)
    if not (callable(isatty) and isatty()):
        yield
        return
    output.write("\x1b[?1049h\x1b[H")
    output.flush()
    try:
        yield
    finally:
        output.write("\x1b[?1049l")
        output.flush()


@dataclass
class InteractiveReporter(Reporter):
    """Asks, case by case, whether each changed snapshot should be accepted."""

    should_accept_all: bool = False
    read_line: Callable[[], str] = field(default_factory=lambda: sys.stdin.readline)

    def _prompt(self, text: str, letters: str, default: str | None) -> str:
        while True:
            self.output.write(f"{text}\n")
            self.output.flush()
            line = self.read_line()
            if not line:
                raise EOFError("no response to prompt")
            answer = line.strip().lower()
            if not answer:
                if default is not None:
                    return default
                continue
            if answer[0] in letters:
                return answer[0]

    def report_case_detail(self, case_id: str, status: CaseStatus) -> bool:
        if status.kind in _OK_KINDS:
            return True
        with _alternate_screen(self.output):
            _write_case_detail(self.output, case_id, status)
            if status.kind is not CaseKind.WRONG:
                return self._prompt("Next[enter], Quit[q]", "q", "\n") != "q"
            if self.should_accept_all:
                status.accept()
                return True
            response = self._prompt(PROMPT, "ynaq", "n")
            if response == "q":
                return False
            if response == "a":
                self.should_accept_all = True
            if response in ("y", "a"):
                status.accept()
            return True

    def collect_snapshot_action(self) -> SnapshotAction:
        return SnapshotAction.NEED_UPDATE