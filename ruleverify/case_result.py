"""Outcomes of checking a rule against its valid and invalid test code."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .rule import FixError, Rule
from .snapshot import RuleSnapshots, Snapshot


class CaseKind(enum.Enum):
    """How a single test case turned out."""

    VALIDATED = "validated"
    REPORTED = "reported"
    UPDATED = "updated"
    WRONG = "wrong"
    MISSING = "missing"
    NOISY = "noisy"
    ERROR = "error"


_PASSING = frozenset({CaseKind.VALIDATED, CaseKind.REPORTED, CaseKind.UPDATED})


@dataclass
class CaseStatus:
    """The outcome of one test case, with the code and snapshots involved."""

    kind: CaseKind
    source: str | None = None
    actual: Snapshot | None = None
    expected: Snapshot | None = None
    updated: Snapshot | None = None

    def accept(self) -> bool:
        """Turn a wrong snapshot into an accepted update; return whether it changed."""
        if self.kind is not CaseKind.WRONG:
            return False
        self.kind = CaseKind.UPDATED
        self.updated, self.actual, self.expected = self.actual, None, None
        return True

    def is_pass(self) -> bool:
        return self.kind in _PASSING


def verify_valid(rule: Rule, case: str) -> CaseStatus:
    """Valid code passes when the rule reports nothing for it."""
    if rule.find(case) is not None:
        return CaseStatus(CaseKind.NOISY, source=case)
    return CaseStatus(CaseKind.VALIDATED)


def verify_invalid(rule: Rule, case: str) -> CaseStatus:
    """Invalid code passes when the rule reports something for it."""
    if rule.find(case) is not None:
        return CaseStatus(CaseKind.REPORTED)
    return CaseStatus(CaseKind.MISSING, source=case)


def verify_snapshot(rule: Rule, case: str, snapshot: Snapshot | None) -> CaseStatus:
    """Invalid code passes when what the rule reports equals the stored snapshot."""
    try:
        actual = Snapshot.generate(rule, case)
    except FixError:
        return CaseStatus(CaseKind.ERROR)
    if actual is None:
        return CaseStatus(CaseKind.MISSING, source=case)
    if snapshot is not None and snapshot == actual:
        return CaseStatus(CaseKind.REPORTED)
    return CaseStatus(CaseKind.WRONG, source=case, actual=actual, expected=snapshot)


@dataclass
class CaseResult:
    """The outcomes of all cases in one rule test."""

    id: str
    cases: list[CaseStatus] = field(default_factory=list)

    def passed(self) -> bool:
        return all(case.is_pass() for case in self.cases)

    def changed_snapshots(self) -> RuleSnapshots:
        """The snapshots accepted as updates, keyed by their code."""
        return RuleSnapshots(
            id=self.id,
            snapshots={
                case.source: case.updated
                for case in self.cases
                if case.kind is CaseKind.UPDATED
                and case.source is not None
                and case.updated is not None
            },
        )