"""Snapshots of what a rule reports for a piece of test code."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from .rule import Match, Rule


def _field(data: Any, key: str, kind: type | tuple[type, ...]) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError("snapshot entry must be a mapping")
    try:
        value = data[key]
    except KeyError:
        raise ValueError(f"snapshot entry is missing {key!r}") from None
    if not isinstance(value, kind):
        raise ValueError(f"snapshot entry {key!r} has the wrong type")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"snapshot entry {key!r} must be a string")
    return value


class LabelStyle(enum.Enum):
    """Whether a label marks the match itself or its surroundings."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass
class Label:
    """A highlighted span of test code."""

    source: str
    style: LabelStyle
    start: int
    end: int
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"source": self.source}
        if self.message is not None:
            data["message"] = self.message
        data.update(style=self.style.value, start=self.start, end=self.end)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Label:
        return cls(
            source=_field(data, "source", str),
            style=LabelStyle(_field(data, "style", str)),
            start=_field(data, "start", int),
            end=_field(data, "end", int),
            message=_optional_str(data, "message"),
        )


def _label(match: Match, style: LabelStyle) -> Label:
    return Label(source=match.text, style=style, start=match.start, end=match.end)


def _labels_for(match: Match) -> list[Label]:
    return [_label(match, LabelStyle.PRIMARY)] + [
        _label(extra, LabelStyle.SECONDARY) for extra in match.secondary
    ]


@dataclass
class Snapshot:
    """The labels and, if the rule has a fix, the fixed code for one test case."""

    labels: list[Label] = field(default_factory=list)
    fixed: str | None = None

    @classmethod
    def generate(cls, rule: Rule, case: str) -> Snapshot | None:
        """Snapshot what ``rule`` reports for ``case``; None if it reports nothing.

        Raises FixError if the rule's fix cannot be applied.
        """
        found = rule.find(case)
        if found is None:
            return None
        labels = _labels_for(found)
        if rule.fix is None:
            return cls(labels=labels)
        return cls(labels=labels, fixed=rule.apply_fix(case))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.fixed is not None:
            data["fixed"] = self.fixed
        data["labels"] = [label.to_dict() for label in self.labels]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Snapshot:
        labels = _field(data, "labels", list)
        return cls(
            labels=[Label.from_dict(label) for label in labels],
            fixed=_optional_str(data, "fixed"),
        )


@dataclass
class RuleSnapshots:
    """The snapshots of one rule's test, keyed by the invalid code they belong to."""

    id: str
    snapshots: dict[str, Snapshot] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "snapshots": {
                source: self.snapshots[source].to_dict() for source in sorted(self.snapshots)
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RuleSnapshots:
        rule_id = _field(data, "id", str)
        entries = _field(data, "snapshots", Mapping)
        snapshots: dict[str, Snapshot] = {}
        for source, entry in entries.items():
            if not isinstance(source, str):
                raise ValueError(f"snapshot key {source!r} must be a string")
            snapshots[source] = Snapshot.from_dict(entry)
        return cls(id=rule_id, snapshots=snapshots)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)


SnapshotCollection = dict[str, RuleSnapshots]


def merge_snapshots(
    accepted: Mapping[str, RuleSnapshots], existing: Mapping[str, RuleSnapshots]
) -> SnapshotCollection:
    """Merge accepted snapshots over existing ones without changing either input."""
    merged = {
        rule_id: RuleSnapshots(id=snaps.id, snapshots=dict(snaps.snapshots))
        for rule_id, snaps in existing.items()
    }
    for rule_id, snaps in accepted.items():
        if rule_id in merged:
            merged[rule_id].snapshots.update(snaps.snapshots)
        else:
            merged[rule_id] = RuleSnapshots(id=snaps.id, snapshots=dict(snaps.snapshots))
    return merged


class SnapshotAction(enum.Enum):
    """What to do with changed snapshots once tests have run."""

    NEED_UPDATE = "need_update"
    ACCEPT_NONE = "accept_none"

    def update_snapshot_collection(
        self, existing: Mapping[str, RuleSnapshots], results: Iterable[Any]
    ) -> SnapshotCollection | None:
        """Return the merged collection to write, or None if nothing is accepted.

        Each result needs an ``id`` and a ``changed_snapshots()`` method.
        """
        if self is SnapshotAction.ACCEPT_NONE:
            return None
        accepted = {result.id: result.changed_snapshots() for result in results}
        return merge_snapshots(accepted, existing)