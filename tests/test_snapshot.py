import pytest
import yaml

from ruleverify.case_result import CaseKind, CaseResult, CaseStatus
from ruleverify.rule import FixError, RegexRule
from ruleverify.snapshot import (
    Label,
    LabelStyle,
    RuleSnapshots,
    Snapshot,
    SnapshotAction,
    merge_snapshots,
)

TEST_RULE = "test-rule"


def get_rule_config(rule, **extra):
    return RegexRule.from_dict(
        {
            "id": TEST_RULE,
            "message": "test",
            "severity": "hint",
            "language": "TypeScript",
            "rule": rule,
            **extra,
        }
    )


def test_generate():
    rule = get_rule_config({"pattern": "let x = $A"})
    result = Snapshot.generate(rule, "let x = 42;")
    assert result == Snapshot(
        fixed=None,
        labels=[Label(source="let x = 42;", message=None, style=LabelStyle.PRIMARY, start=0, end=11)],
    )


def test_not_found():
    rule = get_rule_config({"pattern": "var x = $A"})
    assert Snapshot.generate(rule, "let x = 42;") is None


def test_secondary_label():
    rule = get_rule_config({"pattern": "let x = $A;", "inside": {"regex": r"\{[^{}]*\}"}})
    result = Snapshot.generate(rule, "function test() { let x = 42; }")
    assert result == Snapshot(
        fixed=None,
        labels=[
            Label(source="let x = 42;", style=LabelStyle.PRIMARY, start=18, end=29),
            Label(source="{ let x = 42; }", style=LabelStyle.SECONDARY, start=16, end=31),
        ],
    )


def test_snapshot_action():
    rule = get_rule_config({"pattern": "let x = $A"})
    updated = Snapshot.generate(rule, "let x = 123")
    results = [
        CaseResult(
            id=TEST_RULE,
            cases=[CaseStatus(CaseKind.UPDATED, source="let x = 123", updated=updated)],
        )
    ]
    op = SnapshotAction.NEED_UPDATE.update_snapshot_collection({}, results)
    assert op[TEST_RULE].snapshots["let x = 123"].labels[0].source == "let x = 123"


def test_accept_none_returns_none():
    results = [CaseResult(id=TEST_RULE, cases=[])]
    assert SnapshotAction.ACCEPT_NONE.update_snapshot_collection({}, results) is None


def test_generate_with_fix():
    rule = get_rule_config({"pattern": "console.log($A)"}, fix="log($A)")
    result = Snapshot.generate(rule, "console.log(123)")
    assert result.fixed == "log(123)"
    assert result.labels[0].source == "console.log(123)"


def test_generate_with_broken_fix_raises():
    rule = get_rule_config({"pattern": "console.log($A)"}, fix="log($B)")
    with pytest.raises(FixError):
        Snapshot.generate(rule, "console.log(123)")


def test_to_dict_omits_missing_fix_and_message():
    snap = Snapshot(labels=[Label("a", LabelStyle.PRIMARY, 0, 1)])
    assert snap.to_dict() == {
        "labels": [{"source": "a", "style": "primary", "start": 0, "end": 1}]
    }


def test_label_round_trip_with_message():
    label = Label("b", LabelStyle.SECONDARY, 2, 3, message="note")
    assert Label.from_dict(label.to_dict()) == label


def test_label_bad_style_rejected():
    with pytest.raises(ValueError):
        Label.from_dict({"source": "a", "style": "tertiary", "start": 0, "end": 1})


def test_label_missing_key_rejected():
    with pytest.raises(ValueError):
        Label.from_dict({"source": "a", "style": "primary", "start": 0})


def test_rule_snapshots_yaml_round_trip():
    snaps = RuleSnapshots(
        id=TEST_RULE,
        snapshots={
            "let y = 2": Snapshot(labels=[Label("let y = 2", LabelStyle.PRIMARY, 0, 9)], fixed="z"),
            "let a = 1": Snapshot(labels=[Label("let a = 1", LabelStyle.PRIMARY, 0, 9)]),
        },
    )
    text = snaps.to_yaml()
    loaded = yaml.safe_load(text)
    assert list(loaded["snapshots"]) == ["let a = 1", "let y = 2"]
    assert RuleSnapshots.from_dict(loaded) == snaps


def test_rule_snapshots_rejects_non_string_key():
    with pytest.raises(ValueError):
        RuleSnapshots.from_dict({"id": TEST_RULE, "snapshots": {1: {"labels": []}}})


def test_merge_snapshots_prefers_accepted_and_keeps_inputs():
    old = Snapshot(labels=[Label("old", LabelStyle.PRIMARY, 0, 3)])
    new = Snapshot(labels=[Label("new", LabelStyle.PRIMARY, 0, 3)])
    other = Snapshot(labels=[])
    existing = {TEST_RULE: RuleSnapshots(TEST_RULE, {"a": old, "b": other})}
    accepted = {
        TEST_RULE: RuleSnapshots(TEST_RULE, {"a": new}),
        "other-rule": RuleSnapshots("other-rule", {"c": other}),
    }
    merged = merge_snapshots(accepted, existing)
    assert merged[TEST_RULE].snapshots == {"a": new, "b": other}
    assert merged["other-rule"].snapshots == {"c": other}
    assert existing[TEST_RULE].snapshots["a"] == old