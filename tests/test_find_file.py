from pathlib import Path

import pytest

from ruleverify.find_file import SNAPSHOT_DIR, find_tests, read_test_files
from ruleverify.snapshot import Label, LabelStyle, RuleSnapshots, Snapshot
from ruleverify.test_case import RuleTestCase

CONFIG = """
ruleDirs:
- rules
testConfigs:
- testDir: rule-tests
"""

TEST = """
id: test-rule
valid:
- None
invalid:
- Some(123)
"""

OTHER_TEST = """
id: other-rule
invalid:
- foo()
"""


def create_files(root: Path, files: dict[str, str]) -> Path:
    for name, contents in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(contents, encoding="utf-8")
    return root


def sample_snapshots(rule_id: str = "test-rule") -> RuleSnapshots:
    label = Label(source="Some(123)", style=LabelStyle.PRIMARY, start=0, end=9)
    return RuleSnapshots(id=rule_id, snapshots={"Some(123)": Snapshot(labels=[label])})


def test_reads_test_cases_and_snapshots(tmp_path):
    snaps = sample_snapshots()
    create_files(
        tmp_path,
        {
            "rule-tests/test-rule-test.yml": TEST,
            f"rule-tests/{SNAPSHOT_DIR}/test-rule-snapshot.yml": snaps.to_yaml(),
        },
    )
    harness = read_test_files(tmp_path, "rule-tests", None, None)
    assert harness.test_cases == [RuleTestCase("test-rule", ["None"], ["Some(123)"])]
    assert harness.snapshots == {"test-rule": snaps}
    assert harness.path_map == {"test-rule": tmp_path / "rule-tests" / "__snapshots__"}


def test_custom_snapshot_dir(tmp_path):
    snaps = sample_snapshots()
    create_files(
        tmp_path,
        {
            "rule-tests/test-rule-test.yml": TEST,
            "rule-tests/snaps/test-rule-snapshot.yml": snaps.to_yaml(),
        },
    )
    harness = read_test_files(tmp_path, "rule-tests", "snaps", None)
    assert harness.snapshots == {"test-rule": snaps}
    assert harness.path_map["test-rule"] == tmp_path / "rule-tests" / "snaps"
    assert [case.id for case in harness.test_cases] == ["test-rule"]


def test_filter_excludes_non_matching(tmp_path):
    create_files(
        tmp_path,
        {
            "rule-tests/test-rule-test.yml": TEST,
            f"rule-tests/{SNAPSHOT_DIR}/s.yml": sample_snapshots().to_yaml(),
        },
    )
    harness = read_test_files(tmp_path, "rule-tests", None, "error-rule")
    assert harness.test_cases == []
    assert harness.snapshots == {}
    assert harness.path_map == {}


def test_filter_searches_within_id(tmp_path):
    create_files(
        tmp_path,
        {"rule-tests/a.yml": TEST, "rule-tests/b.yaml": OTHER_TEST},
    )
    harness = read_test_files(tmp_path, "rule-tests", None, "test")
    assert [case.id for case in harness.test_cases] == ["test-rule"]
    everything = read_test_files(tmp_path, "rule-tests")
    assert sorted(case.id for case in everything.test_cases) == ["other-rule", "test-rule"]


def test_ignores_other_and_hidden_files(tmp_path):
    create_files(
        tmp_path,
        {
            "rule-tests/test.yml": TEST,
            "rule-tests/notes.txt": "not yaml: [",
            "rule-tests/.hidden.yml": "broken: [",
            "rule-tests/.git/config.yml": "broken: [",
        },
    )
    harness = read_test_files(tmp_path, "rule-tests")
    assert [case.id for case in harness.test_cases] == ["test-rule"]


def test_duplicate_snapshot_warns(tmp_path, capsys):
    create_files(
        tmp_path,
        {
            f"rule-tests/{SNAPSHOT_DIR}/a.yml": sample_snapshots().to_yaml(),
            f"rule-tests/{SNAPSHOT_DIR}/b.yml": sample_snapshots().to_yaml(),
        },
    )
    harness = read_test_files(tmp_path, "rule-tests")
    assert list(harness.snapshots) == ["test-rule"]
    assert "duplicate test case snapshot for `test-rule`" in capsys.readouterr().err


def test_missing_directory_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_test_files(tmp_path, "nowhere")


def test_malformed_test_raises(tmp_path):
    create_files(tmp_path, {"rule-tests/bad.yml": "valid: [a]\n"})
    with pytest.raises(ValueError):
        read_test_files(tmp_path, "rule-tests")


def test_invalid_yaml_raises(tmp_path):
    create_files(tmp_path, {"rule-tests/bad.yml": "id: [unclosed\n"})
    with pytest.raises(ValueError):
        read_test_files(tmp_path, "rule-tests")


def test_find_tests_with_config_path(tmp_path):
    create_files(
        tmp_path,
        {"sgconfig.yml": CONFIG, "rule-tests/test-rule-test.yml": TEST},
    )
    harness = find_tests(tmp_path / "sgconfig.yml", None)
    assert [case.id for case in harness.test_cases] == ["test-rule"]
    assert harness.path_map["test-rule"] == tmp_path / "rule-tests" / SNAPSHOT_DIR


def test_find_tests_searches_parent_directories(tmp_path, monkeypatch):
    create_files(
        tmp_path,
        {"sgconfig.yml": CONFIG, "rule-tests/test-rule-test.yml": TEST, "src/x.ts": ""},
    )
    monkeypatch.chdir(tmp_path / "src")
    harness = find_tests()
    assert [case.id for case in harness.test_cases] == ["test-rule"]


def test_find_tests_merges_directories(tmp_path):
    config = "testConfigs:\n- testDir: one\n- testDir: two\n  snapshotDir: snaps\n"
    create_files(
        tmp_path,
        {"sgconfig.yml": config, "one/a.yml": TEST, "two/b.yml": OTHER_TEST},
    )
    harness = find_tests(tmp_path / "sgconfig.yml")
    assert sorted(case.id for case in harness.test_cases) == ["other-rule", "test-rule"]
    assert harness.path_map["other-rule"] == tmp_path / "two" / "snaps"


def test_find_tests_without_test_configs(tmp_path):
    create_files(tmp_path, {"sgconfig.yml": "ruleDirs:\n- rules\n"})
    harness = find_tests(tmp_path / "sgconfig.yml")
    assert harness.test_cases == []
    assert harness.snapshots == {}


def test_find_tests_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_tests(tmp_path / "sgconfig.yml")