# ruleverify

`ruleverify` runs test suites for code-matching rules. A rule can have a test
file that lists code samples. Some samples are **valid**, so the rule must not
report anything in them. Others are **invalid**, so the rule must report them.
For invalid samples, `ruleverify` can also record a **snapshot** of what the
rule matched and what its fix produced. Later runs compare against that
snapshot.

## Installation

```
pip install ruleverify
```

## Project layout

The root configuration file, `sgconfig.yml`, names the rule directories and
the test directories:

```yaml
ruleDirs:
- rules
testConfigs:
- testDir: rule-tests
```

If `-c` is not given, `sgconfig.yml` is looked for in the current directory
and then in each parent directory in turn.

Every `.yml` or `.yaml` file under a rule directory is loaded, and hidden files
and directories are skipped. A file may hold several rules as separate YAML
documents:

```yaml
id: test-rule
message: test rule
severity: warning
language: TypeScript
rule:
  pattern: Some($A)
fix: Option($A)
```

A rule test file in a test directory names the rule it tests by `id`:

```yaml
id: test-rule
valid:
- None
invalid:
- Some(123)
```

Snapshots go in a `__snapshots__` directory inside each test directory, one
`<id>-snapshot.yml` file per rule. A test configuration can set `snapshotDir`
to use a different directory name. Every YAML file under the snapshot
directory is read as a snapshot file. Every other YAML file under the test
directory is read as a test file.

## How rules match

Rules match text with regular expressions. The `rule` mapping accepts these
keys:

- `regex`: a Python regular expression.
- `pattern`: code with metavariables. `$NAME` (capital letters, digits and
  underscores) captures text that starts and ends with a non-space character
  and stays on one line. If the same name appears again, it must match the
  same text. A name that starts with `_`, such as `$_X`, matches without
  capturing. Whitespace in the pattern matches any amount of whitespace, or
  none when it is not between two word characters.
- `all`: a list of sub-rules that must all match at the same place. An empty
  list always matches.
- `any`: a list of sub-rules where at least one must match. An empty list
  never matches.
- `inside`: a sub-rule for a container. The match is only searched for inside
  a container match, and the container is recorded as a secondary label.

The first match in a sample counts. A `fix` string replaces that match, and
captured metavariables such as `$A` are substituted. If the fix uses a
metavariable that was not captured, the case is reported as an error.

## Running tests

```
ruleverify -c sgconfig.yml
```

Options:

| Option | Meaning |
| --- | --- |
| `-c`, `--config PATH` | Root configuration file |
| `-t`, `--test-dir DIR` | Read test files from this directory, relative to the current directory, instead of the configured ones |
| `--snapshot-dir NAME` | Name of the snapshot directory (default `__snapshots__`) |
| `--skip-snapshot-tests` | Only check whether rules report, and ignore snapshots |
| `-U`, `--update-all` | Accept every changed snapshot and write it to disk |
| `-i`, `--interactive` | Review changed snapshots one at a time |
| `-f`, `--filter REGEX` | Only run tests whose rule id matches `REGEX` (searched anywhere in the id) |

`--skip-snapshot-tests` cannot be combined with `--update-all`.

The output starts with the number of tests. Details for failing cases come
next, then a summary line for each rule:

```
PASS test-rule  ..
FAIL other-rule  .MN
```

In the summary, each character stands for one case:

- `.` passed
- `U` snapshot updated
- `W` output differs from the snapshot, or there is no snapshot yet
- `M` missing: nothing was reported for invalid code
- `N` noisy: something was reported for valid code
- `E` the fix could not be applied

If a rule has more than 40 cases, the summary shows counts instead, such as
`Pass × 10, Wrong × 2`. A rule with no cases is shown as `SKIP`. A test whose
id matches no loaded rule prints `Configuration not found!` and is left out of
the results.

When every case passes, the command prints `test result: ok.` followed by the
counts and exits with status 0. Otherwise it prints the error to standard
error and exits with status 1.

In interactive mode, each changed snapshot is shown with a prompt:
`y` accepts it, `n` keeps the old one, `a` accepts it and all that follow, and
`q` stops the review. Accepted snapshots are merged into the existing ones and
written to `<id>-snapshot.yml`.

## Library use

```python
from ruleverify.verify import VerifyOptions, VerifyFailure, run_test_rule
from ruleverify.reporter import DefaultReporter

try:
    message = run_test_rule(VerifyOptions(config="sgconfig.yml", skip_snapshot_tests=True))
except VerifyFailure as failure:
    print(failure.message)
```

- `ruleverify.verify.load_rules` loads the rules named by a configuration file.
  It returns a dictionary keyed by rule id.
- `ruleverify.find_file.find_tests` and `read_test_files` collect test cases
  and snapshots into a `Harness`.
- `RuleTestCase.verify_rule` and `RuleTestCase.verify_with_snapshot` check a
  single test case and return a `CaseResult`.
- `Snapshot.generate` records what a rule matched in a piece of code, and what
  its fix produced.
- `RegexRule.from_dict` builds a rule from a parsed rule mapping.
- `DefaultReporter` and `InteractiveReporter` write to any text stream given as
  `output`.

## What it does not do

- Rules match text, not syntax trees. The `language` field is kept but not
  used for matching. Matching therefore depends on spacing and layout, not on
  the structure of the code.
- Rule keys other than `regex`, `pattern`, `all`, `any` and `inside` are
  rejected. Rule utilities, transformations, constraints and custom languages
  are not supported.
- There is no command for scanning or rewriting a code base. The package only
  runs rule test suites.