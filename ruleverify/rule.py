"""Rules that locate a match in source text and rewrite it with a fix."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


class RuleError(ValueError):
    """Raised when a rule definition is malformed."""


class FixError(Exception):
    """Raised when a rule's fix cannot be applied to a piece of source."""


@dataclass
class Match:
    """A region of source found by a rule, with captured metavariables."""

    text: str
    start: int
    end: int
    env: dict[str, str] = field(default_factory=dict)
    secondary: tuple[Match, ...] = ()


class Rule(ABC):
    """A rule, identified by ``id``, that finds matches and rewrites source."""

    id: str
    fix: str | None

    @abstractmethod
    def find(self, source: str) -> Match | None:
        """Return the first match in ``source``, or None."""

    @abstractmethod
    def apply_fix(self, source: str) -> str:
        """Return ``source`` with the first match replaced by the fix."""


_META_NAME = r"[A-Z_][A-Z0-9_]*"
_PATTERN_PIECE = re.compile(
    rf"\$(?P<meta>{_META_NAME})|(?P<space>\s+)|(?P<text>[^\s$]+|\$)"
)
_FIX_META = re.compile(rf"\$({_META_NAME})")
_META_BODY = r"\S(?:.*\S)?"
_ALWAYS = r"[\s\S]*"
_NEVER = r"(?!)"
_RULE_KEYS = ("regex", "pattern", "all", "any")


def _word_like(char: str) -> bool:
    return char.isalnum() or char in "_$"


def _pattern_to_regex(pattern: str) -> str:
    text = pattern.strip()
    if not text:
        raise RuleError("pattern must not be empty")
    parts: list[str] = []
    seen: set[str] = set()
    for piece in _PATTERN_PIECE.finditer(text):
        name = piece["meta"]
        if name is not None:
            if name.startswith("_"):
                parts.append(f"(?:{_META_BODY})")
            elif name in seen:
                parts.append(f"(?P={name})")
            else:
                seen.add(name)
                parts.append(f"(?P<{name}>{_META_BODY})")
        elif piece["space"] is not None:
            before, after = text[piece.start() - 1], text[piece.end()]
            parts.append(r"\s+" if _word_like(before) and _word_like(after) else r"\s*")
        else:
            parts.append(re.escape(piece["text"]))
    return "".join(parts)


def _combine_all(parts: list[str]) -> str:
    if not parts:
        return _ALWAYS
    if len(parts) == 1:
        return parts[0]
    lookaheads = "".join(f"(?=(?:{part}))" for part in parts[:-1])
    return f"{lookaheads}(?:{parts[-1]})"


def _combine_any(parts: list[str]) -> str:
    if not parts:
        return _NEVER
    return "|".join(f"(?:{part})" for part in parts)


def _string_value(rule: Mapping[str, Any], key: str) -> str:
    value = rule[key]
    if not isinstance(value, str):
        raise RuleError(f"rule key {key!r} must be a string")
    return value


def _list_value(rule: Mapping[str, Any], key: str) -> list[Any]:
    value = rule[key]
    if not isinstance(value, list):
        raise RuleError(f"rule key {key!r} must be a list")
    return value


def _compile_rule(rule: Any) -> str:
    if not isinstance(rule, Mapping):
        raise RuleError("rule must be a mapping")
    unknown = set(rule) - set(_RULE_KEYS)
    if unknown:
        raise RuleError(f"unsupported rule keys: {', '.join(sorted(map(str, unknown)))}")
    parts: list[str] = []
    if "regex" in rule:
        parts.append(_string_value(rule, "regex"))
    if "pattern" in rule:
        parts.append(_pattern_to_regex(_string_value(rule, "pattern")))
    if "all" in rule:
        parts.append(_combine_all([_compile_rule(sub) for sub in _list_value(rule, "all")]))
    if "any" in rule:
        parts.append(_combine_any([_compile_rule(sub) for sub in _list_value(rule, "any")]))
    if not parts:
        raise RuleError(f"rule needs one of: {', '.join(_RULE_KEYS)}")
    return _combine_all(parts)


def _compile(regex: str) -> re.Pattern[str]:
    try:
        return re.compile(regex)
    except re.error as exc:
        raise RuleError(f"invalid regex {regex!r}: {exc}") from exc


def _to_match(found: re.Match[str], secondary: tuple[Match, ...] = ()) -> Match:
    env = {name: value for name, value in found.groupdict().items() if value is not None}
    return Match(found.group(), found.start(), found.end(), env, secondary)


def _expand(template: str, env: Mapping[str, str]) -> str:
    def substitute(meta: re.Match[str]) -> str:
        name = meta.group(1)
        try:
            return env[name]
        except KeyError:
            raise FixError(f"metavariable ${name} is not captured") from None

    return _FIX_META.sub(substitute, template)


@dataclass
class RegexRule(Rule):
    """A rule whose matcher is a regular expression, optionally within a container."""

    id: str
    regex: str
    inside: str | None = None
    fix: str | None = None
    language: str = ""
    message: str = ""
    severity: str = "hint"
    _matcher: re.Pattern[str] = field(init=False, repr=False, compare=False)
    _container: re.Pattern[str] | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._matcher = _compile(self.regex)
        self._container = None if self.inside is None else _compile(self.inside)

    def find(self, source: str) -> Match | None:
        """Return the first match in ``source``; with ``inside``, the container is a secondary label."""
        if self._container is None:
            found = self._matcher.search(source)
            return None if found is None else _to_match(found)
        for span in self._container.finditer(source):
            found = self._matcher.search(source, span.start(), span.end())
            if found is not None:
                return _to_match(found, (_to_match(span),))
        return None

    def apply_fix(self, source: str) -> str:
        """Replace the first match with the fix template, substituting metavariables."""
        if self.fix is None:
            raise FixError(f"rule {self.id} has no fix")
        found = self.find(source)
        if found is None:
            raise FixError(f"rule {self.id} does not match the source")
        replacement = _expand(self.fix, found.env)
        return source[: found.start] + replacement + source[found.end :]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RegexRule:
        """Build a rule from a parsed rule configuration."""
        if not isinstance(data, Mapping):
            raise RuleError("rule configuration must be a mapping")
        rule_id = data.get("id")
        if not isinstance(rule_id, str) or not rule_id:
            raise RuleError("rule configuration needs a non-empty id")
        body = data.get("rule")
        if not isinstance(body, Mapping):
            raise RuleError(f"rule {rule_id} needs a 'rule' mapping")
        fix = data.get("fix")
        if fix is not None and not isinstance(fix, str):
            raise RuleError(f"rule {rule_id} has a fix that is not a string")
        inside = body.get("inside")
        matcher = {key: value for key, value in body.items() if key != "inside"}
        return cls(
            id=rule_id,
            regex=_compile_rule(matcher),
            inside=None if inside is None else _compile_rule(inside),
            fix=fix,
            language=str(data.get("language", "")),
            message=str(data.get("message", "")),
            severity=str(data.get("severity", "hint")),
        )