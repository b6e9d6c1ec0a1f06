"""Ignore-pattern parsing and matching for manifest pruning.

Each non-comment line of an ignore file becomes one of three patterns:

- `DirectoryPattern`: lines ending in `/` (`log/`), or lines starting with `/`
  that contain no glob characters (`/spec`). Matches any path under that
  directory, anchored at the repository root.
- `GlobPattern`: lines containing `*` or `?` (`*.rbc`, `**/.DS_Store`).
  Matched per path segment from the repository root; `**` spans directories,
  dotfiles are not special, and `[...]` classes and `{a,b}` alternatives work.
- `ExactPattern`: everything else, compared against the whole path.

A path is ignored when any pattern matches it; pattern order never matters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Union

from pathspec.patterns import GitWildMatchPattern

_COMMENT_RE = re.compile(r"(?<!\\)#.*\Z")
_GLOB_CHARS = ("*", "?")
# Group pathspec names for the `/...` tail that matches inside a directory.
_DESCENDANT_GROUP = "ps_d"


def strip_comments_and_empty_lines(lines: Iterable[str]) -> list[str]:
    """Drop `#` comments (unless escaped with a backslash), whitespace, and blank lines."""

    out: list[str] = []
    for raw in lines:
        item = _COMMENT_RE.sub("", raw.rstrip("\r\n")).strip()
        if item:
            out.append(item)
    return out


def _split_alternatives(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    idx = 0
    while idx < len(body):
        char = body[idx]
        if char == "\\" and idx + 1 < len(body):
            current.append(body[idx : idx + 2])
            idx += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            idx += 1
            continue
        current.append(char)
        idx += 1
    parts.append("".join(current))
    return parts


def expand_braces(pattern: str) -> list[str]:
    """Expand `{a,b}` alternatives; a brace group without a comma stays literal."""

    depth = 0
    start = -1
    idx = 0
    while idx < len(pattern):
        char = pattern[idx]
        if char == "\\":
            idx += 2
            continue
        if char == "{":
            if depth == 0:
                start = idx
            depth += 1
        elif char == "}" and depth:
            depth -= 1
            if depth == 0:
                options = _split_alternatives(pattern[start + 1 : idx])
                if len(options) > 1:
                    prefix, suffix = pattern[:start], pattern[idx + 1 :]
                    expanded: list[str] = []
                    for option in options:
                        expanded.extend(expand_braces(prefix + option + suffix))
                    return expanded
        idx += 1
    return [pattern]


def _anchored(pattern: str) -> str:
    # gitwildmatch floats slash-free patterns to any depth; a leading slash pins
    # them to the root. A leading `!` would otherwise negate.
    if pattern.startswith("!"):
        pattern = "\\" + pattern
    if not pattern.startswith("/"):
        pattern = "/" + pattern
    # A trailing `**` only spans one segment unless a `/` follows it.
    if pattern.endswith("/**"):
        pattern = pattern[:-1]
    return pattern


@dataclass(frozen=True)
class ExactPattern:
    text: str

    def matches(self, path: str) -> bool:
        return path == self.text


@dataclass(frozen=True)
class GlobPattern:
    text: str
    _compiled: tuple[GitWildMatchPattern, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        compiled = tuple(GitWildMatchPattern(_anchored(option)) for option in expand_braces(self.text))
        object.__setattr__(self, "_compiled", compiled)

    def matches(self, path: str) -> bool:
        for pattern in self._compiled:
            match = pattern.regex.match(path)
            # gitwildmatch also accepts anything below a matching directory;
            # only a match of the whole path counts here.
            if match is not None and match.groupdict().get(_DESCENDANT_GROUP) is None:
                return True
        return False


@dataclass(frozen=True)
class DirectoryPattern:
    text: str
    regex: re.Pattern[str]

    @classmethod
    def from_line(cls, line: str) -> "DirectoryPattern":
        prefix = line.strip("/") + "/"
        return cls(text=line, regex=re.compile(r"\A" + re.escape(prefix)))

    def matches(self, path: str) -> bool:
        return self.regex.match(path) is not None


IgnorePattern = Union[ExactPattern, GlobPattern, DirectoryPattern]


def _has_glob(line: str) -> bool:
    return any(char in line for char in _GLOB_CHARS)


def compile_pattern(line: str) -> IgnorePattern:
    if line.startswith("/") and not _has_glob(line):
        return DirectoryPattern.from_line(line)
    if line.endswith("/"):
        return DirectoryPattern.from_line(line)
    if _has_glob(line):
        return GlobPattern(line)
    return ExactPattern(line)


def compile_patterns(lines: Iterable[str]) -> list[IgnorePattern]:
    return [compile_pattern(line) for line in strip_comments_and_empty_lines(lines)]


def is_ignored(path: str, patterns: Iterable[IgnorePattern]) -> bool:
    return any(pattern.matches(path) for pattern in patterns)


def prune(paths: Iterable[str], patterns: Iterable[IgnorePattern]) -> list[str]:
    compiled = list(patterns)
    return [path for path in paths if not is_ignored(path, compiled)]
