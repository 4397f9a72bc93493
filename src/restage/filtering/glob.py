"""Segment-aware glob matching for staged file paths."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

WINDOWS_DRIVE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:/")


class FilterError(ValueError):
    """Raised when a glob pattern cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid filter pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


@dataclass(slots=True, frozen=True)
class CompiledGlob:
    """A glob pattern translated to an anchored regular expression."""

    pattern: str
    regex: re.Pattern[str]

    def matches(self, path: str) -> bool:
        """Return True when a repository-relative path matches the pattern."""
        return self.regex.fullmatch(normalize_path(path)) is not None


def normalize_path(path: str) -> str:
    """Normalize separators so matching is independent of the host convention."""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def compile_glob(pattern: str) -> CompiledGlob:
    """Compile a glob, raising FilterError for malformed patterns."""
    if not pattern:
        raise FilterError(pattern, "pattern is empty")
    body = pattern
    while body.startswith("./"):
        body = body[2:]
    if WINDOWS_DRIVE_PATTERN.match(body):
        raise FilterError(pattern, "pattern must be relative to the repository root")
    body = body.lstrip("/")
    regex = _translate(pattern, body)
    return CompiledGlob(pattern=pattern, regex=re.compile(regex, re.DOTALL))


def matches(path: str, pattern: str | None) -> bool:
    """Return True when path matches pattern; no pattern matches everything."""
    if pattern is None:
        return True
    return compile_glob(pattern).matches(path)


def _translate(pattern: str, body: str) -> str:
    """Translate glob syntax: *, **, ?, [...] and {a,b}."""
    output: list[str] = []
    index = 0
    length = len(body)
    in_braces = False
    while index < length:
        char = body[index]
        if char == "*":
            star_end = index
            while star_end < length and body[star_end] == "*":
                star_end += 1
            at_segment_start = index == 0 or body[index - 1] == "/"
            at_segment_end = star_end == length or body[star_end] == "/"
            if star_end - index >= 2 and at_segment_start and at_segment_end:
                if star_end == length:
                    output.append(".*")
                    index = star_end
                else:
                    output.append("(?:.*/)?")
                    index = star_end + 1
                continue
            output.append("[^/]*")
            index = star_end
            continue
        if char == "?":
            output.append("[^/]")
            index += 1
            continue
        if char == "[":
            class_regex, index = _translate_class(pattern, body, index)
            output.append(class_regex)
            continue
        if char == "{":
            if in_braces:
                raise FilterError(pattern, "nested braces are not supported")
            in_braces = True
            output.append("(?:")
            index += 1
            continue
        if char == "}" and in_braces:
            in_braces = False
            output.append(")")
            index += 1
            continue
        if char == "," and in_braces:
            output.append("|")
            index += 1
            continue
        if char == "\\":
            if index + 1 >= length:
                raise FilterError(pattern, "pattern ends with an escape character")
            output.append(re.escape(body[index + 1]))
            index += 2
            continue
        output.append(re.escape(char))
        index += 1
    if in_braces:
        raise FilterError(pattern, "unclosed '{'")
    return "".join(output)


def _translate_class(pattern: str, body: str, start: int) -> tuple[str, int]:
    """Translate a [...] character class starting at body[start]."""
    index = start + 1
    negated = False
    if index < len(body) and body[index] in "!^":
        negated = True
        index += 1
    members: list[str] = []
    # A leading ']' is a literal member.
    if index < len(body) and body[index] == "]":
        members.append("\\]")
        index += 1
    while index < len(body) and body[index] != "]":
        char = body[index]
        if char == "/":
            raise FilterError(pattern, "character class cannot contain '/'")
        if char == "\\" and index + 1 < len(body):
            members.append(re.escape(body[index + 1]))
            index += 2
            continue
        if char == "-" and members and index + 1 < len(body) and body[index + 1] != "]":
            members.append("-")
            index += 1
            continue
        members.append(re.escape(char) if char != "-" else "\\-")
        index += 1
    if index >= len(body):
        raise FilterError(pattern, "unclosed '['")
    if not members:
        raise FilterError(pattern, "empty character class")
    joined = "".join(members)
    if negated:
        return f"[^/{joined}]", index + 1
    return f"(?!/)[{joined}]", index + 1
