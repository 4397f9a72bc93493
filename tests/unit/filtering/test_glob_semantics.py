from __future__ import annotations

import pytest

from restage.filtering import compile_glob, matches


def test_no_pattern_matches_every_path() -> None:
    assert matches("src/A.js", None) is True
    assert matches("docs/deep/readme.md", None) is True


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/A.js", True),
        ("src/B.js", True),
        ("src/nested/C.js", False),
        ("docs/readme.md", False),
        ("A.js", False),
    ],
)
def test_single_star_stays_within_one_segment(path: str, expected: bool) -> None:
    assert matches(path, "src/*.js") is expected


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/A.js", True),
        ("src/a/b/c/D.js", True),
        ("lib/src/A.js", False),
        ("src/A.ts", False),
    ],
)
def test_double_star_crosses_segments(path: str, expected: bool) -> None:
    assert matches(path, "src/**/*.js") is expected


def test_leading_double_star_matches_top_level_and_nested() -> None:
    glob = compile_glob("**/*.py")
    assert glob.matches("setup.py")
    assert glob.matches("pkg/sub/module.py")
    assert not glob.matches("pkg/readme.md")


def test_trailing_double_star_matches_everything_below() -> None:
    glob = compile_glob("docs/**")
    assert glob.matches("docs/readme.md")
    assert glob.matches("docs/a/b.txt")
    assert not glob.matches("src/docs/readme.md")


def test_question_mark_matches_exactly_one_non_separator() -> None:
    glob = compile_glob("file?.txt")
    assert glob.matches("file1.txt")
    assert not glob.matches("file12.txt")
    assert not glob.matches("file/.txt")


def test_character_classes_ranges_and_negation() -> None:
    assert matches("v1.txt", "v[0-9].txt")
    assert not matches("va.txt", "v[0-9].txt")
    assert matches("va.txt", "v[!0-9].txt")
    assert not matches("v/.txt", "v[!0-9].txt")
    assert matches("a-.txt", "a[-x].txt")
    assert matches("a].txt", "a[]].txt")


def test_brace_alternation() -> None:
    glob = compile_glob("src/*.{js,ts}")
    assert glob.matches("src/a.js")
    assert glob.matches("src/a.ts")
    assert not glob.matches("src/a.py")


def test_escaped_metacharacters_are_literal() -> None:
    glob = compile_glob(r"notes/\*draft\*.md")
    assert glob.matches("notes/*draft*.md")
    assert not glob.matches("notes/xdraftx.md")


def test_regex_metacharacters_in_pattern_are_literal() -> None:
    assert matches("a+b (1).txt", "a+b (1).txt")
    assert not matches("aab (1).txt", "a+b (1).txt")


def test_leading_dot_slash_and_root_slash_are_ignored() -> None:
    assert matches("src/A.js", "./src/*.js")
    assert matches("src/A.js", "/src/*.js")
