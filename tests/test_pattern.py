"""Tests for the gitignore pattern compiler."""

import pytest

from biome.ignore.pattern import convert_character_class, is_valid_path, lex_pattern, parse_line


@pytest.mark.parametrize(
    "line",
    ["", " ", b"\x80", "# comment", "*foo[/]", "foo[c-a]", "foo[abc", "[a-", "foo[a-c-e]"],
)
def test_inert_lines(line):
    pat = parse_line(line)
    assert not pat.valid
    assert not pat.match("foo")
    assert not pat.match("foo", is_dir=True)


PARSE_CASES = [
    # line, negate, directory_only, matches, does not match
    ("foo.txt", False, False, ["foo.txt", "a/foo.txt", "a/b/foo.txt"], ["foo_txt", "foo.txt/x", "xfoo.txt"]),
    ("\\#file", False, False, ["#file", "a/#file"], ["file"]),
    (" foo", False, False, [" foo"], ["foo"]),
    ("foo ", False, False, ["foo"], ["foo "]),
    ("foo\\ ", False, False, ["foo "], ["foo"]),
    ("foo\\  ", False, False, ["foo "], ["foo", "foo  "]),
    ("!foo.txt", True, False, ["foo.txt", "a/foo.txt"], ["!foo.txt"]),
    ("\\!foo.txt", False, False, ["!foo.txt"], ["foo.txt"]),
    ("foo/bar", False, False, ["foo/bar"], ["a/foo/bar", "foo/bar/baz"]),
    ("/foo/bar", False, False, ["foo/bar"], ["a/foo/bar"]),
    ("/foo", False, False, ["foo"], ["a/foo"]),
    ("foo/", False, True, ["foo", "a/foo"], []),
    ("doc/frotz/", False, True, ["doc/frotz"], ["a/doc/frotz"]),
    ("*.txt", False, False, ["a.txt", ".txt", "d/.hidden.txt"], ["a.txt/b", "a.text"]),
    ("a*.txt", False, False, ["a.txt", "abc.txt", "d/ab.txt"], ["ba.txt", "a/b.txt"]),
    (".*.txt", False, False, [".a.txt", "..txt"], ["a.txt"]),
    ("foo?", False, False, ["foo1", "fooa"], ["foo", "foo12", "foo/"]),
    ("foo[a-zA-Z]", False, False, ["fooa", "fooQ"], ["foo1", "foo"]),
    ("foo\\[a-zA-Z]", False, False, ["foo[a-zA-Z]"], ["fooa"]),
    ("foo[!a-zA-Z]", False, False, ["foo1", "foo-"], ["fooa", "fooZ"]),
    ("foo[][!]", False, False, ["foo]", "foo[", "foo!"], ["foo", "fooa"]),
    ("foo[]-]", False, False, ["foo]", "foo-"], ["fooa"]),
    ("foo[--0]", False, False, ["foo-", "foo.", "foo0"], ["foo1", "foo,"]),
    ("foo[!--0]bar", False, False, ["fooxbar"], ["foo-bar", "foo.bar", "foo/bar", "foo0bar"]),
    ("foo[a-]", False, False, ["fooa", "foo-"], ["foob"]),
    ("foo[[?*\\]", False, False, ["foo[", "foo?", "foo*", "foo\\"], ["fooa"]),
    ("foo[^a]", False, False, ["foo^", "fooa"], ["foob"]),
    ("**/foo", False, False, ["foo", "a/foo", "a/b/foo"], ["foox"]),
    ("/**/foo", False, False, ["foo", "a/b/foo"], ["a/foox"]),
    ("**/foo/bar", False, False, ["foo/bar", "a/foo/bar"], ["foo/baz"]),
    ("abc/**", False, False, ["abc/x", "abc/x/y"], ["abc", "x/abc/y"]),
    ("a/**/b", False, False, ["a/b", "a/x/b", "a/x/y/b"], ["a/xb", "x/a/b"]),
    ("abc/d**", False, False, ["abc/d", "abc/def"], ["abc/d/e"]),
    ("**", False, False, ["a", "a/b", ".x"], []),
    ("a.b", False, False, ["a.b"], ["axb"]),
    ("trailing\\", False, False, ["trailing\\"], ["trailing"]),
]


@pytest.mark.parametrize("line,negate,directory_only,matches,does_not_match", PARSE_CASES)
def test_parse_line(line, negate, directory_only, matches, does_not_match):
    pat = parse_line(line)
    assert pat.valid
    assert pat.negate is negate
    assert pat.directory_only is directory_only
    for path in matches:
        assert pat.match(path, is_dir=True), path
    for path in does_not_match:
        assert not pat.match(path, is_dir=True), path


def test_parse_line_accepts_bytes():
    pat = parse_line("résumé.txt".encode("utf-8"))
    assert pat.match("résumé.txt")


def test_directory_only_requires_directory():
    pat = parse_line("build/")
    assert pat.match("build", is_dir=True)
    assert not pat.match("build", is_dir=False)


def test_pattern_keeps_source_line():
    pat = parse_line("!*.log  ")
    assert str(pat) == "!*.log"


def test_unclean_paths_never_match():
    pat = parse_line("*")
    for path in ["", ".", "..", "a/./b", "a/../b", "a//b", "/a", "a/"]:
        assert not pat.match(path), path
    assert pat.match("a")


@pytest.mark.parametrize(
    "path,expected",
    [
        ("a", True),
        ("a/b", True),
        (".hidden/x", True),
        ("", False),
        (".", False),
        ("..", False),
        ("a/..", False),
        ("/a", False),
        ("a//b", False),
    ],
)
def test_is_valid_path(path, expected):
    assert is_valid_path(path) is expected


def test_convert_character_class():
    assert convert_character_class("[abc]") == "[abc]"
    assert convert_character_class("[!abc]") == "[^abc/]"
    assert convert_character_class("[a-c]") == "[a-c]"
    assert convert_character_class("[c-a]") is None
    # The separator is cut out of ranges that span it.
    assert convert_character_class("[+-1]") == "[+-.0-1]"


def test_lex_pattern_rejects_unterminated_class():
    assert lex_pattern("foo[abc") is None
    assert lex_pattern("foo[a/b]") is None
    assert lex_pattern("foo[]") is None


def test_lex_pattern_double_star_only_at_component_edges():
    kinds = [tok.kind for tok in lex_pattern("a/**/b")]
    assert kinds == ["literal", "double_star", "literal"]
    kinds = [tok.kind for tok in lex_pattern("a**")]
    assert kinds == ["literal", "star", "star"]
