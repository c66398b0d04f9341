import pytest

from syslabs.parse import _atoi, parseline


@pytest.mark.parametrize(
    "line, expected",
    [
        ("ls -l\n", (["ls", "-l"], False)),
        ("sleep 1 &\n", (["sleep", "1"], True)),
        ("   jobs\n", (["jobs"], False)),
        ("echo 'a b' c\n", (["echo", "a b", "c"], False)),
        ("cmd &x\n", (["cmd"], True)),
    ],
)
def test_parseline(line, expected):
    assert parseline(line) == expected


def test_blank_line_counts_as_background():
    assert parseline("   \n") == ([], True)
    assert parseline("") == ([], True)


def test_last_character_is_replaced():
    assert parseline("/bin/echo hi") == (["/bin/echo", "h"], False)


def test_unterminated_quote_drops_rest():
    assert parseline("echo 'abc\n") == (["echo"], False)


def test_multiple_spaces_between_words():
    argv, bg = parseline("a    b\n")
    assert argv == ["a", "b"]
    assert bg is False


def test_atoi():
    assert _atoi("42abc") == 42
    assert _atoi("abc") == 0
    assert _atoi(" -3") == -3