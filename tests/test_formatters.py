from rgnav.utils.formatters import highlight_lines
from rgnav.utils.tree_formatter import format_jump_output, format_match_line, format_summary


def test_jump_caret_lines_up_with_column(monkeypatch, capsys):
    monkeypatch.setenv("NO_COLOR", "1")
    lines = [{"num": 2, "content": ""}, {"num": 3, "content": "def handler():"}]

    format_jump_output(1, 3, "a.py:3:5", lines, target_line=3, column=5, length=7)

    out = capsys.readouterr().out.splitlines()
    target = next(line for line in out if "def handler" in line)
    caret = out[out.index(target) + 1]
    assert caret.index("^") == target.index("handler")
    assert caret.strip() == "^" * 7


def test_match_line_highlights_span(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    line = format_match_line(1, "a.py:3:5", "def handler():", 4, 11)
    assert "\033[30;43mhandler\033[0m" in line


def test_match_line_plain(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    line = format_match_line(12, "a.py:3:5", "def handler():\n", 4, 11)
    assert line.endswith("a.py:3:5 │ def handler():")


def test_summary(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    assert format_summary("Search finished with 1 match", 1, 1) == (
        "DONE Search finished with 1 match ── 1 match in 1 file"
    )


def test_highlight_lines_without_color(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    assert highlight_lines(["x = 1", "", "y = 2"], "a.py") == ["x = 1", "", "y = 2"]
    assert highlight_lines([], "a.py") == []


def test_highlight_lines_keeps_line_count(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    source = ['"""doc', 'string"""', "x = 1"]
    assert len(highlight_lines(source, "a.py")) == 3
