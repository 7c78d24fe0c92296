import io
import json

import pytest
from click.testing import CliRunner

from rgnav import cli
from rgnav.cli import main


def path(p):
    return f"\x1b[0m\x1b[1m\x1b[35m{p}\x1b[0m"


def num(n):
    return f"\x1b[0m\x1b[1m\x1b[32m{n}\x1b[0m"


def hit(text):
    return f"\x1b[0m\x1b[30m\x1b[43m{text}\x1b[0m"


OUTPUT = (
    f"{path('src/a.py')}:{num(3)}:def {hit('handler')}():\n"
    f"{path('src/a.py')}:{num(4)}:    return {hit('handler')}\n"
    f"{path('b.py')}:{num(1)}:{hit('handler')} = 1\n"
)


class FakeProcess:
    def __init__(self, output: bytes, returncode: int):
        self.stdout = io.BytesIO(output)
        self.returncode = returncode

    def poll(self):
        return self.returncode

    def wait(self):
        return self.returncode

    def terminate(self):
        pass


@pytest.fixture
def project(tmp_path, monkeypatch):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("import os\n\ndef handler():\n    return handler\n")
    (tmp_path / "b.py").write_text("handler = 1\n")
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.setenv("RGNAV_HOME", str(tmp_path / "home"))
    return tmp_path


@pytest.fixture
def rg(monkeypatch):
    state = {"output": OUTPUT.encode(), "returncode": 0, "sessions": [], "missing": False}

    class FakeLauncher:
        def __init__(self, options):
            self.options = options

        def __call__(self, session):
            if state["missing"]:
                raise FileNotFoundError(self.options.executable)
            state["sessions"].append(session)
            return FakeProcess(state["output"], state["returncode"])

    monkeypatch.setattr(cli, "RipgrepLauncher", FakeLauncher)
    return state


def run(*args):
    return CliRunner().invoke(main, list(args))


def run_json(*args):
    result = run(*args, "--json")
    return result.exit_code, json.loads(result.output)


def test_search_streams_matches(project, rg):
    result = run("search", "handler", "-p", str(project))

    assert result.exit_code == 0, result.output
    assert "src/a.py:3:5" in result.output
    assert "src/a.py:4:12" in result.output
    assert "b.py:1:1" in result.output
    assert "Search finished with 3 matches" in result.output
    assert "3 matches in 2 files" in result.output


def test_search_json(project, rg):
    code, payload = run_json("search", "handler", "-p", str(project))

    assert code == 0
    assert payload["status"] == "Search finished with 3 matches"
    assert payload["matches"][0] == {"path": "src/a.py", "line": 3, "column": 5, "text": "handler"}


def test_search_passes_extra_arguments(project, rg):
    run("search", "handler", "-p", str(project), "-F", "--hidden")
    session = rg["sessions"][0]
    assert session.extra_arguments == ("--hidden",)
    assert session.is_regex is False


def test_search_without_matches(project, rg):
    rg["output"], rg["returncode"] = b"", 1
    result = run("search", "nothing", "-p", str(project))
    assert result.exit_code == 2
    assert "0 matches" in result.output


def test_search_tool_failure(project, rg):
    rg["output"], rg["returncode"] = b"rg: regex parse error\n", 2
    result = run("search", "(", "-p", str(project))
    assert result.exit_code == 4
    assert "regex parse error" in result.output


def test_missing_tool(project, rg):
    rg["missing"] = True
    result = run("search", "handler", "-p", str(project))
    assert result.exit_code == 4
    assert "Search tool not found" in result.output


def test_missing_directory(project, rg):
    result = run("search", "handler", "-p", str(project / "nope"))
    assert result.exit_code == 3
    assert rg["sessions"] == []


def test_rerun(project, rg):
    run("search", "handler", "-p", str(project), "-C", "2")
    result = run("rerun")

    assert result.exit_code == 0, result.output
    first, second = rg["sessions"]
    assert second == first


def test_navigation_needs_a_search(project, rg):
    assert run("next").exit_code == 1
    assert run("rerun").exit_code == 1


def test_next_and_prev(project, rg):
    run("search", "handler", "-p", str(project))

    code, first = run_json("next")
    assert code == 0
    assert (first["number"], first["line"], first["column"]) == (1, 3, 5)
    assert first["path"].endswith("a.py")

    _, second = run_json("next")
    assert (second["number"], second["line"], second["column"]) == (2, 4, 12)

    _, back = run_json("prev")
    assert back["number"] == 1

    code, payload = run_json("prev")
    assert code == 2
    assert payload == {"error": "Moved back before first match"}


def test_next_shows_source(project, rg):
    run("search", "handler", "-p", str(project))
    result = run("next")

    assert result.exit_code == 0, result.output
    assert "match 1 of 3" in result.output
    assert "def handler():" in result.output
    assert "^^^^^^^" in result.output


def test_goto_and_exhaustion(project, rg):
    run("search", "handler", "-p", str(project))

    code, payload = run_json("goto", "3")
    assert code == 0
    assert payload["path"].endswith("b.py")

    code, payload = run_json("next")
    assert code == 2
    assert payload == {"error": "Moved past last match"}

    assert run("goto", "9").exit_code == 1


def test_file_navigation(project, rg):
    run("search", "handler", "-p", str(project))

    assert run_json("next-file")[1]["number"] == 1
    assert run_json("next-file")[1]["number"] == 3
    assert run_json("prev-file")[1]["number"] == 1


def test_visit_deleted_file(project, rg):
    run("search", "handler", "-p", str(project))
    (project / "b.py").unlink()

    result = run("goto", "3")
    assert result.exit_code == 3
    assert "File not found" in result.output


def test_files(project, rg, monkeypatch):
    monkeypatch.setattr(cli, "list_files", lambda directory, options: ["b.py", "src/a.py"])

    code, payload = run_json("files", "-p", str(project))
    assert code == 0
    assert payload == {"files": ["b.py", "src/a.py"]}

    result = run("files", "-p", str(project))
    assert "2 files" in result.output


def test_find_file_without_results(project, rg, monkeypatch):
    monkeypatch.setattr(cli, "find_files", lambda query, directory, options: [])
    result = run("find-file", "zzz", "-p", str(project))
    assert result.exit_code == 2


def test_version(project, monkeypatch):
    monkeypatch.setattr(cli, "probe_version", lambda options: "14.1.0")
    result = run("version")
    assert result.exit_code == 0
    assert "14.1.0" in result.output

    monkeypatch.setattr(cli, "probe_version", lambda options: None)
    assert run("version").exit_code == 4


@pytest.mark.parametrize("command", ["next", "prev", "next-file", "prev-file"])
def test_step_count_must_be_positive(project, rg, command):
    run("search", "handler", "-p", str(project))

    result = run(command, "-n", "0")

    assert result.exit_code == 1
    assert "Invalid step count: 0" in result.output
    assert len(rg["sessions"]) == 1
