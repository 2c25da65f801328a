from __future__ import annotations

import json
from pathlib import Path

import pytest

from chat_context import cli


@pytest.fixture
def run(tmp_path: Path, clean_env, capsys: pytest.CaptureFixture):
    store = str(tmp_path / "store")
    config = str(tmp_path / "absent.yaml")

    def _run(*argv: str):
        rc = cli.main(["--config", config, "--store", store, *argv])
        out, err = capsys.readouterr()
        return rc, out, err

    return _run


def test_init(run):
    rc, out, _ = run("init")
    assert rc == 0
    assert "Initialized" in out


def test_add_show_log(run):
    rc, out, _ = run("add", "s1", "--type", "llm-output", "--content", "hello there", "--metadata", '{"model": "m1"}')
    assert rc == 0
    created = json.loads(out)
    assert created["type"] == "llm-output"

    rc, out, _ = run("show", "s1", created["id"])
    assert rc == 0
    shown = json.loads(out)
    assert shown["message"] == created
    assert shown["annotation"] == {"model": "m1"}

    rc, out, _ = run("log", "s1")
    assert rc == 0
    assert created["id"] in out
    assert "hello there" in out


def test_show_missing(run):
    rc, _, err = run("show", "s1", "msg-nope")
    assert rc == cli.EXIT_NOT_FOUND
    assert "not found" in err


def test_bad_metadata(run):
    rc, _, err = run("add", "s1", "--content", "x", "--metadata", "[1, 2]")
    assert rc == cli.EXIT_USAGE


def test_branch(run):
    _, out, _ = run("add", "main", "--content", "root")
    mid = json.loads(out)["id"]

    rc, out, _ = run("branch", "main", mid, "alt")
    assert rc == 0
    assert out.startswith("session-alt -> ")

    rc, _, err = run("branch", "main", mid, "alt")
    assert rc == cli.EXIT_NOT_FOUND
    assert "branch" in err


def test_import_openai(run, tmp_path: Path):
    src = tmp_path / "openai.json"
    src.write_text(json.dumps([
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "2+2?"},
        {"role": "tool", "content": "4", "name": "calc"},
    ]), encoding="utf-8")

    rc, out, _ = run("import", "s1", str(src), "--format", "openai")
    assert rc == 0
    ids = out.split()
    assert len(ids) == 3

    rc, out, _ = run("show", "s1", ids[2])
    shown = json.loads(out)
    assert shown["message"]["type"] == "tool-usage"
    assert shown["message"]["metadata"] == {"role": "tool", "name": "calc"}


def test_import_anthropic_single_object(run, tmp_path: Path):
    src = tmp_path / "anthropic.json"
    src.write_text(json.dumps({"role": "assistant", "content": [{"type": "text", "text": "hi"}]}), encoding="utf-8")
    rc, out, _ = run("import", "s1", str(src), "--format", "anthropic")
    assert rc == 0
    assert len(out.split()) == 1


def test_import_invalid_message(run, tmp_path: Path):
    src = tmp_path / "bad.json"
    src.write_text(json.dumps([{"content": "no role"}]), encoding="utf-8")
    rc, _, _ = run("import", "s1", str(src), "--format", "openai")
    assert rc == cli.EXIT_USAGE


def test_corrupt_reference_exit_code(run, tmp_path: Path):
    rc, out, _ = run("add", "s1", "--type", "user-input", "--content", "x")
    msg_id = json.loads(out)["id"]
    (tmp_path / "store" / "refs" / "conversations" / "s1" / msg_id).write_text("garbage\n", encoding="ascii")

    rc, _, err = run("show", "s1", msg_id)
    assert rc == cli.EXIT_BACKEND
    assert "Corrupt reference" in err
