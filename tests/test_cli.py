import argparse
import io
import json

import pytest

from prettystream import cli
from prettystream.jobs import PipelineConfig


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


def _args(**kw):
    base = {"indent": None, "chunk_size": None}
    base.update(kw)
    return argparse.Namespace(**base)


class TestConfig:

    def test_defaults(self, tmp_path):
        cfg = cli._build_config(_args(), tmp_path)
        assert cfg == PipelineConfig()

    def test_project_file_then_cli_overrides(self, tmp_path):
        (tmp_path / cli.CONFIG_FILENAME).write_text(json.dumps({"indent": 4, "chunk_size": 10, "bogus": 1}))
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        cfg = cli._build_config(_args(chunk_size=99), nested)
        assert cfg.indent == 4
        assert cfg.chunk_size == 99

    def test_broken_project_file_is_ignored(self, tmp_path):
        (tmp_path / cli.CONFIG_FILENAME).write_text("{nope")
        assert cli._load_project_config(tmp_path) == {}


class TestMain:

    def test_stdin_to_stdout(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO('{"a":1}'))
        assert cli.main(["--stdin", "--quiet"]) == 0
        assert capsys.readouterr().out == '{\n  "a": 1\n}\n'

    def test_stdin_html(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO('{"a":"<x>"}'))
        assert cli.main(["--stdin", "--html", "--quiet"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("<!DOCTYPE html>")
        assert '<span class="jv-string">"&lt;x&gt;"</span>' in out

    def test_stdin_invalid_json(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO('{"a":}'))
        assert cli.main(["--stdin", "--quiet"]) == 1
        assert "Invalid JSON: Expecting value" in capsys.readouterr().err

    def test_stdin_empty(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("   \n"))
        assert cli.main(["--stdin"]) == 1
        assert "Input is empty." in capsys.readouterr().err

    def test_progress_goes_to_stderr(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("[1,2]"))
        assert cli.main(["--stdin"]) == 0
        err = capsys.readouterr().err
        assert "[ 95%] Highlighting… 1/1 chunks" in err

    def test_no_inputs(self, capsys):
        assert cli.main([]) == 2
        assert "No input files" in capsys.readouterr().err

    def test_check_and_write(self, tmp_path):
        f = tmp_path / "doc.json"
        f.write_text('{"b":2,"a":[1]}')
        assert cli.main([str(f), "--check", "-q"]) == 1
        assert cli.main([str(f), "--write", "-q"]) == 0
        assert f.read_text() == '{\n  "b": 2,\n  "a": [\n    1\n  ]\n}\n'
        assert cli.main([str(f), "--check", "-q"]) == 0

    def test_diff(self, tmp_path, capsys):
        f = tmp_path / "doc.json"
        f.write_text('{"a":1}\n')
        assert cli.main([str(f), "--diff", "-q"]) == 0
        out = capsys.readouterr().out
        assert '-{"a":1}' in out
        assert '+  "a": 1' in out

    def test_html_next_to_file(self, tmp_path):
        f = tmp_path / "doc.json"
        f.write_text('{"n": 3}')
        assert cli.main(["doc.json", "--html", "-q"]) == 0
        page = (tmp_path / "doc.json.html").read_text(encoding="utf-8")
        assert '<span class="jv-number">3</span>' in page

    def test_glob_and_bad_file(self, tmp_path, capsys):
        (tmp_path / "good.json").write_text("[]\n")
        (tmp_path / "bad.json").write_text("[1,")
        assert cli.main(["*.json", "--check", "-q"]) == 1
        assert "bad.json: error: Invalid JSON" in capsys.readouterr().err


class TestValidation:

    @pytest.mark.parametrize("argv", [["--chunk-size", "0"], ["--indent", "-1"]])
    def test_bad_flags_are_usage_errors(self, argv, capsys):
        with pytest.raises(SystemExit) as info:
            cli.main(["--stdin"] + argv)
        assert info.value.code == 2
        assert "must be >=" in capsys.readouterr().err

    def test_bad_project_value_is_a_usage_error(self, tmp_path, capsys):
        (tmp_path / cli.CONFIG_FILENAME).write_text(json.dumps({"chunk_size": "big"}))
        with pytest.raises(SystemExit) as info:
            cli.main(["--stdin"])
        assert info.value.code == 2
        assert "chunk_size must be an integer" in capsys.readouterr().err

    def test_validate_config_accepts_defaults(self):
        cli._validate_config(dict(cli.DEFAULT_CONFIG))


class TestSurrogates:

    def test_stdin_lone_surrogate(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO(r'{"a": "\ud800"}'))
        assert cli.main(["--stdin", "-q"]) == 0
        assert capsys.readouterr().out == '{\n  "a": "\\ud800"\n}\n'

    def test_batch_write_keeps_going(self, tmp_path):
        a = tmp_path / "a.json"
        b = tmp_path / "b.json"
        a.write_text(r'["\udc00"]')
        b.write_text('{"b":1}')
        assert cli.main(["a.json", "b.json", "--write", "-q"]) == 0
        assert a.read_text() == '[\n  "\\udc00"\n]\n'
        assert b.read_text() == '{\n  "b": 1\n}\n'
