from __future__ import annotations

import json

from configpersist_cli.cli import main


def _write(tmp_path, name: str, text: str):
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_cli_help(capsys):
    try:
        main(["publish", "--help"])
        assert False, "expected SystemExit"
    except SystemExit as e:
        assert e.code == 0

    out = capsys.readouterr().out
    assert "usage:" in out
    assert "--label" in out
    assert "--db-url" in out


def test_cli_parser_errors():
    # Missing subcommand should exit with SystemExit from argparse
    try:
        main([])
        assert False, "expected SystemExit"
    except SystemExit as e:
        assert e.code != 0


def test_cli_help_top_level(capsys):
    try:
        main(["--help"])
        assert False, "expected SystemExit"
    except SystemExit as e:
        assert e.code == 0

    out = capsys.readouterr().out
    assert "configpersist" in out
    for cmd in ("init-db", "publish", "show", "history", "watch", "serve"):
        assert cmd in out


def test_init_publish_show_history(tmp_path, capsys):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    common = ["--db-url", url, "--interval", "60"]

    assert main(["init-db", *common]) == 0

    v1 = _write(tmp_path, "v1.yaml", "version: 1\nuser: ops\nnamespaces:\n  billing:\n    max_rate: 10\n")
    v2 = _write(tmp_path, "v2.json", json.dumps({"version": 2, "user": "ops"}))
    assert main(["publish", v1, *common]) == 0
    assert main(["publish", v2, "--label", "rollout", *common]) == 0
    capsys.readouterr()

    assert main(["show", *common]) == 0
    latest = json.loads(capsys.readouterr().out)
    assert latest["version"] == 2

    assert main(["show", "--version", "1", *common]) == 0
    first = json.loads(capsys.readouterr().out)
    assert first["namespaces"] == {"billing": {"max_rate": 10}}

    assert main(["history", *common]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert [json.loads(line)["version"] for line in lines] == [1, 2]


def test_publish_duplicate_version_exits_nonzero(tmp_path, capsys):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    common = ["--db-url", url, "--interval", "60"]
    main(["init-db", *common])

    doc = _write(tmp_path, "c.yaml", "version: 5\n")
    assert main(["publish", doc, *common]) == 0
    assert main(["publish", doc, *common]) == 3
    assert "already exists" in capsys.readouterr().err

    # --version republishes the same document under a new number
    assert main(["publish", doc, "--version", "6", *common]) == 0


def test_show_on_empty_store_and_missing_table(tmp_path, capsys):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    common = ["--db-url", url, "--interval", "60"]

    assert main(["show", *common]) == 2
    assert "init-db" in capsys.readouterr().err

    main(["init-db", *common])
    assert main(["show", *common]) == 1
