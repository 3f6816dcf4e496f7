from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from git import Repo

from diffsnap.cli import main
from diffsnap.watch import CrontabJobTable


@pytest.fixture(autouse=True)
def _memory_crontab(monkeypatch: pytest.MonkeyPatch, job_table):
    monkeypatch.setattr("diffsnap.engine.CrontabJobTable", lambda: job_table)
    return job_table


def _run_cli_json(args: list[str], capsys) -> dict:
    exit_code = main(args + ["--json"])
    assert exit_code in (0, 1)
    output = capsys.readouterr().out
    return {"exit_code": exit_code, "payload": json.loads(output)}


def _repo_args(repo: Repo) -> list[str]:
    return ["--directory", str(repo.working_tree_dir)]


def test_cli_run_then_duplicate_run(git_repo: Repo, capsys) -> None:
    (Path(git_repo.working_tree_dir) / "README.md").write_text("edited\n", encoding="utf-8")

    first = _run_cli_json([*_repo_args(git_repo), "run", "--label", "wip"], capsys)
    second = _run_cli_json([*_repo_args(git_repo), "run"], capsys)

    assert first["exit_code"] == 0
    assert first["payload"]["outcome"] == "stored"
    assert first["payload"]["filename"].endswith("-wip.patch")
    assert second["exit_code"] == 0
    assert second["payload"]["outcome"] == "discarded"
    assert second["payload"]["count"] == 1


def test_cli_without_command_prints_status(git_repo: Repo, capsys) -> None:
    main([*_repo_args(git_repo), "run"])
    capsys.readouterr()

    exit_code = main(_repo_args(git_repo))
    output = capsys.readouterr().out

    assert exit_code == 0
    assert "[SUCCESS] 1 branch(es) with snapshots" in output
    assert "* main [current] snapshots=1" in output
    assert "watched: no" in output


def test_cli_status_json(git_repo: Repo, capsys) -> None:
    result = _run_cli_json([*_repo_args(git_repo), "status"], capsys)

    assert result["exit_code"] == 0
    assert result["payload"]["branches"] == []
    assert result["payload"]["max_snapshots"] == 10


def test_cli_run_while_locked_fails(git_repo: Repo, capsys) -> None:
    (Path(git_repo.git_dir) / "diffsnap.lock").write_text("1\n", encoding="utf-8")

    result = _run_cli_json([*_repo_args(git_repo), "run"], capsys)

    assert result["exit_code"] == 1
    assert result["payload"]["error_code"] == "CAPTURE_IN_PROGRESS"


def test_cli_outside_repository_fails(tmp_path: Path, capsys) -> None:
    result = _run_cli_json(["--directory", str(tmp_path), "status"], capsys)

    assert result["exit_code"] == 1
    assert result["payload"]["error_code"] == "NOT_A_REPOSITORY"


def test_cli_unknown_option_is_a_usage_error(git_repo: Repo, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([*_repo_args(git_repo), "run", "--bogus"])

    assert excinfo.value.code == 2
    assert "diffsnap --help" in capsys.readouterr().err


def test_cli_unknown_command_is_a_usage_error(git_repo: Repo) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([*_repo_args(git_repo), "snapshot-all"])

    assert excinfo.value.code == 2


def test_cli_config_set_get_and_list(git_repo: Repo, capsys) -> None:
    updated = _run_cli_json([*_repo_args(git_repo), "config", "max_snapshots", "4"], capsys)
    single = _run_cli_json([*_repo_args(git_repo), "config", "max_snapshots"], capsys)
    listed = _run_cli_json([*_repo_args(git_repo), "config", "--list"], capsys)
    invalid = _run_cli_json([*_repo_args(git_repo), "config", "colour", "blue"], capsys)

    assert updated["payload"]["config"]["max_snapshots"] == 4
    assert single["payload"]["value"] == 4
    assert listed["payload"]["config"]["max_snapshots"] == 4
    assert listed["payload"]["config"]["output_dir"].endswith("diffsnap")
    assert invalid["exit_code"] == 1
    assert invalid["payload"]["error_code"] == "INVALID_INPUT"


def test_cli_watch_and_unwatch(git_repo: Repo, capsys, _memory_crontab) -> None:
    watched = _run_cli_json([*_repo_args(git_repo), "watch", "--minutes", "15"], capsys)
    replaced = _run_cli_json([*_repo_args(git_repo), "watch", "--cron", "0 * * * *"], capsys)
    status = _run_cli_json([*_repo_args(git_repo), "status"], capsys)
    removed = _run_cli_json([*_repo_args(git_repo), "unwatch"], capsys)
    noop = _run_cli_json([*_repo_args(git_repo), "unwatch"], capsys)

    assert watched["payload"]["schedule"] == "*/15 * * * *"
    assert replaced["payload"]["schedule"] == "0 * * * *"
    assert status["payload"]["watched"] is True
    assert removed["payload"]["changed"] is True
    assert noop["exit_code"] == 0
    assert noop["payload"]["changed"] is False
    assert _memory_crontab.lines == []


def test_cli_watch_rejects_out_of_range_minutes(git_repo: Repo, capsys) -> None:
    result = _run_cli_json([*_repo_args(git_repo), "watch", "--minutes", "0"], capsys)

    assert result["exit_code"] == 1
    assert result["payload"]["error_code"] == "INVALID_INPUT"


def test_cli_watch_schedule_options_are_exclusive(git_repo: Repo) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([*_repo_args(git_repo), "watch", "--minutes", "5", "--cron", "* * * * *"])

    assert excinfo.value.code == 2


def test_cli_clean_obsolete_with_prompt(
    git_repo: Repo, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    git_repo.git.checkout("-b", "spike")
    main([*_repo_args(git_repo), "run"])
    git_repo.git.checkout("main")
    git_repo.git.branch("-D", "spike")
    capsys.readouterr()

    monkeypatch.setattr("sys.stdin", io.StringIO("n\n"))
    declined = _run_cli_json([*_repo_args(git_repo), "clean"], capsys)
    monkeypatch.setattr("sys.stdin", io.StringIO("yes\n"))
    accepted = _run_cli_json([*_repo_args(git_repo), "clean"], capsys)

    assert declined["payload"]["deleted"] == []
    assert accepted["payload"]["deleted"] == ["spike"]


def test_cli_clean_named_branch(git_repo: Repo, capsys) -> None:
    main([*_repo_args(git_repo), "run"])
    capsys.readouterr()

    missing = _run_cli_json([*_repo_args(git_repo), "clean", "ghost", "--yes"], capsys)
    removed = _run_cli_json([*_repo_args(git_repo), "clean", "main", "--yes"], capsys)

    assert missing["exit_code"] == 0
    assert missing["payload"]["error_code"] == "BRANCH_NOT_FOUND"
    assert removed["exit_code"] == 0
    assert removed["payload"]["deleted"] == ["main"]


def test_cli_status_without_cron_still_lists_branches(
    git_repo: Repo, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        "diffsnap.engine.CrontabJobTable",
        lambda: CrontabJobTable(binary="definitely-not-a-crontab-binary"),
    )
    main([*_repo_args(git_repo), "run"])
    capsys.readouterr()

    result = _run_cli_json([*_repo_args(git_repo), "status"], capsys)

    assert result["exit_code"] == 0
    assert result["payload"]["watched"] is False
    assert result["payload"]["details"]["watch_state"] == "unknown"
    assert [branch["name"] for branch in result["payload"]["branches"]] == ["main"]
