"""CLI entry points: primary run, dry run and the editor callbacks."""

import subprocess

import pytest

from shrine.cli import main
from shrine.rewrite import encode_author

from conftest import requires_git


def _git(path, *args):
    return subprocess.run(
        ["git", "-C", str(path)] + list(args),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        check=True,
    ).stdout.strip()


@requires_git
def test_build_shrine_end_to_end(make_repo, tmp_path, capsys):
    repo = make_repo()
    c = repo.history(["Bob", "Carol", "Dave", "Jane Doe", "Bob", "Carol", "Jane Doe", "Eve"])
    dest = tmp_path / "shrine"

    code = main(["Jane Doe", str(repo.path), "main", str(dest)])

    out = capsys.readouterr().out
    assert code == 0
    assert "Commits: 5 -> 4" in out
    assert f"Segment: {c[3][:12]}..{c[6][:12]}" in out
    assert _git(dest, "log", "--reverse", "--format=%an").splitlines() == ["Dave", "Jane Doe", "Bob", "Jane Doe"]
    assert _git(dest, "rev-parse", "--abbrev-ref", "HEAD") == "shrine"
    assert _git(dest, "remote") == ""
    assert repo.branches() == ["main"]


@requires_git
def test_pattern_policy_matches_on_email(make_repo, tmp_path, capsys):
    repo = make_repo()
    repo.history(["Bob", "Carol", "Dave", "Jane Doe", "Bob", "Carol", "Jane Doe", "Eve"])
    policy = tmp_path / "policy.yaml"
    policy.write_text("author:\n  match: pattern\n", encoding="utf-8")
    dest = tmp_path / "shrine"

    code = main(["--config", str(policy), r"jane\.doe@", str(repo.path), "main", str(dest)])

    assert code == 0
    assert "Commits: 5 -> 4" in capsys.readouterr().out
    assert _git(dest, "log", "--reverse", "--format=%an").splitlines() == ["Dave", "Jane Doe", "Bob", "Jane Doe"]


@requires_git
def test_marker_branch_collision_exits_1(make_repo, tmp_path, capsys):
    repo = make_repo()
    c = repo.history(["Bob", "Carol", "Alice"])
    repo.git("branch", "shrine-end", c[0])
    dest = tmp_path / "shrine"

    assert main(["Alice", str(repo.path), "main", str(dest)]) == 1
    assert "choose another markers.prefix" in capsys.readouterr().err
    assert repo.git("rev-parse", "refs/heads/shrine-end") == c[0]
    assert not dest.exists()


@requires_git
def test_destination_inside_git_directory_is_refused(make_repo, capsys):
    repo = make_repo()
    repo.history(["Bob", "Carol", "Alice"])
    dest = repo.path / ".git" / "objects" / "shrine"

    assert main(["--force", "Alice", str(repo.path), "main", str(dest)]) == 1
    assert "git directory" in capsys.readouterr().err
    assert not dest.exists()


@requires_git
def test_no_matching_commits_exits_1_without_cloning(make_repo, tmp_path, capsys):
    repo = make_repo()
    repo.history(["Bob", "Carol"])
    dest = tmp_path / "shrine"

    code = main(["Alice", str(repo.path), "main", str(dest)])

    assert code == 1
    assert "No commits by 'Alice'" in capsys.readouterr().err
    assert not dest.exists()


@requires_git
def test_root_adjacent_author_fails_by_default(make_repo, tmp_path, capsys):
    repo = make_repo()
    repo.history(["Alice", "Bob"])
    dest = tmp_path / "shrine"

    assert main(["Alice", str(repo.path), "main", str(dest)]) == 1
    assert "fewer than two ancestors" in capsys.readouterr().err
    assert not dest.exists()


@requires_git
def test_root_policy_falls_back_to_full_history(make_repo, tmp_path):
    repo = make_repo()
    repo.history(["Alice", "Bob", "Carol", "Alice", "Dave"])
    policy = tmp_path / "policy.yaml"
    policy.write_text("boundary:\n  on_insufficient_history: root\ncleanup:\n  gc: false\n", encoding="utf-8")
    dest = tmp_path / "shrine"

    code = main(["--config", str(policy), "Alice", str(repo.path), "main", str(dest)])

    assert code == 0
    assert _git(dest, "log", "--reverse", "--format=%an").splitlines() == ["Alice", "Bob", "Alice"]


@requires_git
def test_non_empty_destination_requires_force(make_repo, tmp_path, capsys):
    repo = make_repo()
    repo.history(["Bob", "Carol", "Alice"])
    dest = tmp_path / "shrine"
    dest.mkdir()
    (dest / "keep.txt").write_text("precious", encoding="utf-8")

    assert main(["Alice", str(repo.path), "main", str(dest)]) == 1
    assert "--force" in capsys.readouterr().err
    assert (dest / "keep.txt").exists()

    assert main(["--force", "Alice", str(repo.path), "main", str(dest)]) == 0
    assert not (dest / "keep.txt").exists()


@requires_git
def test_unknown_ref(make_repo, tmp_path, capsys):
    repo = make_repo()
    repo.history(["Bob"])

    assert main(["Bob", str(repo.path), "nope", str(tmp_path / "shrine")]) == 1
    assert "does not name a commit" in capsys.readouterr().err


@requires_git
def test_not_a_repository(tmp_path, git_env, capsys):
    (tmp_path / "plain").mkdir()

    assert main(["Bob", str(tmp_path / "plain"), "main", str(tmp_path / "shrine")]) == 1
    assert "Not a git repository" in capsys.readouterr().err


@requires_git
def test_dry_run_prints_plan_and_creates_nothing(make_repo, tmp_path, capsys):
    repo = make_repo()
    c = repo.history(["Bob", "Carol", "Dave", "Alice", "Bob", "Carol", "Alice"])
    dest = tmp_path / "shrine"

    code = main(["--dry-run", "Alice", str(repo.path), "main", str(dest)])

    out = capsys.readouterr().out
    assert code == 0
    assert not dest.exists()
    assert repo.branches() == ["main"]
    assert "Commits in clone: 5" in out
    assert "Author commits: 2" in out
    assert "Commits after rewrite: 4" in out
    assert f"Excluded from: {c[1][:12]}" in out

    rows = [line.split()[:3] for line in out.splitlines() if line[:1].isdigit()]
    assert rows == [
        ["0", c[2][:12], "pick"],
        ["1", c[3][:12], "pick"],
        ["2", c[4][:12], "pick"],
        ["3", c[5][:12], "squash"],
        ["4", c[6][:12], "pick"],
    ]


def test_to_do_callback(tmp_path):
    todo = tmp_path / "git-rebase-todo"
    todo.write_text("pick a ctx\tBob\npick b x\tCarol\npick c y\tJane Doe\n", encoding="utf-8")

    assert main(["--to-do", encode_author("Jane Doe"), str(todo)]) == 0
    assert todo.read_text(encoding="utf-8") == "pick a ctx\tBob\nsquash b x\tCarol\npick c y\tJane Doe\n"


def test_to_do_callback_for_author_starting_with_dash(tmp_path):
    todo = tmp_path / "git-rebase-todo"
    todo.write_text("pick a ctx\tBob\npick b x\tCarol\npick c y\t-bot\n", encoding="utf-8")

    assert main(["--to-do", encode_author("-bot"), str(todo)]) == 0
    assert todo.read_text(encoding="utf-8") == "pick a ctx\tBob\nsquash b x\tCarol\npick c y\t-bot\n"


def test_to_do_callback_pattern_mode(tmp_path):
    todo = tmp_path / "git-rebase-todo"
    todo.write_text("pick a ctx\tBob\npick b x\tCarol\npick c y\tJane Doe\n", encoding="utf-8")

    assert main(["--match", "pattern", "--to-do", encode_author("^Jane"), str(todo)]) == 0
    assert "squash b" in todo.read_text(encoding="utf-8")


def test_to_do_callback_rejects_plans_without_authors(tmp_path, capsys):
    todo = tmp_path / "git-rebase-todo"
    todo.write_text("pick a subject only\n", encoding="utf-8")

    assert main(["--to-do", "Alice", str(todo)]) == 1
    assert "no author field" in capsys.readouterr().err


def test_message_callback(tmp_path):
    message = tmp_path / "COMMIT_EDITMSG"
    message.write_text("combined\n", encoding="utf-8")

    assert main(["--message", str(message)]) == 0
    assert message.read_text(encoding="utf-8") == "combined\n"


def test_message_callback_missing_file(tmp_path, capsys):
    assert main(["--message", str(tmp_path / "absent")]) == 1
    assert "Cannot access commit message" in capsys.readouterr().err


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0
    assert "AUTHOR" in capsys.readouterr().out.upper()
