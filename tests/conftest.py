"""Shared fixtures: throwaway git repositories with controlled authors."""

from pathlib import Path
from typing import List, Optional
import shutil
import subprocess

import pytest


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _email_for(author: str) -> str:
    return author.lower().replace(" ", ".") + "@example.com"


class RepoBuilder:
    """Build a linear history one commit at a time."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.mkdir(parents=True, exist_ok=True)
        self.git("init", "--quiet")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")
        self._counter = 0

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", "-C", str(self.path)] + list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def commit(self, author: str, message: Optional[str] = None) -> str:
        self._counter += 1
        name = f"file{self._counter}.txt"
        (self.path / name).write_text(f"{author} {self._counter}\n", encoding="utf-8")
        self.git("add", name)
        self.git(
            "commit",
            "--quiet",
            f"--author={author} <{_email_for(author)}>",
            "-m",
            message or f"{author} change {self._counter}",
        )
        return self.git("rev-parse", "HEAD")

    def history(self, authors: List[str]) -> List[str]:
        return [self.commit(a) for a in authors]

    def branches(self) -> List[str]:
        out = self.git("for-each-ref", "--format=%(refname:short)", "refs/heads/")
        return [line for line in out.splitlines() if line]


@pytest.fixture
def git_env(tmp_path, monkeypatch):
    """Isolate git from the user's configuration and fix the committer and default identity."""
    home = tmp_path / "home"
    home.mkdir()
    # git rebase refuses to run without a configured identity
    (home / ".gitconfig").write_text(
        "[user]\n\tname = Shrine Tests\n\temail = tests@example.com\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Shrine Tests")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "tests@example.com")
    for var in ("GIT_AUTHOR_NAME", "GIT_AUTHOR_EMAIL", "GIT_DIR", "GIT_WORK_TREE", "GIT_EDITOR", "GIT_SEQUENCE_EDITOR"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def make_repo(tmp_path, git_env):
    def _make(name: str = "original") -> RepoBuilder:
        return RepoBuilder(tmp_path / name)

    return _make
