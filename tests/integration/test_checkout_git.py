"""Checkout manager against a real local git repository."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from blocksuite_packager.checkout import assert_clean_checkout, ensure_checkout
from blocksuite_packager.core.exceptions import DirtyCheckoutError

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_IDENTITY = ["-c", "user.name=packager", "-c", "user.email=packager@example.com"]


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(["git", *GIT_IDENTITY, "-C", str(repo), *args], check=True, capture_output=True, text=True)
    return result.stdout.strip()


def _make_source(tmp_path: Path) -> Path:
    source = tmp_path / "source"
    source.mkdir()
    _git(source, "init")
    _git(source, "symbolic-ref", "HEAD", "refs/heads/main")
    (source / "package.json").write_text('{"name": "@affine/monorepo"}\n', encoding="utf-8")
    _git(source, "add", "package.json")
    _git(source, "commit", "-m", "initial")
    _git(source, "tag", "v0.1.0")
    (source / "README.md").write_text("second\n", encoding="utf-8")
    _git(source, "add", "README.md")
    _git(source, "commit", "-m", "second")
    return source


def test_shallow_checkout_and_ref_switch(tmp_path: Path) -> None:
    source = _make_source(tmp_path)
    dest = tmp_path / "vendor" / "AFFiNE"
    url = source.as_uri()

    ensure_checkout(dest, "main", url)
    assert_clean_checkout(dest)
    assert (dest / "README.md").exists()
    assert _git(dest, "rev-parse", "HEAD") == _git(source, "rev-parse", "main")

    ensure_checkout(dest, "v0.1.0", url)
    assert_clean_checkout(dest)
    assert not (dest / "README.md").exists()
    assert _git(dest, "remote", "get-url", "origin") == url


def test_untracked_file_makes_checkout_dirty(tmp_path: Path) -> None:
    """checkout 後に残った未追跡ファイルは黙って消さずにエラーにすること."""
    source = _make_source(tmp_path)
    dest = tmp_path / "checkout"

    ensure_checkout(dest, "main", source.as_uri())
    (dest / "leftover.ts").write_text("export {}\n", encoding="utf-8")
    ensure_checkout(dest, "main", source.as_uri())

    with pytest.raises(DirtyCheckoutError, match="leftover.ts"):
        assert_clean_checkout(dest)
    assert (dest / "leftover.ts").exists()


def test_empty_dir_inside_parent_repo_gets_its_own_repo(tmp_path: Path) -> None:
    """親リポジトリ配下の空ディレクトリでも親の origin と作業ツリーに触れないこと."""
    source = _make_source(tmp_path)
    parent = tmp_path / "parent"
    parent.mkdir()
    _git(parent, "init")
    _git(parent, "remote", "add", "origin", "https://example.com/packager.git")
    (parent / "own.txt").write_text("parent file\n", encoding="utf-8")
    _git(parent, "add", "own.txt")
    _git(parent, "commit", "-m", "parent")
    dest = parent / "vendor" / "AFFiNE"
    dest.mkdir(parents=True)

    ensure_checkout(dest, "main", source.as_uri())

    assert (dest / ".git").exists()
    assert (dest / "README.md").exists()
    assert _git(dest, "remote", "get-url", "origin") == source.as_uri()
    assert _git(parent, "remote", "get-url", "origin") == "https://example.com/packager.git"
    assert (parent / "own.txt").read_text(encoding="utf-8") == "parent file\n"
