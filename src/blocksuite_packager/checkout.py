"""ソースリポジトリの取得とクリーン状態の検証."""

from __future__ import annotations

import shutil
from pathlib import Path

from loguru import logger

from blocksuite_packager.core.exceptions import DirtyCheckoutError
from blocksuite_packager.process import capture_command, run_command, section


def _is_repo_root(dest: Path) -> bool:
    """dest 自身が git リポジトリのルートか（親リポジトリ配下の空ディレクトリは対象外）."""
    return (dest / ".git").exists()


def ensure_checkout(dest: Path, ref: str, source_repo: str) -> None:
    """dest に source_repo の ref を浅く fetch して checkout する.

    既存の作業ツリーは origin の URL を source_repo に向け直して再利用する。
    dest 自身がリポジトリでなければ削除して git init からやり直す。

    Args:
        dest: チェックアウト先ディレクトリ
        ref: 取得するブランチ/タグ/コミット
        source_repo: 取得元リポジトリの URL
    """
    if not _is_repo_root(dest):
        section(f"Cloning {source_repo} into {dest}")
        if dest.exists():
            logger.warning(f"Existing path is not a git repo, recreating: {dest}")
            shutil.rmtree(dest)
        dest.mkdir(parents=True, exist_ok=True)
        run_command(["git", "-C", str(dest), "init"])
        run_command(["git", "-C", str(dest), "remote", "add", "origin", source_repo])
    else:
        section(f"Updating {dest}")
        origin = capture_command(["git", "-C", str(dest), "remote", "get-url", "origin"], check=False)
        if origin.returncode != 0:
            run_command(["git", "-C", str(dest), "remote", "add", "origin", source_repo])
        else:
            if origin.stdout.strip() != source_repo:
                logger.info(f"Retargeting origin from {origin.stdout.strip()} to {source_repo}")
            run_command(["git", "-C", str(dest), "remote", "set-url", "origin", source_repo])

    # 履歴は保持しない（depth 1）
    run_command(["git", "-C", str(dest), "fetch", "--depth", "1", "origin", ref])
    run_command(["git", "-C", str(dest), "checkout", "--force", "FETCH_HEAD"])

    head = capture_command(["git", "-C", str(dest), "rev-parse", "HEAD"])
    logger.info(f"Checked out {ref} at commit {head.stdout.strip()[:8]}")


def assert_clean_checkout(dest: Path) -> None:
    """作業ツリーにローカル変更が無いことを確認する.

    Raises:
        DirtyCheckoutError: `git status --porcelain` が空でない場合
    """
    status = capture_command(["git", "status", "--porcelain"], cwd=dest)
    if status.stdout.strip():
        raise DirtyCheckoutError(dest, status.stdout.rstrip())
    logger.info(f"Working tree is clean: {dest}")
