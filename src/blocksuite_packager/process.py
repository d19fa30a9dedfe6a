"""外部コマンドの実行（出力はそのまま親プロセスに流す）."""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from loguru import logger

SEPARATOR = "=" * 60


def section(title: str) -> None:
    logger.info(SEPARATOR)
    logger.info(title)
    logger.info(SEPARATOR)


def _merged_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    if env is None:
        return None
    return {**os.environ, **env}


def run_command(
    cmd: Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """コマンドを実行. check=True なら失敗時に CalledProcessError."""
    logger.info(f"$ {shlex.join(cmd)}")
    return subprocess.run(list(cmd), cwd=cwd, env=_merged_env(env), check=check)


def capture_command(
    cmd: Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """コマンドを実行し stdout/stderr をテキストで取得."""
    logger.debug(f"$ {shlex.join(cmd)}")
    return subprocess.run(
        list(cmd),
        cwd=cwd,
        env=_merged_env(env),
        capture_output=True,
        text=True,
        check=check,
    )
