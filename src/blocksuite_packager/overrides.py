"""pnpm.overrides 用マッピングファイルの生成."""

from __future__ import annotations

import json
import os
from pathlib import Path

from loguru import logger

from blocksuite_packager.models import ArchiveResult
from blocksuite_packager.process import section


def build_overrides(result: ArchiveResult, overrides_path: Path) -> dict[str, str]:
    """パッケージ名 -> `file:./<相対パス>` の辞書を作成.

    Args:
        result: pack 結果
        overrides_path: マッピングファイルの出力先（相対パスの基準）

    Returns:
        パッケージ名をキーとするオーバーライド辞書
    """
    base_dir = overrides_path.parent
    overrides: dict[str, str] = {}
    for ws, archive in zip(result.workspaces, result.files):
        relative = Path(os.path.relpath(archive, base_dir)).as_posix()
        if relative.startswith("../"):
            overrides[ws.name] = f"file:{relative}"
        else:
            overrides[ws.name] = f"file:./{relative}"
    return overrides


def write_overrides(result: ArchiveResult, overrides_path: Path) -> Path:
    """オーバーライド辞書を JSON として保存し、内容をログに出す.

    Args:
        result: pack 結果
        overrides_path: 出力 JSON ファイルパス

    Returns:
        書き込んだファイルのパス
    """
    section("Generating pnpm.overrides configuration")
    overrides = build_overrides(result, overrides_path)
    rendered = json.dumps(overrides, indent=2, ensure_ascii=False)

    logger.info(f"Add the following to pnpm.overrides:\n{rendered}")

    overrides_path.parent.mkdir(parents=True, exist_ok=True)
    overrides_path.write_text(rendered + "\n", encoding="utf-8")
    logger.info(f"Saved overrides to {overrides_path}")
    return overrides_path
