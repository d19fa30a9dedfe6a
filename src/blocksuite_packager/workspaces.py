"""`yarn workspaces list` によるワークスペース列挙と pack 対象の選択."""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Iterable, Sequence
from pathlib import Path

from loguru import logger

from blocksuite_packager.core.exceptions import (
    ArchiveNameCollisionError,
    PackagerError,
    WorkspaceLayoutError,
    WorkspaceNotFoundError,
)
from blocksuite_packager.models import Workspace, archive_filename
from blocksuite_packager.process import capture_command, section


def parse_workspace_list(output: str, namespace: str) -> list[Workspace]:
    """JSON Lines 出力を解析し、名前空間に一致するエントリだけを残す."""
    workspaces: list[Workspace] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError as exc:
            raise PackagerError(f"Unexpected output from yarn workspaces list: {line!r}") from exc
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        location = entry.get("location")
        if not isinstance(name, str) or not isinstance(location, str):
            continue
        if name.startswith(namespace):
            workspaces.append(Workspace(name=name, location=location))
    return workspaces


def list_workspaces(checkout_dir: Path, namespace: str) -> list[Workspace]:
    result = capture_command(["yarn", "workspaces", "list", "--json"], cwd=checkout_dir)
    return parse_workspace_list(result.stdout, namespace)


def ensure_workspace_layout(checkout_dir: Path, namespace: str) -> list[Workspace]:
    """名前空間のワークスペースを列挙する.

    Args:
        checkout_dir: チェックアウトディレクトリ
        namespace: 名前空間プレフィックス（例: "@blocksuite/"）

    Returns:
        列挙されたワークスペース

    Raises:
        WorkspaceLayoutError: 1件も見つからない場合
    """
    section("Checking repository layout")
    if not checkout_dir.exists():
        raise PackagerError(f"Source directory {checkout_dir} is missing after clone.")

    workspaces = list_workspaces(checkout_dir, namespace)
    if not workspaces:
        packages_dir = checkout_dir / "packages"
        candidates = sorted(packages_dir.iterdir()) if packages_dir.is_dir() else []
        logger.error(f"No {namespace}* workspaces detected.")
        raise WorkspaceLayoutError(checkout_dir, namespace, candidates)

    logger.info(f"Found {len(workspaces)} {namespace}* workspaces")
    return workspaces


def check_archive_names(workspaces: Iterable[Workspace]) -> None:
    by_filename: dict[str, list[str]] = defaultdict(list)
    for ws in workspaces:
        by_filename[archive_filename(ws.name)].append(ws.name)
    for filename, names in by_filename.items():
        if len(names) > 1:
            raise ArchiveNameCollisionError(filename, names)


def select_workspaces(
    workspaces: Sequence[Workspace],
    packages: Sequence[str] | None,
    exclude_workspaces: Sequence[str] = (),
) -> list[Workspace]:
    """pack 対象を選ぶ.

    明示指定が無ければ除外リストに無いワークスペースをすべて対象にする。
    明示指定がある場合は指定順のまま使う（除外リストは適用しない）。

    Args:
        workspaces: 列挙済みワークスペース
        packages: 明示指定されたパッケージ名（任意）
        exclude_workspaces: ビルド対象外のワークスペース名

    Returns:
        pack 対象のワークスペース

    Raises:
        WorkspaceNotFoundError: 明示指定に未知の名前が含まれる場合
    """
    check_archive_names(workspaces)
    if not packages:
        return [ws for ws in workspaces if ws.name not in exclude_workspaces]

    by_name = {ws.name: ws for ws in workspaces}
    targets: list[Workspace] = []
    for name in packages:
        ws = by_name.get(name)
        if ws is None:
            raise WorkspaceNotFoundError(name, sorted(by_name))
        if ws not in targets:
            targets.append(ws)
    return targets
