"""Yarn 関連の処理: バージョン有効化、install、build、pack."""

from __future__ import annotations

import json
import shutil
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from blocksuite_packager.core.exceptions import NoArchivesProducedError
from blocksuite_packager.models import ArchiveResult, Workspace
from blocksuite_packager.process import run_command, section

YARN_ENV = {"YARN_IGNORE_PATH": "1"}
INSTALL_ENV = {"YARN_ENABLE_IMMUTABLE_INSTALLS": "1", "YARN_IGNORE_PATH": "1"}


def read_package_manager(checkout_dir: Path) -> str | None:
    package_json_path = checkout_dir / "package.json"
    if not package_json_path.exists():
        return None
    data = json.loads(package_json_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        return None
    value = data.get("packageManager")
    return value if isinstance(value, str) else None


def configure_yarn_version(checkout_dir: Path) -> None:
    """ルート package.json の packageManager で固定された Yarn を corepack で有効化."""
    section("Configuring Yarn version")
    run_command(["corepack", "enable"], cwd=checkout_dir)

    if not (checkout_dir / "package.json").exists():
        logger.warning(f"package.json not found in {checkout_dir}; using default Yarn.")
        return

    package_manager = read_package_manager(checkout_dir)
    if not package_manager or not package_manager.startswith("yarn@"):
        logger.warning("No Yarn packageManager entry found in package.json; using default Yarn.")
        return

    run_command(["corepack", "use", package_manager], cwd=checkout_dir)
    logger.info(f"Activated Yarn version from packageManager: {package_manager}")


def install_dependencies(checkout_dir: Path, skip_install: bool) -> None:
    if skip_install:
        logger.warning("Skipping dependency installation.")
        return

    section("Installing dependencies with yarn")
    run_command(["yarn", "install", "--immutable", "--check-cache"], cwd=checkout_dir, env=INSTALL_ENV)


def build_command(namespace: str, exclude_workspaces: Sequence[str]) -> list[str]:
    cmd = [
        "yarn", "exec", "yarn", "workspaces", "foreach",
        "--all", "--topological-dev",
        "--include", f"{namespace}*",
    ]
    for name in exclude_workspaces:
        cmd.extend(["--exclude", name])
    cmd.extend(["run", "build"])
    return cmd


def build_workspaces(checkout_dir: Path, namespace: str, exclude_workspaces: Sequence[str]) -> None:
    """名前空間のワークスペースを依存順に1回の yarn 呼び出しでビルド."""
    section(f"Building {namespace}* packages")
    if exclude_workspaces:
        logger.info(f"Excluding: {', '.join(exclude_workspaces)}")
    run_command(build_command(namespace, exclude_workspaces), cwd=checkout_dir, env=YARN_ENV)


def prepare_pack_dir(pack_dir: Path, clean: bool) -> None:
    if clean and pack_dir.exists():
        logger.info(f"Cleaning pack directory: {pack_dir}")
        shutil.rmtree(pack_dir)
    pack_dir.mkdir(parents=True, exist_ok=True)


def pack_workspaces(
    checkout_dir: Path,
    targets: Sequence[Workspace],
    pack_dir: Path,
    clean: bool,
) -> ArchiveResult:
    """対象ワークスペースを1件ずつ pack_dir に `yarn pack` する.

    Raises:
        NoArchivesProducedError: tarball が1つも作られなかった場合
    """
    section(f"Packing packages into {pack_dir}")
    pack_dir = pack_dir.resolve()
    prepare_pack_dir(pack_dir, clean)

    files: list[Path] = []
    for ws in targets:
        output_path = pack_dir / ws.archive_filename
        run_command(
            ["yarn", "exec", "yarn", "workspace", ws.name, "pack", "--out", str(output_path)],
            cwd=checkout_dir,
            env=YARN_ENV,
        )
        files.append(output_path)

    if not files:
        raise NoArchivesProducedError(pack_dir)

    logger.info(f"Packed {len(files)} files:")
    for path in files:
        logger.info(f"- {path}")
    return ArchiveResult(pack_dir=pack_dir, files=tuple(files), workspaces=tuple(targets))
