"""パイプラインの各フェーズ間で受け渡す値."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

ARCHIVE_EXTENSION = ".tgz"


@dataclass(frozen=True)
class Workspace:
    name: str
    location: str

    @property
    def archive_filename(self) -> str:
        return archive_filename(self.name)


@dataclass(frozen=True)
class ArchiveResult:
    pack_dir: Path
    files: tuple[Path, ...]
    workspaces: tuple[Workspace, ...] = ()


@dataclass
class ReleaseTarget:
    """タグ付きリリース. assets はアセット名 -> アセット ID（アップロード前に再取得）."""

    owner: str
    repo: str
    tag: str
    release_id: int | None = None
    upload_url: str | None = None
    assets: dict[str, int] = field(default_factory=dict)


def archive_filename(package_name: str) -> str:
    """`@scope/name` -> `scope-name.tgz`."""
    return package_name.replace("@", "", 1).replace("/", "-", 1) + ARCHIVE_EXTENSION
