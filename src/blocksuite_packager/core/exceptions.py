"""パッケージャの例外定義.

パイプライン各フェーズで送出する例外クラスを定義します。
外部ツール自体の失敗（git/yarn/diff）は subprocess.CalledProcessError、
HTTP の失敗は httpx.HTTPError のまま伝播させ、ここでは包み直しません。
"""

from __future__ import annotations

from pathlib import Path


class PackagerError(Exception):
    """パッケージャ自身が報告する失敗の基底クラス."""


class ConfigurationError(PackagerError):
    """実行時の設定値が欠けている、または不正."""


class WorkspaceNotFoundError(ConfigurationError):
    """明示指定されたパッケージが列挙済みワークスペースに存在しない.

    Attributes:
        name: 指定されたパッケージ名
        available: 列挙されたワークスペース名
    """

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        super().__init__(f"Workspace {name} was not found in the repo. Available: {', '.join(available) or '(none)'}")


class DirtyCheckoutError(PackagerError):
    """checkout 後の作業ツリーにローカル変更が残っている.

    Attributes:
        path: チェックアウトディレクトリ
        status: `git status --porcelain` の出力
    """

    def __init__(self, path: Path, status: str) -> None:
        self.path = path
        self.status = status
        super().__init__(
            f"Repository at {path} has uncommitted changes. "
            f"Please commit or stash them before building.\n{status}"
        )


class WorkspaceLayoutError(PackagerError):
    """名前空間に一致するワークスペースが1つも見つからない.

    Attributes:
        checkout_dir: チェックアウトディレクトリ
        namespace: 期待した名前空間プレフィックス
        candidates: packages/ 配下で見つかったディレクトリ
    """

    def __init__(self, checkout_dir: Path, namespace: str, candidates: list[Path]) -> None:
        self.checkout_dir = checkout_dir
        self.namespace = namespace
        self.candidates = candidates
        message = f"Repository at {checkout_dir} does not contain any {namespace}* workspaces"
        if candidates:
            listing = "\n".join(f"- {path}" for path in candidates)
            message += f"\nFound packages directory entries:\n{listing}"
        super().__init__(message)


class ArchiveNameCollisionError(PackagerError):
    """複数のワークスペース名が同じ tarball ファイル名に対応してしまう."""

    def __init__(self, filename: str, names: list[str]) -> None:
        self.filename = filename
        self.names = names
        super().__init__(f"Workspaces {', '.join(names)} would all be packed to {filename}")


class NoArchivesProducedError(PackagerError):
    """pack が tarball を1つも生成しなかった."""

    def __init__(self, pack_dir: Path) -> None:
        self.pack_dir = pack_dir
        super().__init__(f"No package tarballs were produced in {pack_dir}")


class ReleaseLookupError(PackagerError):
    """タグによるリリース取得が 404 以外で失敗した.

    404 だけをリリース未作成とみなし、それ以外の応答では処理を止める。
    """

    def __init__(self, tag: str, status_code: int, detail: str = "") -> None:
        self.tag = tag
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Failed to look up release for tag {tag}: HTTP {status_code} {detail}".rstrip())


class TarballMismatchError(PackagerError):
    """ローカルビルドとレジストリ公開物の内容が一致しない."""

    def __init__(self, package_name: str, version: str) -> None:
        self.package_name = package_name
        self.version = version
        super().__init__(
            f"Local build of {package_name}@{version} does not match the registry publication "
            "for the selected version."
        )
