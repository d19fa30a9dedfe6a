"""パッケージングパイプライン: checkout -> クリーン確認 -> 列挙 -> install -> build -> pack -> 公開."""

from __future__ import annotations

from collections.abc import Mapping

import httpx
from loguru import logger

from blocksuite_packager.artifact import upload_artifact
from blocksuite_packager.checkout import assert_clean_checkout, ensure_checkout
from blocksuite_packager.config import BuildRequest, ReleaseRequest
from blocksuite_packager.github import GitHubClient
from blocksuite_packager.models import ArchiveResult, ReleaseTarget
from blocksuite_packager.overrides import write_overrides
from blocksuite_packager.publish_config import patch_publish_config
from blocksuite_packager.publisher import publish_release
from blocksuite_packager.workspaces import ensure_workspace_layout, select_workspaces
from blocksuite_packager.yarn import (
    build_workspaces,
    configure_yarn_version,
    install_dependencies,
    pack_workspaces,
)


def build_packages(
    request: BuildRequest,
    env: Mapping[str, str] | None = None,
    artifact_transport: httpx.BaseTransport | None = None,
) -> ArchiveResult:
    """ソース取得から pack までを実行し、必要ならアーティファクトとしてアップロード.

    Args:
        request: 検証済みのビルド要求
        env: アーティファクトアップロードで参照する環境変数
        artifact_transport: テスト用の httpx トランスポート

    Returns:
        pack 結果
    """
    checkout_dir = request.checkout_dir
    logger.info(f"=== Build start: {request.source_repo}@{request.ref} ===")

    ensure_checkout(checkout_dir, request.ref, request.source_repo)
    assert_clean_checkout(checkout_dir)
    workspaces = ensure_workspace_layout(checkout_dir, request.namespace)
    # unknown package names fail here, before install/build
    targets = select_workspaces(workspaces, request.packages, request.exclude_workspaces)

    patch_publish_config(checkout_dir, workspaces)
    configure_yarn_version(checkout_dir)
    install_dependencies(checkout_dir, request.skip_install)
    build_workspaces(checkout_dir, request.namespace, request.exclude_workspaces)
    result = pack_workspaces(checkout_dir, targets, request.pack_dir, request.clean)

    if request.overrides_path is not None:
        write_overrides(result, request.overrides_path)

    if request.upload:
        upload_artifact(result.pack_dir, result.files, request.artifact_name, env=env, transport=artifact_transport)

    logger.info(f"=== Build done: {len(result.files)} packages in {result.pack_dir} ===")
    return result


def release_packages(
    request: ReleaseRequest,
    github_transport: httpx.BaseTransport | None = None,
) -> list[str]:
    """バージョンをビルドし、成果物をタグ付きリリースのアセットとして反映する.

    Returns:
        アップロードしたアセット名
    """
    result = build_packages(request.build)
    target = ReleaseTarget(owner=request.owner, repo=request.repo, tag=request.tag)
    with GitHubClient(request.token, api_url=request.api_url, transport=github_transport) as client:
        return publish_release(client, target, request.release_name, result.files)
