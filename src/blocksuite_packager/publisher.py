"""GitHub リリースへの公開: リリースを取得（無ければ作成）し、同名アセットを置き換える."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from blocksuite_packager.github import GitHubClient, release_upload_url
from blocksuite_packager.models import ReleaseTarget
from blocksuite_packager.process import section

ARCHIVE_CONTENT_TYPE = "application/gzip"


def ensure_release(client: GitHubClient, target: ReleaseTarget, release_name: str) -> ReleaseTarget:
    """タグのリリースを取得し、404 の場合だけ新規作成する.

    Args:
        client: GitHub クライアント
        target: 対象リリース（release_id と upload_url を埋める）
        release_name: 新規作成時のリリース名

    Returns:
        解決済みの target
    """
    release = client.get_release_by_tag(target.owner, target.repo, target.tag)
    if release is None:
        logger.warning(f"Release for tag {target.tag} not found. Creating...")
        release = client.create_release(target.owner, target.repo, target.tag, release_name)
        logger.info(f"Created release {release_name} ({release['id']})")
    else:
        logger.info(f"Using existing release for tag {target.tag} ({release['id']})")

    target.release_id = release["id"]
    target.upload_url = release_upload_url(release, target.owner, target.repo)
    return target


def refresh_assets(client: GitHubClient, target: ReleaseTarget) -> dict[str, int]:
    release = client.get_release(target.owner, target.repo, target.release_id)
    target.assets = {asset["name"]: asset["id"] for asset in release.get("assets") or []}
    return target.assets


def upload_release_assets(client: GitHubClient, target: ReleaseTarget, files: Sequence[Path]) -> list[str]:
    """files をアップロード. 同名の既存アセットは先に削除する.

    Args:
        client: GitHub クライアント
        target: ensure_release() 済みのリリース
        files: アップロードする tarball

    Returns:
        アップロードしたアセット名
    """
    if target.release_id is None:
        raise ValueError("release must be resolved before uploading assets")

    refresh_assets(client, target)

    uploaded: list[str] = []
    for path in files:
        name = path.name
        existing_id = target.assets.pop(name, None)
        if existing_id is not None:
            logger.warning(f"Deleting existing asset {name} before upload...")
            client.delete_release_asset(target.owner, target.repo, existing_id)

        data = path.read_bytes()
        logger.info(f"Uploading asset {name} ({len(data)} bytes)...")
        asset = client.upload_release_asset(target.upload_url, name, data, content_type=ARCHIVE_CONTENT_TYPE)
        target.assets[name] = asset["id"]
        uploaded.append(name)
    return uploaded


def publish_release(
    client: GitHubClient,
    target: ReleaseTarget,
    release_name: str,
    files: Sequence[Path],
) -> list[str]:
    section(f"Publishing {len(files)} assets to {target.owner}/{target.repo}@{target.tag}")
    ensure_release(client, target, release_name)
    uploaded = upload_release_assets(client, target, files)
    logger.info(f"Release {target.tag} now has {len(target.assets)} assets")
    return uploaded
