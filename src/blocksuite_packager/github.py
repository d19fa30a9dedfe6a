"""リリースとリリースアセット用の最小限の GitHub REST クライアント."""

from __future__ import annotations

from urllib.parse import quote

import httpx
from loguru import logger

from blocksuite_packager.core.exceptions import ReleaseLookupError

API_URL = "https://api.github.com"
UPLOADS_URL = "https://uploads.github.com"
USER_AGENT = "blocksuite-packager"


class GitHubClient:
    """httpx.Client の薄いラッパー. 2xx 以外の応答は例外にする."""

    def __init__(
        self,
        token: str,
        api_url: str = API_URL,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 300.0,
    ) -> None:
        self._client = httpx.Client(
            base_url=api_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": USER_AGENT,
            },
            transport=transport,
            timeout=timeout,
        )

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> dict | None:
        """タグに対応するリリースを返す. 404 のときだけ None.

        Raises:
            ReleaseLookupError: 404 以外の 2xx でない応答（3xx を含む）
        """
        response = self._client.get(f"/repos/{owner}/{repo}/releases/tags/{quote(tag, safe='')}")
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise ReleaseLookupError(tag, response.status_code, response.text)
        return response.json()

    def create_release(self, owner: str, repo: str, tag: str, name: str) -> dict:
        response = self._client.post(
            f"/repos/{owner}/{repo}/releases",
            json={"tag_name": tag, "name": name, "draft": False, "prerelease": False},
        )
        response.raise_for_status()
        return response.json()

    def get_release(self, owner: str, repo: str, release_id: int) -> dict:
        response = self._client.get(f"/repos/{owner}/{repo}/releases/{release_id}")
        response.raise_for_status()
        return response.json()

    def delete_release_asset(self, owner: str, repo: str, asset_id: int) -> None:
        response = self._client.delete(f"/repos/{owner}/{repo}/releases/assets/{asset_id}")
        response.raise_for_status()

    def upload_release_asset(
        self,
        upload_url: str,
        name: str,
        data: bytes,
        content_type: str = "application/gzip",
    ) -> dict:
        """リリースのアップロード URL に生バイト列を POST する."""
        logger.debug(f"POST {upload_url}?name={name}")
        response = self._client.post(
            upload_url,
            params={"name": name},
            content=data,
            headers={"Content-Type": content_type, "Content-Length": str(len(data))},
        )
        response.raise_for_status()
        return response.json()


def release_upload_url(release: dict, owner: str, repo: str) -> str:
    """`upload_url` の URI テンプレート部分を除去（無ければ既定のエンドポイント）."""
    upload_url = release.get("upload_url")
    if isinstance(upload_url, str) and upload_url:
        return upload_url.split("{", 1)[0]
    return f"{UPLOADS_URL}/repos/{owner}/{repo}/releases/{release['id']}/assets"
