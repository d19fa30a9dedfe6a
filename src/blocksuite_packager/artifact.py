"""GitHub Actions のアーティファクトアップロード（Actions results サービス経由）."""

from __future__ import annotations

import base64
import hashlib
import io
import json
import os
import zipfile
from collections.abc import Mapping, Sequence
from pathlib import Path

import httpx
from loguru import logger

from blocksuite_packager.core.exceptions import ConfigurationError, PackagerError

ARTIFACT_SERVICE = "twirp/github.actions.results.api.v1.ArtifactService"
ARTIFACT_VERSION = 4


def running_in_actions(env: Mapping[str, str]) -> bool:
    return env.get("GITHUB_ACTIONS") == "true"


def backend_ids_from_token(runtime_token: str) -> tuple[str, str]:
    """ランタイムトークン（JWT）の `scp` クレームから (workflow run, job run) のバックエンド ID を取り出す."""
    parts = runtime_token.split(".")
    if len(parts) != 3:
        raise ConfigurationError("ACTIONS_RUNTIME_TOKEN is not a JWT")
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (ValueError, json.JSONDecodeError) as exc:
        raise ConfigurationError("ACTIONS_RUNTIME_TOKEN payload is not valid JSON") from exc

    for scope in str(claims.get("scp", "")).split(" "):
        scope_parts = scope.split(":")
        if scope_parts[0] == "Actions.Results" and len(scope_parts) == 3:
            return scope_parts[1], scope_parts[2]
    raise ConfigurationError("ACTIONS_RUNTIME_TOKEN does not carry an Actions.Results scope")


def zip_files(root_dir: Path, files: Sequence[Path]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in files:
            zf.write(path, arcname=Path(path).relative_to(root_dir).as_posix())
    return buffer.getvalue()


def _twirp(client: httpx.Client, method: str, payload: dict) -> dict:
    response = client.post(f"/{ARTIFACT_SERVICE}/{method}", json=payload)
    response.raise_for_status()
    data = response.json()
    if not data.get("ok"):
        raise PackagerError(f"Artifact service {method} was rejected: {data}")
    return data


def upload_artifact(
    root_dir: Path,
    files: Sequence[Path],
    artifact_name: str,
    env: Mapping[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> str | None:
    """files を1つの zip にまとめてアーティファクトとしてアップロード.

    GitHub Actions 外では警告を出すだけで何もしない。

    Args:
        root_dir: zip 内パスの基準ディレクトリ
        files: アップロードするファイル
        artifact_name: アーティファクト名
        env: 環境変数（省略時は os.environ）
        transport: テスト用の httpx トランスポート

    Returns:
        アーティファクト ID（スキップ時は None）
    """
    env = os.environ if env is None else env
    if not running_in_actions(env):
        logger.warning("Artifact upload requested, but this is not running inside GitHub Actions. Skipping.")
        return None

    runtime_token = env.get("ACTIONS_RUNTIME_TOKEN")
    results_url = env.get("ACTIONS_RESULTS_URL")
    if not runtime_token or not results_url:
        raise ConfigurationError("ACTIONS_RUNTIME_TOKEN and ACTIONS_RESULTS_URL are required for artifact upload")

    run_id, job_run_id = backend_ids_from_token(runtime_token)
    archive = zip_files(root_dir, files)
    ids = {"workflow_run_backend_id": run_id, "workflow_job_run_backend_id": job_run_id}

    with httpx.Client(
        base_url=results_url.rstrip("/"),
        headers={"Authorization": f"Bearer {runtime_token}"},
        transport=transport,
        timeout=300.0,
    ) as client:
        created = _twirp(client, "CreateArtifact", {**ids, "name": artifact_name, "version": ARTIFACT_VERSION})
        upload_url = created.get("signed_upload_url") or created.get("signedUploadUrl")
        if not upload_url:
            raise PackagerError(f"Artifact service returned no upload URL for {artifact_name}")

        # signed URL carries its own credentials; no bearer header here
        with httpx.Client(transport=transport, timeout=300.0) as blob_client:
            blob = blob_client.put(
                upload_url,
                content=archive,
                headers={"x-ms-blob-type": "BlockBlob", "Content-Type": "application/zip"},
            )
            blob.raise_for_status()

        finalized = _twirp(
            client,
            "FinalizeArtifact",
            {
                **ids,
                "name": artifact_name,
                "size": str(len(archive)),
                "hash": f"sha256:{hashlib.sha256(archive).hexdigest()}",
            },
        )

    artifact_id = str(finalized.get("artifact_id") or finalized.get("artifactId") or "")
    logger.info(f'Uploaded artifact "{artifact_name}" with {len(files)} files.')
    return artifact_id
