"""1パッケージをローカルでビルドし、npm レジストリ公開物の tarball と比較する."""

from __future__ import annotations

import argparse
import shutil
import subprocess
import sys
import tarfile
from pathlib import Path
from urllib.parse import quote

import httpx
from loguru import logger

from blocksuite_packager.config import BuildRequest, CompareRequest, compare_request_from_args, load_config
from blocksuite_packager.core.exceptions import PackagerError, TarballMismatchError
from blocksuite_packager.models import archive_filename
from blocksuite_packager.pipeline import build_packages
from blocksuite_packager.process import run_command, section

ABBREVIATED_METADATA = "application/vnd.npm.install-v1+json"


def base_name(package_name: str) -> str:
    return archive_filename(package_name).removesuffix(".tgz")


def registry_version(version: str) -> str:
    return version[1:] if version.startswith("v") else version


def build_local_tarball(request: CompareRequest, local_pack_dir: Path) -> Path:
    result = build_packages(
        BuildRequest(
            checkout_dir=request.checkout_dir,
            ref=request.ref,
            source_repo=request.source_repo,
            pack_dir=local_pack_dir,
            namespace=request.namespace,
            exclude_workspaces=request.exclude_workspaces,
            packages=(request.package_name,),
            skip_install=request.skip_install,
            clean=True,
        )
    )
    return result.files[0]


def fetch_registry_tarball(
    client: httpx.Client,
    registry_url: str,
    package_name: str,
    version: str,
    destination: Path,
) -> Path:
    """レジストリから `package_name@version` の tarball を destination にダウンロード.

    Args:
        client: httpx クライアント
        registry_url: レジストリのベース URL
        package_name: パッケージ名
        version: レジストリ上のバージョン（先頭の v なし）
        destination: 保存先ディレクトリ

    Returns:
        保存した tarball のパス
    """
    section(f"Fetching {package_name}@{version} from {registry_url}")
    destination.mkdir(parents=True, exist_ok=True)

    response = client.get(
        f"{registry_url}/{quote(package_name, safe='@')}",
        headers={"Accept": ABBREVIATED_METADATA},
    )
    response.raise_for_status()
    versions = response.json().get("versions") or {}
    if version not in versions:
        raise PackagerError(f"{package_name}@{version} is not published on {registry_url}")
    tarball_url = versions[version]["dist"]["tarball"]

    target = destination / tarball_url.rsplit("/", 1)[-1]
    with client.stream("GET", tarball_url, follow_redirects=True) as r:
        r.raise_for_status()
        with open(target, "wb") as f:
            for chunk in r.iter_bytes():
                f.write(chunk)
    logger.info(f"Downloaded {target.name} ({target.stat().st_size} bytes)")
    return target


def extract_tarball(tarball_path: Path, destination: Path) -> None:
    if destination.exists():
        shutil.rmtree(destination)
    destination.mkdir(parents=True)
    with tarfile.open(tarball_path, "r:gz") as tar:
        tar.extractall(destination, filter="data")


def compare_trees(registry_dir: Path, local_dir: Path, package_name: str, version: str) -> None:
    """`diff -ruN` で比較. 終了コード 1 は不一致、2 以上は diff 自体の失敗."""
    section(f"Comparing {registry_dir.name} with {local_dir.name}")
    result = run_command(["diff", "-ruN", str(registry_dir), str(local_dir)], check=False)
    if result.returncode == 1:
        raise TarballMismatchError(package_name, version)
    if result.returncode != 0:
        raise subprocess.CalledProcessError(result.returncode, result.args)


def compare_package(request: CompareRequest, transport: httpx.BaseTransport | None = None) -> None:
    """ローカルビルドとレジストリ公開物を展開して比較する.

    Raises:
        TarballMismatchError: 展開結果が一致しない場合
    """
    base_dir = request.pack_dir
    name = base_name(request.package_name)
    local_pack_dir = base_dir / "local-pack"
    npm_pack_dir = base_dir / "npm-pack"
    local_extract_dir = base_dir / f"{name}-local"
    npm_extract_dir = base_dir / f"{name}-npm"

    if base_dir.exists():
        shutil.rmtree(base_dir)
    base_dir.mkdir(parents=True)

    local_tarball = build_local_tarball(request, local_pack_dir)
    with httpx.Client(transport=transport, timeout=300.0) as client:
        npm_tarball = fetch_registry_tarball(
            client,
            request.registry_url,
            request.package_name,
            registry_version(request.version),
            npm_pack_dir,
        )

    extract_tarball(local_tarball, local_extract_dir)
    extract_tarball(npm_tarball, npm_extract_dir)
    compare_trees(npm_extract_dir, local_extract_dir, request.package_name, request.version)

    logger.info(f"Success: {request.package_name}@{request.version} matches between local build and npm.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="compare-blocksuite",
        description="Build a BlockSuite package and compare it with the npm-published tarball",
    )
    p.add_argument("--config", type=Path, default=None, help="YAML file overriding packaged defaults")
    p.add_argument("--work-dir", type=Path, default=Path.cwd(), help="base directory for relative paths")
    p.add_argument("--version", default=None, help="Version to compare (default: v0.19.5)")
    p.add_argument("--ref", default=None, help="Git reference to build (default: the version)")
    p.add_argument("--checkout-dir", "--affine-dir", dest="checkout_dir", default=None, help="Directory to clone into")
    p.add_argument("--source-repo", default=None, help="Git repository containing the sources to build")
    p.add_argument("--package-name", default=None, help="Package to compare")
    p.add_argument("--pack-dir", default=None, help="Base directory for comparison artifacts")
    p.add_argument("--registry", default=None, help="npm registry URL")
    p.add_argument("--skip-install", action="store_true", help="Skip yarn install inside the checkout")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        compare_package(compare_request_from_args(args, load_config(args.config)))
    except (PackagerError, subprocess.CalledProcessError, httpx.HTTPError) as exc:
        logger.error(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()
