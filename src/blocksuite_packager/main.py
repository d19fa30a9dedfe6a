"""CLI: パッケージのビルド（CI アーティファクト化も可）と GitHub リリースへの公開."""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path

import httpx
from loguru import logger

from blocksuite_packager.config import build_request_from_args, load_config, release_request_from_args
from blocksuite_packager.core.exceptions import PackagerError
from blocksuite_packager.pipeline import build_packages, release_packages


def _add_common_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=Path, default=None, help="YAML file overriding packaged defaults")
    p.add_argument(
        "--work-dir",
        type=Path,
        default=Path.cwd(),
        help="base directory for relative paths (default: current directory)",
    )
    p.add_argument("--checkout-dir", "--affine-dir", dest="checkout_dir", default=None, help="Destination for the source clone")
    p.add_argument("--pack-dir", default=None, help="Output directory for package tarballs")
    p.add_argument("--packages", nargs="+", default=None, metavar="NAME", help="Subset of workspaces to pack")
    p.add_argument(
        "--exclude-workspaces",
        nargs="+",
        default=None,
        metavar="NAME",
        help="Workspaces to skip during the build step",
    )
    p.add_argument("--source-repo", default=None, help="Git repository containing the workspaces")
    p.add_argument("--skip-install", action="store_true", help="Skip yarn install inside the checkout")
    p.add_argument(
        "--overrides-file",
        default=None,
        help="Where to write the pnpm.overrides mapping (default: inside --pack-dir)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blocksuite-packager",
        description="Clone the monorepo, build BlockSuite workspaces, and pack them into .tgz files",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build and pack workspaces")
    _add_common_options(build)
    build.add_argument("--ref", default=None, help="Git reference to check out (default: main)")
    build.add_argument("--clean", action="store_true", help="Clean the pack directory before packing")
    build.add_argument("--upload", action="store_true", help="Upload tarballs as a GitHub Actions artifact")
    build.add_argument("--artifact-name", default=None, help="Artifact name used during upload")

    release = subparsers.add_parser(
        "release",
        help="Build for a specific version and upload tarballs to a GitHub release",
    )
    _add_common_options(release)
    release.add_argument("--version", required=True, help="Version to package")
    release.add_argument("--ref", "--affine-ref", dest="ref", default=None, help="Git reference (default: the tag)")
    release.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Clean the pack directory before packing",
    )
    release.add_argument("--repository", default=None, help="owner/repo (default: GITHUB_REPOSITORY)")
    release.add_argument("--token", default=None, help="GitHub token (default: GITHUB_TOKEN)")
    release.add_argument("--tag", default=None, help="Release tag (default: --version)")
    return parser


def run(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)

    if args.command == "build":
        build_packages(build_request_from_args(args, config))
    else:
        release_packages(release_request_from_args(args, config))


def main(argv: list[str] | None = None) -> None:
    try:
        run(argv)
    except (PackagerError, subprocess.CalledProcessError, httpx.HTTPError) as exc:
        logger.error(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()
