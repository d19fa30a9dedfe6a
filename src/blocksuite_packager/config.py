"""実行設定: 同梱 YAML のデフォルト値と検証済みリクエストオブジェクト."""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml
from loguru import logger

from blocksuite_packager.core.exceptions import ConfigurationError

DEFAULTS_YML = Path(__file__).with_name("defaults.yml")
CONFIG_SECTIONS = ("build", "release", "compare")


@dataclass(frozen=True)
class BuildRequest:
    checkout_dir: Path
    ref: str
    source_repo: str
    pack_dir: Path
    namespace: str
    exclude_workspaces: tuple[str, ...]
    packages: tuple[str, ...] | None = None
    skip_install: bool = False
    clean: bool = False
    upload: bool = False
    artifact_name: str = ""
    overrides_path: Path | None = None


@dataclass(frozen=True)
class ReleaseRequest:
    build: BuildRequest
    version: str
    tag: str
    owner: str
    repo: str
    token: str
    release_name: str
    api_url: str


@dataclass(frozen=True)
class CompareRequest:
    version: str
    ref: str
    checkout_dir: Path
    source_repo: str
    package_name: str
    pack_dir: Path
    namespace: str
    registry_url: str
    exclude_workspaces: tuple[str, ...] = ()
    skip_install: bool = False


def load_config(config_path: Path | None = None) -> dict:
    """defaults.yml を読み込み、ユーザー設定ファイルがあればセクション単位で上書きする.

    Args:
        config_path: 追加で読み込む YAML ファイル（任意）

    Returns:
        namespace と build/release/compare セクションを持つ設定辞書
    """
    with open(DEFAULTS_YML, encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if config_path is None:
        return config

    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")
    with open(config_path, encoding="utf-8") as f:
        overlay = yaml.safe_load(f) or {}
    if not isinstance(overlay, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a YAML mapping")

    for key, value in overlay.items():
        if key == "namespace":
            config["namespace"] = value
        elif key in CONFIG_SECTIONS:
            if not isinstance(value, dict):
                raise ConfigurationError(f"Config section {key} in {config_path} must be a mapping")
            config[key] = {**config[key], **value}
        else:
            raise ConfigurationError(f"Unknown config section {key!r} in {config_path}")

    logger.info(f"Loaded config overrides from {config_path}")
    return config


def _require_str(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{field_name} must be a non-empty string")
    return value.strip()


def _str_tuple(value: object, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"{field_name} must be a list of strings")
    return tuple(value)


def _resolve(work_dir: Path, value: object, field_name: str) -> Path:
    if isinstance(value, Path):
        value = str(value)
    path = Path(_require_str(value, field_name))
    return path if path.is_absolute() else (work_dir / path).resolve()


def _pick(arg_value: object, section: Mapping, key: str) -> object:
    return section.get(key) if arg_value is None else arg_value


def build_request_from_args(args: argparse.Namespace, config: dict, ref: str | None = None) -> BuildRequest:
    """build 系オプションを一度だけ検証して BuildRequest にする.

    Args:
        args: argparse の解析結果
        config: load_config() の戻り値
        ref: 明示する git ref（release 時はタグ由来）

    Returns:
        パイプラインに渡す BuildRequest
    """
    section = config["build"]
    work_dir = Path(args.work_dir).resolve()
    namespace = _require_str(config.get("namespace"), "namespace")

    pack_dir = _resolve(work_dir, _pick(args.pack_dir, section, "pack_dir"), "pack_dir")
    if args.overrides_file is not None:
        overrides_path = _resolve(work_dir, args.overrides_file, "overrides_file")
    else:
        overrides_path = pack_dir / _require_str(section.get("overrides_filename"), "overrides_filename")

    packages = None
    if args.packages:
        packages = tuple(_require_str(name, "packages") for name in args.packages)

    # an empty exclusion list falls back to the configured defaults
    exclude = _str_tuple(
        args.exclude_workspaces or section.get("exclude_workspaces") or [],
        "exclude_workspaces",
    )

    return BuildRequest(
        checkout_dir=_resolve(work_dir, _pick(args.checkout_dir, section, "checkout_dir"), "checkout_dir"),
        ref=_require_str(ref if ref is not None else _pick(args.ref, section, "ref"), "ref"),
        source_repo=_require_str(_pick(args.source_repo, section, "source_repo"), "source_repo"),
        pack_dir=pack_dir,
        namespace=namespace,
        exclude_workspaces=exclude,
        packages=packages,
        skip_install=bool(args.skip_install),
        clean=bool(args.clean),
        upload=bool(getattr(args, "upload", False)),
        artifact_name=_require_str(_pick(getattr(args, "artifact_name", None), section, "artifact_name"), "artifact_name"),
        overrides_path=overrides_path,
    )


def parse_repository(repository: str | None) -> tuple[str, str]:
    if not repository or "/" not in repository:
        raise ConfigurationError("Repository must be provided as owner/repo via --repository or GITHUB_REPOSITORY.")
    owner, _, repo = repository.partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigurationError("Repository must be provided as owner/repo via --repository or GITHUB_REPOSITORY.")
    return owner, repo


def release_request_from_args(
    args: argparse.Namespace,
    config: dict,
    env: Mapping[str, str] | None = None,
) -> ReleaseRequest:
    env = os.environ if env is None else env
    section = config["release"]

    version = _require_str(args.version, "version")
    tag = _require_str(args.tag, "tag") if args.tag is not None else version
    # git ref defaults to the release tag
    ref = args.ref if args.ref is not None else tag

    owner, repo = parse_repository(args.repository or env.get("GITHUB_REPOSITORY"))
    token = args.token or env.get("GITHUB_TOKEN")
    if not token:
        raise ConfigurationError("GITHUB_TOKEN (or --token) is required to create releases and upload assets.")

    return ReleaseRequest(
        build=build_request_from_args(args, config, ref=ref),
        version=version,
        tag=tag,
        owner=owner,
        repo=repo,
        token=token,
        release_name=_require_str(section.get("name_template"), "name_template").format(version=version),
        api_url=_require_str(section.get("api_url"), "api_url").rstrip("/"),
    )


def compare_request_from_args(args: argparse.Namespace, config: dict) -> CompareRequest:
    section = config["compare"]
    work_dir = Path(args.work_dir).resolve()

    version = _require_str(_pick(args.version, section, "version"), "version")
    return CompareRequest(
        version=version,
        ref=_require_str(args.ref, "ref") if args.ref is not None else version,
        checkout_dir=_resolve(work_dir, _pick(args.checkout_dir, section, "checkout_dir"), "checkout_dir"),
        source_repo=_require_str(_pick(args.source_repo, section, "source_repo"), "source_repo"),
        package_name=_require_str(_pick(args.package_name, section, "package_name"), "package_name"),
        pack_dir=_resolve(work_dir, _pick(args.pack_dir, section, "pack_dir"), "pack_dir"),
        namespace=_require_str(config.get("namespace"), "namespace"),
        registry_url=_require_str(_pick(args.registry, section, "registry_url"), "registry_url").rstrip("/"),
        exclude_workspaces=_str_tuple(config["build"].get("exclude_workspaces") or [], "exclude_workspaces"),
        skip_install=bool(args.skip_install),
    )
