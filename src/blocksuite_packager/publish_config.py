"""`src/` を exports するワークスペースの publishConfig.exports をビルド済み `dist/` に向ける."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from blocksuite_packager.models import Workspace
from blocksuite_packager.process import section

_SRC_PREFIX = re.compile(r"^\./src/")
_TS_SUFFIX = re.compile(r"\.tsx?$")


def convert_src_export(target: str) -> dict[str, str] | None:
    """`./src/foo/index.ts` -> `{"types": "./dist/foo/index.d.ts", "import": "./dist/foo/index.js"}`."""
    if not target.startswith("./src/"):
        return None
    dist_base = _TS_SUFFIX.sub("", _SRC_PREFIX.sub("./dist/", target))
    return {"types": f"{dist_base}.d.ts", "import": f"{dist_base}.js"}


def _convert_value(value: object) -> object:
    if isinstance(value, str):
        return convert_src_export(value) or value
    return value


def rewrite_exports_field(exports: object) -> object:
    if isinstance(exports, str):
        return convert_src_export(exports) or exports

    if isinstance(exports, dict):
        rewritten = {}
        for key, value in exports.items():
            if isinstance(value, dict):
                # one level of conditions, e.g. {"import": "./src/index.ts"}
                rewritten[key] = {k: _convert_value(v) for k, v in value.items()}
            else:
                rewritten[key] = _convert_value(value)
        return rewritten

    return exports


def patch_package_json(package_json_path: Path, name: str) -> bool:
    """package.json 1件に publishConfig.exports を追加.

    Args:
        package_json_path: 対象 package.json
        name: ワークスペース名（ログ用）

    Returns:
        ファイルを書き換えた場合 True
    """
    package_json = json.loads(package_json_path.read_text(encoding="utf-8"))

    publish_config = package_json.get("publishConfig")
    if isinstance(publish_config, dict) and publish_config.get("exports"):
        logger.info(f"publishConfig.exports already present for {name}; skipping.")
        return False

    exports = package_json.get("exports")
    rewritten = rewrite_exports_field(exports)
    if rewritten == exports:
        logger.warning(f"No src-based exports found for {name}; leaving package.json unchanged.")
        return False

    package_json["publishConfig"] = {
        **(publish_config if isinstance(publish_config, dict) else {}),
        "exports": rewritten,
    }
    package_json_path.write_text(json.dumps(package_json, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info(f"Added publishConfig.exports for {name}")
    return True


def patch_publish_config(checkout_dir: Path, workspaces: Iterable[Workspace]) -> list[str]:
    section("Patching publish configuration")
    patched: list[str] = []
    for ws in workspaces:
        if patch_package_json(checkout_dir / ws.location / "package.json", ws.name):
            patched.append(ws.name)
    return patched
