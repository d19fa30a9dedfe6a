"""Shared fakes for the external tools (git, corepack, yarn, diff) and the GitHub API."""

from __future__ import annotations

import io
import json
import re
import subprocess
import tarfile
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

DEFAULT_WORKSPACES = [
    {"location": ".", "name": "@affine/monorepo"},
    {"location": "blocksuite/affine/all", "name": "@blocksuite/affine"},
    {"location": "blocksuite/framework/std", "name": "@blocksuite/std"},
    {"location": "blocksuite/playground", "name": "@blocksuite/playground"},
    {"location": "blocksuite/tests-legacy/e2e", "name": "@blocksuite/e2e"},
    {"location": "packages/frontend/core", "name": "@affine/core"},
]


def make_tarball(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


class FakeTools:
    """Stands in for subprocess.run; records every command it receives."""

    def __init__(self, workspaces: list[dict] | None = None) -> None:
        self.workspaces = DEFAULT_WORKSPACES if workspaces is None else workspaces
        self.calls: list[list[str]] = []
        self.envs: list[dict | None] = []
        self.remote_url: str | None = None
        self.fetched_ref: str | None = None
        self.dirty = ""
        self.diff_returncode = 0
        self.root_package_json: dict = {"name": "@affine/monorepo", "packageManager": "yarn@4.9.1"}

    def __call__(self, cmd, cwd=None, env=None, check=False, capture_output=False, text=False):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.envs.append(env)
        returncode, stdout = self._dispatch(cmd, cwd)
        if check and returncode != 0:
            raise subprocess.CalledProcessError(returncode, cmd, stdout)
        return subprocess.CompletedProcess(cmd, returncode, stdout if capture_output else None, "")

    def commands(self, prefix: list[str]) -> list[list[str]]:
        return [c for c in self.calls if c[: len(prefix)] == prefix]

    def _dispatch(self, cmd: list[str], cwd) -> tuple[int, str]:
        if cmd[0] == "git":
            return self._git(cmd, cwd)
        if cmd[0] == "corepack":
            return 0, ""
        if cmd[:3] == ["yarn", "workspaces", "list"]:
            return 0, "".join(json.dumps(ws) + "\n" for ws in self.workspaces)
        if cmd[:2] == ["yarn", "install"]:
            return 0, ""
        if cmd[:2] == ["yarn", "exec"] and "foreach" in cmd:
            return 0, ""
        if cmd[:2] == ["yarn", "exec"] and "pack" in cmd:
            name = cmd[cmd.index("workspace") + 1]
            out = Path(cmd[cmd.index("--out") + 1])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(make_tarball({"package/package.json": json.dumps({"name": name}).encode()}))
            return 0, ""
        if cmd[0] == "diff":
            return self.diff_returncode, ""
        raise AssertionError(f"unexpected command: {cmd}")

    def _git(self, cmd: list[str], cwd) -> tuple[int, str]:
        if cmd[1] == "-C":
            repo, args = Path(cmd[2]), cmd[3:]
        else:
            repo, args = Path(cwd), cmd[1:]

        if args == ["init"]:
            (repo / ".git").mkdir(parents=True, exist_ok=True)
            return 0, ""
        if args[:2] in (["remote", "add"], ["remote", "set-url"]):
            self.remote_url = args[3]
            return 0, ""
        if args[:2] == ["remote", "get-url"]:
            return (0, f"{self.remote_url}\n") if self.remote_url else (2, "")
        if args[0] == "fetch":
            self.fetched_ref = args[-1]
            return 0, ""
        if args[0] == "checkout":
            self._materialize(repo)
            return 0, ""
        if args == ["rev-parse", "HEAD"]:
            return 0, "0123456789abcdef0123\n"
        if args == ["status", "--porcelain"]:
            return 0, self.dirty
        raise AssertionError(f"unexpected git command: {cmd}")

    def _materialize(self, repo: Path) -> None:
        (repo / "package.json").write_text(json.dumps(self.root_package_json), encoding="utf-8")
        for ws in self.workspaces:
            if ws["location"] == ".":
                continue
            pkg_dir = repo / ws["location"]
            pkg_dir.mkdir(parents=True, exist_ok=True)
            package_json = {"name": ws["name"], "exports": {".": "./src/index.ts"}}
            (pkg_dir / "package.json").write_text(json.dumps(package_json), encoding="utf-8")


@pytest.fixture
def fake_tools():
    tools = FakeTools()
    with patch("blocksuite_packager.process.subprocess.run", side_effect=tools):
        yield tools


class FakeGitHub:
    """In-memory releases API served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.releases: dict[int, dict] = {}
        self.next_id = 1
        self.requests: list[tuple[str, str]] = []
        self.deleted: list[str] = []
        self.uploaded: list[tuple[str, str, str, int]] = []
        self.lookup_status: int | None = None

    def add_release(self, tag: str, asset_names: list[str] = ()) -> dict:
        release = self._new_release(tag, f"Blocksuite {tag}")
        for name in asset_names:
            self._add_asset(release, name, 1)
        return release

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def asset_names(self, release_id: int) -> list[str]:
        return [a["name"] for a in self.releases[release_id]["assets"]]

    def _new_release(self, tag: str, name: str) -> dict:
        release_id = self.next_id
        self.next_id += 1
        release = {
            "id": release_id,
            "tag_name": tag,
            "name": name,
            "draft": False,
            "prerelease": False,
            "upload_url": f"https://uploads.github.com/repos/o/r/releases/{release_id}/assets{{?name,label}}",
            "assets": [],
        }
        self.releases[release_id] = release
        return release

    def _add_asset(self, release: dict, name: str, size: int) -> dict:
        asset = {"id": release["id"] * 1000 + self.next_id, "name": name, "size": size}
        self.next_id += 1
        release["assets"].append(asset)
        return asset

    def handle(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.requests.append((method, path))

        if m := re.fullmatch(r"/repos/o/r/releases/tags/(.+)", path):
            if self.lookup_status is not None:
                return httpx.Response(self.lookup_status, json={"message": "boom"})
            for release in self.releases.values():
                if release["tag_name"] == m.group(1):
                    return httpx.Response(200, json=release)
            return httpx.Response(404, json={"message": "Not Found"})

        if method == "POST" and path == "/repos/o/r/releases":
            body = json.loads(request.content)
            release = self._new_release(body["tag_name"], body["name"])
            release["draft"] = body["draft"]
            release["prerelease"] = body["prerelease"]
            return httpx.Response(201, json=release)

        if method == "GET" and (m := re.fullmatch(r"/repos/o/r/releases/(\d+)", path)):
            return httpx.Response(200, json=self.releases[int(m.group(1))])

        if method == "DELETE" and (m := re.fullmatch(r"/repos/o/r/releases/assets/(\d+)", path)):
            asset_id = int(m.group(1))
            for release in self.releases.values():
                for asset in release["assets"]:
                    if asset["id"] == asset_id:
                        release["assets"].remove(asset)
                        self.deleted.append(asset["name"])
                        return httpx.Response(204)
            return httpx.Response(404)

        if method == "POST" and (m := re.fullmatch(r"/repos/o/r/releases/(\d+)/assets", path)):
            release = self.releases[int(m.group(1))]
            name = request.url.params["name"]
            if name in [a["name"] for a in release["assets"]]:
                return httpx.Response(422, json={"message": "already_exists"})
            size = len(request.content)
            self.uploaded.append((name, request.headers["content-type"], request.headers["content-length"], size))
            return httpx.Response(201, json=self._add_asset(release, name, size))

        return httpx.Response(500, json={"message": f"unhandled {method} {path}"})


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def tarball_factory():
    return make_tarball
