"""blocksuite_packager: BlockSuite ワークスペースの tarball 化とリリース公開.

ソース取得、yarn によるビルド/pack、GitHub リリースへのアセット反映、
npm 公開物との比較を提供する。
"""

from blocksuite_packager.checkout import assert_clean_checkout, ensure_checkout
from blocksuite_packager.config import BuildRequest, CompareRequest, ReleaseRequest, load_config
from blocksuite_packager.models import ArchiveResult, ReleaseTarget, Workspace, archive_filename
from blocksuite_packager.pipeline import build_packages, release_packages
from blocksuite_packager.publisher import ensure_release, upload_release_assets

__version__ = "0.1.0"

__all__ = [
    # config
    "load_config",
    "BuildRequest",
    "ReleaseRequest",
    "CompareRequest",
    # models
    "Workspace",
    "ArchiveResult",
    "ReleaseTarget",
    "archive_filename",
    # checkout
    "ensure_checkout",
    "assert_clean_checkout",
    # pipeline
    "build_packages",
    "release_packages",
    # publisher
    "ensure_release",
    "upload_release_assets",
]
