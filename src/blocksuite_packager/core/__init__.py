"""パッケージングパイプライン全体で共有する型."""

