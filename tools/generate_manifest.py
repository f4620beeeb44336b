#!/usr/bin/env python3
"""
本地生成 latest.json 工具（用于测试，不访问 GitHub）

用法：
  VERSION=v0.0.2 PLATFORM=macos ARCH=arm64 python3 tools/generate_manifest.py

dist 目录中已有的 latest.json 会被读取，当前平台条目合并进去。
"""

import os
from pathlib import Path

from updater_manifest import (
    MANIFEST_FILENAME,
    AssetRef,
    PlatformEntry,
    VersionManifest,
    get_asset_name,
    github_asset_name,
    load_platforms,
    match_assets,
    merge_platforms,
    platform_key,
    read_signature,
    utc_now_iso,
    write_manifest,
)
from upload_version_json import collect_artifacts


def local_assets(artifacts, base_url):
    """按上传后的名称模拟 release asset，下载地址拼接在 base_url 后面"""
    assets = []
    for i, artifact in enumerate(artifacts, start=1):
        name = github_asset_name(get_asset_name(artifact.path, artifact.arch))
        assets.append(AssetRef(id=i, name=name, browser_download_url=f"{base_url}/{name}"))
    return assets


def generate(dist_dir, version, platform, arch, base_url, notes="", tag_name=""):
    manifest_path = dist_dir / MANIFEST_FILENAME
    platforms = {}
    if manifest_path.exists():
        platforms = load_platforms(manifest_path.read_bytes())

    artifacts = collect_artifacts(dist_dir, arch)
    match = match_assets(local_assets(artifacts, base_url), artifacts, tag_name)
    missing = match.missing()
    if missing:
        print(f"⚠️  警告: {missing} not found for the updater JSON. Skipping...")
        return None

    key = platform_key(platform, arch)
    entry = PlatformEntry(signature=read_signature(match.signature_artifact), url=match.download_url)
    manifest = VersionManifest(
        version=version,
        notes=notes,
        pub_date=utc_now_iso(),
        platforms=merge_platforms(platforms, key, entry),
    )
    write_manifest(manifest, manifest_path)
    return manifest


def main():
    version = os.getenv("VERSION", "v0.0.1")
    platform = os.getenv("PLATFORM", "linux")
    arch = os.getenv("ARCH", "x86_64")
    tag_name = os.getenv("TAG_NAME", version)
    dist_dir = Path(os.getenv("DIST_DIR", "dist"))

    if not dist_dir.exists():
        print(f"❌ {dist_dir} 目录不存在，请先完成构建")
        return

    # 构建 URL（实际发布时以 release asset 的地址为准）
    base_url = os.getenv(
        "BASE_URL",
        f"https://github.com/{os.getenv('GITHUB_REPOSITORY', 'owner/repo')}/releases/download/{tag_name}",
    )

    manifest = generate(
        dist_dir,
        version=version,
        platform=platform,
        arch=arch,
        base_url=base_url,
        notes=os.getenv("RELEASE_NOTES", ""),
        tag_name=tag_name,
    )
    if manifest is None:
        return

    print(f"✅ {MANIFEST_FILENAME} 已生成: {dist_dir / MANIFEST_FILENAME}")
    print(f"版本: {version}")
    print(f"平台数: {len(manifest.platforms)}")


if __name__ == "__main__":
    main()
