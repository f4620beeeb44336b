#!/usr/bin/env python3
"""
更新器 latest.json 发布脚本

功能：
1. 从环境变量获取版本号、release、平台信息和 GITHUB_TOKEN
2. 下载 release 上已有的 latest.json（如果存在），保留其他平台条目
3. 根据本次构建产物找到签名文件和安装包下载地址
4. 合并当前平台条目，删除旧的 latest.json 并重新上传
"""

import os
import sys
from pathlib import Path

from github_release import (
    ConfigError,
    delete_asset,
    download_asset,
    list_release_assets,
    load_config,
    upload_assets,
)
from updater_manifest import (
    MANIFEST_FILENAME,
    Artifact,
    ManifestParseError,
    PlatformEntry,
    TargetInfo,
    VersionManifest,
    load_platforms,
    match_assets,
    merge_platforms,
    platform_key,
    read_signature,
    utc_now_iso,
    write_manifest,
)


def fetch_manifest(config, assets):
    """返回 (platforms, 已有的 latest.json asset)"""
    asset = next((a for a in assets if a.name == MANIFEST_FILENAME), None)
    if asset is None:
        return {}, None

    print(f"下载已有的 {MANIFEST_FILENAME} (asset {asset.id})...")
    raw = download_asset(config, asset.id)
    return load_platforms(raw), asset


def publish_manifest(config, release_id, manifest, existing_asset, output_path):
    """替换 release 上的 latest.json"""
    # GitHub 不支持按名称覆盖 asset，先删除旧的
    if existing_asset is not None:
        print(f"删除旧的 {existing_asset.name} (asset {existing_asset.id})...")
        delete_asset(config, existing_asset.id)

    write_manifest(manifest, output_path)

    print(f"Uploading {output_path}...")
    return upload_assets(config, release_id, [Artifact(path=str(output_path), arch="")])


def upload_version_json(
    config,
    version,
    notes,
    tag_name,
    release_id,
    artifacts,
    target_info,
    output_path,
    pub_date=None,
):
    """
    合并当前平台并重新发布 latest.json

    缺少签名或安装包时只打印警告，不做任何修改，返回 None。
    """
    assets = list_release_assets(config, release_id)
    platforms, existing_asset = fetch_manifest(config, assets)

    match = match_assets(assets, artifacts, tag_name)
    missing = match.missing()
    if missing:
        print(f"⚠️  警告: {missing} not found for the updater JSON. Skipping upload...")
        return None

    arch = target_info.arch or match.signature_artifact.arch
    key = platform_key(target_info.platform, arch)
    entry = PlatformEntry(
        signature=read_signature(match.signature_artifact),
        url=match.download_url,
    )
    print(f"  平台: {key}")
    print(f"  URL: {entry.url}")

    manifest = VersionManifest(
        version=version,
        notes=notes,
        pub_date=pub_date or utc_now_iso(),
        platforms=merge_platforms(platforms, key, entry),
    )
    publish_manifest(config, release_id, manifest, existing_asset, output_path)
    return manifest


def collect_artifacts(dist_dir, arch):
    """dist 目录下除 latest.json 以外的文件都视为本次构建产物"""
    return [
        Artifact(path=str(f), arch=arch)
        for f in sorted(dist_dir.iterdir())
        if f.is_file() and f.name != MANIFEST_FILENAME
    ]


def main():
    # 先校验配置，缺少 token 时不做任何网络请求
    try:
        config = load_config(repo=os.getenv("REPO", ""))
    except ConfigError as e:
        print(f"❌ 错误: {e}")
        sys.exit(1)

    version = os.getenv("VERSION")
    release_id = os.getenv("RELEASE_ID")
    platform = os.getenv("PLATFORM")
    if not version or not release_id or not platform:
        print("❌ 错误: 缺少必要的环境变量 VERSION、RELEASE_ID 或 PLATFORM")
        sys.exit(1)
    if not release_id.isdigit():
        print(f"❌ 错误: RELEASE_ID 必须是数字: {release_id}")
        sys.exit(1)

    dist_dir = Path(os.getenv("DIST_DIR", "dist"))
    if not dist_dir.exists():
        print(f"❌ 错误: {dist_dir} 目录不存在")
        sys.exit(1)

    arch = os.getenv("ARCH", "")
    artifacts = collect_artifacts(dist_dir, arch)
    print(f"发布 {MANIFEST_FILENAME}: {version} ({config.repo_path}, release {release_id})")
    print(f"找到 {len(artifacts)} 个构建产物")

    try:
        manifest = upload_version_json(
            config,
            version=version,
            notes=os.getenv("RELEASE_NOTES", ""),
            tag_name=os.getenv("TAG_NAME", ""),
            release_id=int(release_id),
            artifacts=artifacts,
            target_info=TargetInfo(platform=platform, arch=os.getenv("TARGET_ARCH", "")),
            output_path=dist_dir / MANIFEST_FILENAME,
        )
    except ManifestParseError as e:
        print(f"❌ 已有的 {MANIFEST_FILENAME} 无法解析: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"❌ 发布 {MANIFEST_FILENAME} 失败: {e}")
        sys.exit(1)

    if manifest is not None:
        print(f"\n✅ {MANIFEST_FILENAME} 已更新，平台数: {len(manifest.platforms)}")


if __name__ == "__main__":
    main()
