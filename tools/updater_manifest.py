#!/usr/bin/env python3
"""
更新器 latest.json 的数据结构与合并逻辑

功能：
1. 规范化平台 / 架构名称，生成稳定的平台 key
2. 从本次构建产物中找出签名文件与安装包下载地址
3. 解析已发布的 manifest，只保留 platforms
4. 合并新平台条目，不影响其他平台
"""

import json
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

MANIFEST_FILENAME = "latest.json"
SIGNATURE_SUFFIX = ".sig"
BUNDLE_SUFFIXES = (".tar.gz", ".zip")

ARCH_ALIASES = {
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "x64": "x86_64",
    "x86": "i686",
    "i386": "i686",
    "arm": "armv7",
    "arm64": "aarch64",
}

# 多段扩展名优先匹配
_MULTI_EXTENSIONS = (".app.tar.gz.sig", ".app.tar.gz", ".tar.gz.sig", ".tar.gz", ".zip.sig")
_MACOS_BUNDLE_EXTENSIONS = (".app.tar.gz", ".app.tar.gz.sig", ".dmg")

_UNTAGGED_RE = re.compile(r"/download/(untagged-[^/]+)/")


class ManifestParseError(ValueError):
    """已发布的 manifest 无法解析"""


@dataclass
class Artifact:
    path: str
    arch: str = ""


@dataclass
class TargetInfo:
    platform: str
    arch: str = ""


@dataclass
class AssetRef:
    id: int
    name: str
    browser_download_url: str = ""

    @classmethod
    def from_api(cls, data):
        return cls(
            id=int(data["id"]),
            name=data["name"],
            browser_download_url=data.get("browser_download_url", ""),
        )


@dataclass
class PlatformEntry:
    signature: str
    url: str
    # 其他字段（例如 with_elevated_task）原样保留
    extra: dict = field(default_factory=dict)

    def to_dict(self):
        data = {"signature": self.signature, "url": self.url}
        data.update(self.extra)
        return data


@dataclass
class VersionManifest:
    version: str
    notes: str = ""
    pub_date: str = ""
    platforms: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "version": self.version,
            "notes": self.notes,
            "pub_date": self.pub_date,
            "platforms": {key: entry.to_dict() for key, entry in self.platforms.items()},
        }

    def to_json(self):
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


@dataclass
class AssetMatch:
    download_url: Optional[str] = None
    signature_artifact: Optional[Artifact] = None

    def missing(self):
        """返回缺失部分的描述，全部找到时返回 None"""
        if self.download_url and self.signature_artifact:
            return None
        if self.download_url:
            return "Signature"
        if self.signature_artifact:
            return "Asset"
        return "Asset and signature"


def utc_now_iso():
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_arch(arch):
    return ARCH_ALIASES.get(arch, arch)


def normalize(platform, arch):
    """返回 (os, arch)，未知名称原样保留"""
    os_name = "darwin" if platform == "macos" else platform
    return os_name, normalize_arch(arch)


def platform_key(platform, arch):
    os_name, arch = normalize(platform, arch)
    return f"{os_name}-{arch}"


def split_extension(filename):
    for ext in _MULTI_EXTENSIONS:
        if filename.endswith(ext):
            return filename[: -len(ext)], ext
    stem, ext = os.path.splitext(filename)
    return stem, ext


def get_asset_name(path, arch=""):
    """
    计算产物上传后的 release asset 名称

    macOS 安装包按架构区分，文件名中插入 _{arch}；其他平台保持原文件名。
    """
    filename = os.path.basename(path)
    if not arch or not filename.endswith(_MACOS_BUNDLE_EXTENSIONS):
        return filename
    stem, ext = split_extension(filename)
    return f"{stem}_{arch}{ext}"


def github_asset_name(name):
    # GitHub 会把 asset 名称中的空格替换成点
    return name.strip().replace(" ", ".")


def rewrite_untagged_url(url, tag_name=""):
    """草稿 release 的 untagged 下载地址在发布后失效，替换成 tag 或 latest"""
    if not url:
        return url
    replacement = f"/download/{tag_name}/" if tag_name else "/latest/download/"
    return _UNTAGGED_RE.sub(replacement, url, count=1)


def find_signature(artifacts):
    for artifact in artifacts:
        if artifact.path.endswith(SIGNATURE_SUFFIX):
            return artifact
    return None


def match_assets(uploaded_assets, artifacts, tag_name=""):
    """在已上传的 asset 中找出本次构建的安装包，并定位签名文件"""
    signature_artifact = find_signature(artifacts)
    expected_names = {github_asset_name(get_asset_name(a.path, a.arch)) for a in artifacts}

    download_url = None
    for asset in uploaded_assets:
        if asset.name in expected_names and asset.name.endswith(BUNDLE_SUFFIXES):
            download_url = asset.browser_download_url
            break

    return AssetMatch(
        download_url=rewrite_untagged_url(download_url, tag_name),
        signature_artifact=signature_artifact,
    )


def merge_platforms(base, key, entry):
    """返回新的 platforms，只设置 key，其余条目保持不变"""
    merged = dict(base)
    merged[key] = entry
    return merged


def parse_platforms(data):
    """校验并提取 platforms，结构不符时抛出 ManifestParseError"""
    if not isinstance(data, dict):
        raise ManifestParseError("manifest 不是 JSON 对象")
    if "platforms" not in data:
        raise ManifestParseError("manifest 缺少 platforms")
    raw = data["platforms"]
    if not isinstance(raw, dict):
        raise ManifestParseError("platforms 必须是对象")

    platforms = {}
    for key, value in raw.items():
        if not isinstance(value, dict):
            raise ManifestParseError(f"平台 {key} 的条目必须是对象")
        signature = value.get("signature")
        url = value.get("url")
        if not isinstance(signature, str) or not isinstance(url, str):
            raise ManifestParseError(f"平台 {key} 缺少 signature 或 url")
        extra = {k: v for k, v in value.items() if k not in ("signature", "url")}
        platforms[key] = PlatformEntry(signature=signature, url=url, extra=extra)
    return platforms


def load_platforms(raw):
    """从 asset 原始字节解析 platforms"""
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestParseError(f"manifest 解析失败: {e}") from e
    return parse_platforms(data)


def read_signature(artifact):
    # newline="" 保留 \r\n，签名内容与文件完全一致
    with open(artifact.path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def write_manifest(manifest, path):
    with open(path, "w", encoding="utf-8") as f:
        f.write(manifest.to_json())
    return path
