#!/usr/bin/env python3
"""
GitHub Release asset 接口封装

功能：
1. 从环境变量构造配置（只在入口处读取一次）
2. 列出 release 的 asset（分页）
3. 下载 / 删除指定 asset
4. 上传本地文件为 release asset
"""

import os
from dataclasses import dataclass

import requests

from updater_manifest import AssetRef, get_asset_name, github_asset_name

API_URL = "https://api.github.com"
UPLOADS_URL = "https://uploads.github.com"
PER_PAGE = 50


class ConfigError(RuntimeError):
    """缺少必要配置"""


@dataclass(frozen=True)
class ReleaseConfig:
    token: str
    owner: str
    repo: str
    api_url: str = API_URL
    uploads_url: str = UPLOADS_URL

    @property
    def repo_path(self):
        return f"{self.owner}/{self.repo}"


def load_config(env=None, repo=""):
    """
    从环境变量构造 ReleaseConfig

    repo 可以是 "owner/name" 或只有 "name"（owner 取自 GITHUB_REPOSITORY）。
    """
    if env is None:
        env = os.environ

    token = env.get("GITHUB_TOKEN")
    if not token:
        raise ConfigError("GITHUB_TOKEN is required")

    default_owner, _, default_repo = env.get("GITHUB_REPOSITORY", "").partition("/")
    if "/" in repo:
        owner, _, name = repo.partition("/")
    else:
        owner, name = default_owner, repo or default_repo
    if not owner or not name:
        raise ConfigError("缺少仓库信息: 请设置 GITHUB_REPOSITORY 或传入 owner/repo")

    return ReleaseConfig(
        token=token,
        owner=owner,
        repo=name,
        api_url=env.get("GITHUB_API_URL", API_URL).rstrip("/"),
        uploads_url=env.get("GITHUB_UPLOADS_URL", UPLOADS_URL).rstrip("/"),
    )


def _headers(config, accept="application/vnd.github+json"):
    return {
        "Authorization": f"Bearer {config.token}",
        "Accept": accept,
        "X-GitHub-Api-Version": "2022-11-28",
    }


def list_release_assets(config, release_id, per_page=PER_PAGE):
    """列出 release 的全部 asset"""
    url = f"{config.api_url}/repos/{config.repo_path}/releases/{release_id}/assets"
    assets = []
    page = 1
    while True:
        response = requests.get(
            url,
            params={"per_page": per_page, "page": page},
            headers=_headers(config),
        )
        response.raise_for_status()

        data = response.json()
        assets.extend(AssetRef.from_api(item) for item in data)
        if len(data) < per_page:
            return assets
        page += 1


def download_asset(config, asset_id):
    """以 octet-stream 下载 asset 原始内容"""
    url = f"{config.api_url}/repos/{config.repo_path}/releases/assets/{asset_id}"
    response = requests.get(url, headers=_headers(config, accept="application/octet-stream"))
    response.raise_for_status()
    return response.content


def delete_asset(config, asset_id):
    url = f"{config.api_url}/repos/{config.repo_path}/releases/assets/{asset_id}"
    response = requests.delete(url, headers=_headers(config))
    response.raise_for_status()


def upload_assets(config, release_id, artifacts):
    """上传本地文件，asset 名称由 get_asset_name 决定"""
    url = f"{config.uploads_url}/repos/{config.repo_path}/releases/{release_id}/assets"
    uploaded = []
    for artifact in artifacts:
        name = github_asset_name(get_asset_name(artifact.path, artifact.arch))
        headers = _headers(config)
        headers["Content-Type"] = "application/octet-stream"
        headers["Content-Length"] = str(os.path.getsize(artifact.path))

        with open(artifact.path, "rb") as f:
            response = requests.post(url, params={"name": name}, headers=headers, data=f)
        response.raise_for_status()

        uploaded.append(AssetRef.from_api(response.json()))
    return uploaded
