import pytest
import requests

from github_release import (
    ConfigError,
    delete_asset,
    download_asset,
    list_release_assets,
    load_config,
    upload_assets,
)
from updater_manifest import Artifact


def test_load_config_requires_token():
    with pytest.raises(ConfigError, match="GITHUB_TOKEN is required"):
        load_config({"GITHUB_REPOSITORY": "owner/app"})


def test_load_config_from_env():
    config = load_config({"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY": "owner/app"})

    assert config.token == "t"
    assert config.repo_path == "owner/app"
    assert config.api_url == "https://api.github.com"


def test_load_config_repo_override():
    env = {"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY": "owner/app"}

    assert load_config(env, repo="other").repo_path == "owner/other"
    assert load_config(env, repo="someone/tool").repo_path == "someone/tool"


def test_load_config_requires_repository():
    with pytest.raises(ConfigError):
        load_config({"GITHUB_TOKEN": "t"})


def test_list_release_assets_follows_pages(fake_github, config):
    for i in range(55):
        fake_github.add_asset(f"file-{i}.zip")

    assets = list_release_assets(config, 7)

    assert len(assets) == 55
    assert assets[-1].name == "file-54.zip"
    assert fake_github.calls == [("list", 1), ("list", 2)]


def test_download_asset_requests_octet_stream(fake_github, config):
    asset = fake_github.add_asset("latest.json", b'{"platforms": {}}')

    assert download_asset(config, asset["id"]) == b'{"platforms": {}}'
    assert fake_github.calls == [("download", asset["id"], "application/octet-stream")]


def test_download_missing_asset_raises(fake_github, config):
    with pytest.raises(requests.HTTPError):
        download_asset(config, 999)


def test_delete_asset(fake_github, config):
    asset = fake_github.add_asset("latest.json")

    delete_asset(config, asset["id"])

    assert fake_github.assets == []


def test_upload_assets_uses_asset_name(fake_github, config, tmp_path):
    bundle = tmp_path / "My App.app.tar.gz"
    bundle.write_bytes(b"bundle")

    uploaded = upload_assets(config, 7, [Artifact(str(bundle), "aarch64")])

    assert [a.name for a in uploaded] == ["My.App_aarch64.app.tar.gz"]
    assert fake_github.contents[uploaded[0].id] == b"bundle"


def test_upload_failure_propagates(fake_github, config, tmp_path):
    path = tmp_path / "latest.json"
    path.write_text("{}")
    fake_github.fail_upload = True

    with pytest.raises(requests.HTTPError):
        upload_assets(config, 7, [Artifact(str(path), "")])
