import pytest
import requests

import github_release
from github_release import ReleaseConfig


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=b""):
        self.status_code = status_code
        self._payload = payload
        self.content = content

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeGitHub:
    """内存中的 release asset 存储，替换 requests 的 get / post / delete"""

    def __init__(self):
        self.assets = []
        self.contents = {}
        self.calls = []
        self.fail_upload = False
        self._next_id = 100

    def add_asset(self, name, content=b"", url=None):
        self._next_id += 1
        asset = {
            "id": self._next_id,
            "name": name,
            "browser_download_url": url or f"https://github.com/owner/app/releases/download/v1.0.0/{name}",
        }
        self.assets.append(asset)
        self.contents[asset["id"]] = content
        return asset

    def get(self, url, params=None, headers=None):
        if url.endswith("/assets"):
            self.calls.append(("list", params["page"]))
            start = (params["page"] - 1) * params["per_page"]
            return FakeResponse(payload=self.assets[start:start + params["per_page"]])
        asset_id = int(url.rsplit("/", 1)[1])
        self.calls.append(("download", asset_id, headers["Accept"]))
        if asset_id not in self.contents:
            return FakeResponse(status_code=404)
        return FakeResponse(content=self.contents[asset_id])

    def delete(self, url, headers=None):
        asset_id = int(url.rsplit("/", 1)[1])
        self.calls.append(("delete", asset_id))
        self.assets = [a for a in self.assets if a["id"] != asset_id]
        self.contents.pop(asset_id, None)
        return FakeResponse(status_code=204)

    def post(self, url, params=None, headers=None, data=None):
        self.calls.append(("upload", params["name"]))
        if self.fail_upload:
            return FakeResponse(status_code=502)
        asset = self.add_asset(params["name"], data.read())
        return FakeResponse(status_code=201, payload=asset)

    def asset_named(self, name):
        return [a for a in self.assets if a["name"] == name]

    def side_effects(self):
        return [c for c in self.calls if c[0] in ("delete", "upload")]


@pytest.fixture
def fake_github(monkeypatch):
    fake = FakeGitHub()
    monkeypatch.setattr(github_release.requests, "get", fake.get)
    monkeypatch.setattr(github_release.requests, "post", fake.post)
    monkeypatch.setattr(github_release.requests, "delete", fake.delete)
    return fake


@pytest.fixture
def config():
    return ReleaseConfig(token="test-token", owner="owner", repo="app")
