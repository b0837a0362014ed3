"""Tests for the client manifest model and loaders."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from pagemeta.config.loader import ManifestSettings
from pagemeta.errors import ManifestMalformed
from pagemeta.hints import AssetManifest, ManifestLoader, StaticManifest


def _write_manifest(path, payload) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


class MockClientCM:
    """Stand-in for ``httpx.AsyncClient`` returning queued responses or raising errors."""

    def __init__(self, outcomes: list) -> None:
        self.outcomes = outcomes
        self.calls = 0

    async def __aenter__(self):
        client = MagicMock()

        async def get(url):
            self.calls += 1
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        client.get = get
        return client

    async def __aexit__(self, *args):
        pass


def _response(status_code: int, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = json.dumps(payload) if payload is not None else ""
    return response


def _url_loader(**overrides) -> ManifestLoader:
    options = {
        "url": "https://cdn.example.com/client-manifest.json",
        "max_retries": 3,
        "backoff_min_seconds": 0.0,
        "backoff_max_seconds": 0.0,
    }
    options.update(overrides)
    return ManifestLoader(**options)


def test_from_mapping_ignores_extra_bundler_keys():
    manifest = AssetManifest.from_mapping(
        {
            "publicPath": "/static/",
            "all": ["app.js", "app.css"],
            "initial": ["app.js", 42, ""],
            "async": ["page.js"],
            "modules": {"abc": [0]},
        }
    )

    assert manifest == AssetManifest(
        public_path="/static/", initial=("app.js",), async_files=("page.js",)
    )


@pytest.mark.parametrize("payload", [[], "manifest", None])
def test_from_mapping_rejects_non_objects(payload):
    with pytest.raises(ManifestMalformed, match="JSON object"):
        AssetManifest.from_mapping(payload)


@pytest.mark.asyncio
async def test_static_manifest_returns_instance():
    manifest = AssetManifest(initial=("app.js",))

    assert await StaticManifest(manifest).load() is manifest
    assert await StaticManifest().load() is None


@pytest.mark.asyncio
async def test_unconfigured_loader_returns_none():
    loader = ManifestLoader()

    assert loader.configured is False
    assert await loader.load() is None


@pytest.mark.asyncio
async def test_loader_reads_file_once(tmp_path):
    path = tmp_path / "client-manifest.json"
    _write_manifest(path, {"initial": ["app.js"], "async": ["chunk.js"]})
    loader = ManifestLoader(path=path)

    first, second = await asyncio.gather(loader.load(), loader.load())

    assert first is second
    assert first.initial == ("app.js",)

    path.unlink()
    assert await loader.load() is first


@pytest.mark.asyncio
async def test_loader_missing_file_raises_malformed(tmp_path):
    loader = ManifestLoader(path=tmp_path / "absent.json")

    with pytest.raises(ManifestMalformed, match="Unable to read"):
        await loader.load()


@pytest.mark.asyncio
async def test_loader_invalid_json_raises_malformed(tmp_path):
    path = tmp_path / "client-manifest.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ManifestMalformed, match="not valid JSON"):
        await ManifestLoader(path=path).load()


@pytest.mark.asyncio
async def test_loader_failure_is_not_remembered(tmp_path):
    path = tmp_path / "client-manifest.json"
    loader = ManifestLoader(path=path)

    with pytest.raises(ManifestMalformed):
        await loader.load()

    _write_manifest(path, {"initial": ["app.js"]})
    manifest = await loader.load()
    assert manifest is not None
    assert manifest.initial == ("app.js",)


@pytest.mark.asyncio
async def test_loader_fetches_url():
    client = MockClientCM([_response(200, {"initial": ["app.js"], "publicPath": "/cdn/"})])

    with patch("httpx.AsyncClient", return_value=client):
        manifest = await _url_loader().load()

    assert manifest == AssetManifest(public_path="/cdn/", initial=("app.js",))
    assert client.calls == 1


@pytest.mark.asyncio
async def test_loader_retries_transient_failures():
    client = MockClientCM(
        [
            httpx.ConnectError("refused"),
            _response(503),
            _response(200, {"initial": ["app.js"]}),
        ]
    )

    with patch("httpx.AsyncClient", return_value=client):
        manifest = await _url_loader().load()

    assert manifest is not None
    assert manifest.initial == ("app.js",)
    assert client.calls == 3


@pytest.mark.asyncio
async def test_loader_gives_up_after_retries():
    client = MockClientCM([_response(502), _response(502)])

    with patch("httpx.AsyncClient", return_value=client):
        with pytest.raises(ManifestMalformed, match="after 2 attempt"):
            await _url_loader(max_retries=2).load()

    assert client.calls == 2


@pytest.mark.asyncio
async def test_loader_does_not_retry_client_errors():
    client = MockClientCM([_response(404), _response(200, {"initial": ["app.js"]})])

    with patch("httpx.AsyncClient", return_value=client):
        with pytest.raises(ManifestMalformed, match="HTTP 404"):
            await _url_loader().load()

    assert client.calls == 1


def test_loader_from_settings(tmp_path):
    settings = ManifestSettings(path=tmp_path / "manifest.json", timeout_seconds=2.5, max_retries=1)

    loader = ManifestLoader.from_settings(settings)

    assert loader.path == tmp_path / "manifest.json"
    assert loader.url is None
    assert loader.timeout == 2.5
    assert loader.max_retries == 1


def test_loader_rejects_path_and_url(tmp_path):
    with pytest.raises(ValueError, match="either 'path' or 'url'"):
        ManifestLoader(path=tmp_path / "m.json", url="https://cdn.example.com/m.json")
