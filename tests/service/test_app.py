"""Tests for the development server app."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from assetflow.service import LiveReloadServer, ReloadHub, create_app
from assetflow.service.app import CLIENT_SCRIPT_PATH, LIVERELOAD_PATH, inject_client_script


@pytest.fixture
def site(tmp_path: Path) -> Path:
    root = tmp_path / "dist"
    (root / "css").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "index.html").write_text("<html><body><h1>Home</h1></body></html>", encoding="utf-8")
    (root / "docs" / "index.html").write_text("<p>docs</p>", encoding="utf-8")
    (root / "css" / "main.css").write_text("body{margin:0}", encoding="utf-8")
    return root


def test_inject_before_last_closing_body() -> None:
    html = "<body><pre></body></pre></BODY >"

    injected = inject_client_script(html)

    assert injected == f'<body><pre></body></pre><script src="{CLIENT_SCRIPT_PATH}"></script></BODY >'


def test_inject_appends_without_body() -> None:
    assert inject_client_script("<p>x</p>").endswith(f'<script src="{CLIENT_SCRIPT_PATH}"></script>')


def test_health_reports_clients_and_version(site: Path) -> None:
    hub = ReloadHub()
    client = TestClient(create_app(site, hub))

    hub.notify()
    response = client.get("/__assetflow/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "clients": 0, "version": 1}


def test_html_is_served_with_reload_script(site: Path) -> None:
    client = TestClient(create_app(site))

    root = client.get("/")
    nested = client.get("/docs/")

    assert root.status_code == 200
    assert f'<script src="{CLIENT_SCRIPT_PATH}"></script></body>' in root.text
    assert root.headers["cache-control"] == "no-store"
    assert nested.text.startswith("<p>docs</p><script")


def test_assets_are_served_unchanged(site: Path) -> None:
    client = TestClient(create_app(site))

    response = client.get("/css/main.css")

    assert response.status_code == 200
    assert response.text == "body{margin:0}"
    assert response.headers["cache-control"] == "no-store"


def test_missing_file_is_404(site: Path) -> None:
    client = TestClient(create_app(site))

    assert client.get("/js/bundle.js").status_code == 404


def test_paths_escaping_the_root_are_404(site: Path, tmp_path: Path) -> None:
    outside = tmp_path / "private"
    outside.mkdir()
    (outside / "secret.txt").write_text("secret", encoding="utf-8")
    (site / "escape").symlink_to(outside, target_is_directory=True)
    client = TestClient(create_app(site))

    assert client.get("/escape/secret.txt").status_code == 404


def test_client_script_points_at_livereload_socket(site: Path) -> None:
    client = TestClient(create_app(site))

    response = client.get(CLIENT_SCRIPT_PATH)

    assert response.status_code == 200
    assert "javascript" in response.headers["content-type"]
    assert LIVERELOAD_PATH in response.text
    assert "location.reload()" in response.text


def test_websocket_receives_reload_on_notify(site: Path) -> None:
    hub = ReloadHub()
    client = TestClient(create_app(site, hub))

    with client.websocket_connect(LIVERELOAD_PATH) as websocket:
        assert client.get("/__assetflow/health").json()["clients"] == 1
        hub.notify()
        assert websocket.receive_text() == "reload"
        hub.notify()
        assert websocket.receive_text() == "reload"

    assert hub.version == 2


def test_server_notify_bumps_hub_version() -> None:
    hub = ReloadHub()
    server = LiveReloadServer("127.0.0.1", 0, hub=hub)

    server.notify()

    assert hub.version == 1
    assert server.url == "http://127.0.0.1:0/"
