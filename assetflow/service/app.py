"""FastAPI development server: serves the output tree and pushes live-reload signals."""

from __future__ import annotations

import asyncio
import re
import threading
import time
from pathlib import Path
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.responses import FileResponse, HTMLResponse, Response
from pydantic import BaseModel

from ..errors import SetupError
from ..logging import get_logger
from ..paths import is_beneath

LIVERELOAD_PATH = "/__assetflow/livereload"
CLIENT_SCRIPT_PATH = "/__assetflow/livereload.js"
RELOAD_MESSAGE = "reload"

_CLIENT_SCRIPT = """(function () {
  var scheme = location.protocol === "https:" ? "wss:" : "ws:";
  function connect() {
    var socket = new WebSocket(scheme + "//" + location.host + "%s");
    socket.onmessage = function (event) {
      if (event.data === "%s") {
        location.reload();
      }
    };
    socket.onclose = function () {
      setTimeout(connect, 1000);
    };
  }
  connect();
})();
""" % (LIVERELOAD_PATH, RELOAD_MESSAGE)

_SNIPPET = f'<script src="{CLIENT_SCRIPT_PATH}"></script>'
_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)
_NO_STORE = {"Cache-Control": "no-store"}


class HealthResponse(BaseModel):
    status: str
    clients: int
    version: int


class ReloadHub:
    """Fans a reload message out to every connected websocket client.

    `notify` is safe to call from any thread; each client queue is fed through
    the event loop that registered it.
    """

    def __init__(self) -> None:
        self._clients: Dict[asyncio.Queue, asyncio.AbstractEventLoop] = {}
        self._lock = threading.Lock()
        self.version = 0

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def register(self) -> "asyncio.Queue[str]":
        client: "asyncio.Queue[str]" = asyncio.Queue()
        loop = asyncio.get_running_loop()
        with self._lock:
            self._clients[client] = loop
        return client

    def unregister(self, client: "asyncio.Queue[str]") -> None:
        with self._lock:
            self._clients.pop(client, None)

    def notify(self) -> None:
        with self._lock:
            self.version += 1
            targets = list(self._clients.items())
        for client, loop in targets:
            try:
                loop.call_soon_threadsafe(client.put_nowait, RELOAD_MESSAGE)
            except RuntimeError:
                # Loop already closed; the client is gone.
                self.unregister(client)


def inject_client_script(html: str) -> str:
    matches = list(_BODY_CLOSE.finditer(html))
    if not matches:
        return html + _SNIPPET
    index = matches[-1].start()
    return html[:index] + _SNIPPET + html[index:]


def create_app(root: Path, hub: ReloadHub | None = None) -> FastAPI:
    """Create the FastAPI application serving `root` with live reload."""

    hub = hub or ReloadHub()
    served_root = Path(root).resolve()
    app = FastAPI(title="assetflow dev server", version="1.0.0", docs_url=None, redoc_url=None)
    app.state.hub = hub

    @app.get("/__assetflow/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", clients=hub.client_count, version=hub.version)

    @app.get(CLIENT_SCRIPT_PATH)
    async def client_script() -> Response:
        return Response(content=_CLIENT_SCRIPT, media_type="application/javascript", headers=_NO_STORE)

    @app.websocket(LIVERELOAD_PATH)
    async def livereload(websocket: WebSocket) -> None:
        client = hub.register()
        await websocket.accept()
        try:
            while True:
                getter = asyncio.ensure_future(client.get())
                listener = asyncio.ensure_future(websocket.receive())
                done, pending = await asyncio.wait(
                    {getter, listener}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in pending:
                    task.cancel()
                if listener in done and listener.result().get("type") == "websocket.disconnect":
                    break
                if getter in done:
                    await websocket.send_text(getter.result())
        finally:
            hub.unregister(client)

    @app.get("/{requested:path}")
    async def serve(requested: str) -> Response:
        target = (served_root / requested).resolve()
        if not is_beneath(target, served_root):
            raise HTTPException(status_code=404, detail="Not found")
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            raise HTTPException(status_code=404, detail="Not found")
        if target.suffix.lower() in (".html", ".htm"):
            html = target.read_text(encoding="utf-8", errors="replace")
            return HTMLResponse(inject_client_script(html), headers=_NO_STORE)
        return FileResponse(target, headers=_NO_STORE)

    return app


class _ThreadedServer(uvicorn.Server):
    def install_signal_handlers(self) -> None:  # pragma: no cover - runs off the main thread
        # The CLI owns SIGINT/SIGTERM.
        return None


class LiveReloadServer:
    """Runs the dev app under uvicorn in a background thread."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 3000,
        *,
        hub: ReloadHub | None = None,
        startup_timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.hub = hub or ReloadHub()
        self.startup_timeout = startup_timeout
        self.logger = get_logger("service")
        self._server: Optional[_ThreadedServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def start(self, root: Path) -> None:  # pragma: no cover - integration path
        app = create_app(root, self.hub)
        # Levels and handlers for the uvicorn loggers come from configure_logging.
        config = uvicorn.Config(
            app, host=self.host, port=self.port, log_config=None, log_level=None, lifespan="off"
        )
        self._server = _ThreadedServer(config)
        self._thread = threading.Thread(target=self._server.run, name="assetflow-devserver", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + self.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                raise SetupError(f"Dev server failed to start on {self.host}:{self.port}")
            time.sleep(0.05)
        self.logger.info("Serving %s at %s", root, self.url)

    def notify(self) -> None:
        self.hub.notify()

    def stop(self) -> None:  # pragma: no cover - integration path
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None


__all__ = [
    "CLIENT_SCRIPT_PATH",
    "HealthResponse",
    "LIVERELOAD_PATH",
    "LiveReloadServer",
    "ReloadHub",
    "create_app",
    "inject_client_script",
]
