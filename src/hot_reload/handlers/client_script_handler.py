"""
Serves the browser-side listener script.
Pages include it with <script src="http://localhost:8080/hot_reload.js"></script>.
"""

from aiohttp import web

from hot_reload.core.config import ListenerConfig
from hot_reload.core.models import RELOAD_SIGNAL

CLIENT_SCRIPT_TEMPLATE = """\
(function () {
  if (window.__hotReload) return;

  var url = "%(url)s";
  var reconnectDelay = %(reconnect_delay_ms)d;
  var state = "disconnected";
  var socket = null;
  var retryTimer = null;
  var stopped = false;

  function connect() {
    if (stopped) return;
    state = "connecting";
    socket = new WebSocket(url);
    socket.onopen = function () {
      state = "connected";
    };
    socket.onmessage = function (event) {
      if (event.data === "%(signal)s") {
        console.log("Received reload command. Reloading...");
        window.location.reload();
      }
    };
    socket.onclose = function () {
      state = "disconnected";
      socket = null;
      if (stopped) return;
      console.log("WebSocket connection closed. Attempting to reconnect...");
      retryTimer = setTimeout(connect, reconnectDelay);
    };
  }

  window.__hotReload = {
    state: function () { return state; },
    stop: function () {
      stopped = true;
      if (retryTimer !== null) clearTimeout(retryTimer);
      if (socket !== null) socket.close();
    }
  };

  connect();
})();
"""


class ClientScriptHandler:
    """HTTP handler for the browser listener script."""

    def __init__(self, listener_config: ListenerConfig):
        self.listener_config = listener_config

    def render(self, url: str) -> str:
        return CLIENT_SCRIPT_TEMPLATE % {
            "url": url,
            "reconnect_delay_ms": self.listener_config.reconnect_delay_ms,
            "signal": RELOAD_SIGNAL,
        }

    async def handle_client_script(self, request: web.Request) -> web.Response:
        scheme = "wss" if request.secure else "ws"
        return web.Response(
            text=self.render(f"{scheme}://{request.host}/"),
            content_type="application/javascript",
            headers={"Cache-Control": "no-cache"}
        )

    def attach_to_app(self, app: web.Application, path: str = "/hot_reload.js"):
        app.router.add_get(path, self.handle_client_script)
