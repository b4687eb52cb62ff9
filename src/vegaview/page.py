"""HTML shell served at ``/``.

A bare page that loads Vega, Vega-Lite and Vega-Embed from a CDN, opens a
WebSocket back to the server and renders every JSON object it receives.
Anything that does not parse as a JSON object (the handshake
acknowledgment, for instance) is logged to the browser console.
"""

from __future__ import annotations

import html

VEGA_VERSION = "5"
VEGA_LITE_VERSION = "5"
VEGA_EMBED_VERSION = "6"

_CDN = "https://cdn.jsdelivr.net/npm"

_PAGE_JS = """\
var vegaviewHost = window.location.hostname || "localhost";
var localSocket = new WebSocket("ws://" + vegaviewHost + ":__PORT__/ws");
function tryParseJSON(jsonString) {
    try {
        var o = JSON.parse(jsonString);
        if (o && typeof o === "object" && !Array.isArray(o)) { return o; }
    } catch (e) { }
    return false;
}
localSocket.onmessage = function (event) {
    var maybeJSON = tryParseJSON(event.data);
    if (maybeJSON) {
        vegaEmbed("#vega-view", maybeJSON).catch(console.error);
    } else {
        console.log(event.data);
    }
};
localSocket.onclose = function () {
    console.log("vegaview: connection to server closed.");
};
console.log("vegaview connected to browser.");
"""


def page_js(port: int) -> str:
    """JavaScript bootstrap that connects back to ``ws://<host>:<port>/ws``."""
    return _PAGE_JS.replace("__PORT__", str(int(port)))


def page(port: int, title: str = "vegaview") -> str:
    """Render the HTML shell for a server bound to ``port``."""
    scripts = "\n".join(
        f'    <script src="{_CDN}/{name}@{version}"></script>'
        for name, version in (
            ("vega", VEGA_VERSION),
            ("vega-lite", VEGA_LITE_VERSION),
            ("vega-embed", VEGA_EMBED_VERSION),
        )
    )
    return f"""<!DOCTYPE html>
<html>
  <head>
    <title>{html.escape(title)}</title>
    <meta charset="UTF-8">
    <meta name="description" content="Vega visualizations pushed from Python">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <link rel="icon" href="/favicon.svg" type="image/svg+xml">
{scripts}
    <script>
{page_js(port)}    </script>
  </head>
  <body>
    <div id="vega-view"></div>
  </body>
</html>
"""
