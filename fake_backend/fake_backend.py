from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse, RedirectResponse

app = FastAPI()

# headers a real site uses to refuse being framed
FRAME_BUSTING_HEADERS = {
    "X-Frame-Options": "DENY",
    "Content-Security-Policy": "frame-ancestors 'none'; default-src 'self'",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "Permissions-Policy": "geolocation=()",
    "Cache-Control": "no-cache",
    "ETag": '"fake-page-v1"',
}

PAGE = """<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <meta http-equiv="X-Frame-Options" content="DENY">
  <meta http-equiv="Content-Security-Policy" content="frame-ancestors 'none'">
  <title>Fake upstream</title>
  <link rel="stylesheet" href="/static/site.css">
</head>
<body>
  <h1>Fake upstream page</h1>
  <iframe src="/widget.html" sandbox="allow-scripts"></iframe>
  <script>
    fetch('/api/ping').then(function (r) { return r.json(); }).then(console.log);
  </script>
</body>
</html>
"""


def _blob(size: int) -> bytes:
    # deterministic, incompressible enough to exercise streaming
    return bytes((i * 31) % 251 for i in range(size))


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/page.html")
def page():
    return Response(content=PAGE, media_type="text/html; charset=utf-8", headers=FRAME_BUSTING_HEADERS)


@app.get("/fragment.html")
def fragment():
    # no <html>/<head>: base tag and script get prepended
    return Response(content="<p>bare fragment</p>", media_type="text/html")


@app.get("/widget.html")
def widget():
    return Response(content="<html><head></head><body>widget</body></html>", media_type="text/html")


@app.get("/static/site.css")
def css():
    return Response(content="body { font-family: sans-serif; }\n", media_type="text/css")


@app.get("/api/ping")
def ping():
    return JSONResponse(content={"pong": True})


@app.get("/download/blob.bin")
def blob():
    return Response(content=_blob(2_000_000), media_type="application/octet-stream")


@app.get("/moved")
def moved():
    return RedirectResponse(url="/page.html", status_code=302)
