"""HTML rewriting for embedding proxied pages inside the dashboard frame."""

from __future__ import annotations

import html as html_lib
import json
import logging
import re
from string import Template
from typing import Optional
from urllib.parse import urlsplit

logger = logging.getLogger("meterproxy.rewriter")

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

COMPAT_SCRIPT_MARKER = "data-proxy-compat"

_COMPAT_SCRIPT = Template("""<script $marker="1">
(function () {
  if (window.__proxyCompat) { return; }
  var origin = $origin;
  var targetUrl = $target_url;
  var serviceUrl = $service_url;
  var sessionId = $session_id;
  window.__proxyCompat = { origin: origin, targetUrl: targetUrl, serviceUrl: serviceUrl, sessionId: sessionId };

  function resolve(url) {
    if (typeof url === 'string' && !/^[a-z][a-z0-9+.-]*:/i.test(url)) {
      return new URL(url, origin + '/').href;
    }
    return url;
  }

  var nativeFetch = window.fetch;
  if (nativeFetch) {
    window.fetch = function (input, init) {
      return nativeFetch.call(this, resolve(input), init);
    };
  }

  var NativeXHR = window.XMLHttpRequest;
  if (NativeXHR) {
    var nativeOpen = NativeXHR.prototype.open;
    NativeXHR.prototype.open = function (method, url) {
      var args = Array.prototype.slice.call(arguments);
      args[1] = resolve(url);
      return nativeOpen.apply(this, args);
    };
  }
$bridge
  function navigate(url) {
    var absolute = resolve(String(url));
    var next = sessionId
      ? serviceUrl + '/' + encodeURIComponent(sessionId) + '/' + encodeURIComponent(absolute)
      : serviceUrl + '?url=' + encodeURIComponent(absolute);
    window.top.location.href = next;
  }

  try {
    var realLocation = window.location;
    Object.defineProperty(window, 'location', {
      configurable: true,
      get: function () {
        return new Proxy(realLocation, {
          get: function (target, prop) {
            if (prop === 'href') { return targetUrl; }
            if (prop === 'toString') { return function () { return targetUrl; }; }
            if (prop === 'assign' || prop === 'replace') { return navigate; }
            var value = target[prop];
            return typeof value === 'function' ? value.bind(target) : value;
          },
          set: function (target, prop, value) {
            if (prop === 'href') { navigate(value); return true; }
            target[prop] = value;
            return true;
          }
        });
      }
    });
  } catch (err) {
    console.warn('window.location override unavailable:', err);
  }
})();
</script>
""")

_SCRIPT_BRIDGE = """
  window.addEventListener('message', function (event) {
    var data = event.data;
    if (!data || data.type !== 'execute-script' || typeof data.code !== 'string') { return; }
    if (event.source !== window.parent) { return; }
    try {
      (0, eval)(data.code);
    } catch (err) {
      console.error('execute-script failed:', err);
    }
  });
"""


def is_html(content_type: Optional[str]) -> bool:
    ct = (content_type or "").lower()
    return any(t in ct for t in HTML_CONTENT_TYPES)


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    host = parts.netloc.rsplit("@", 1)[-1]  # never leak userinfo into the page
    return f"{parts.scheme}://{host}"


def _js(value: Optional[str]) -> str:
    # a literal "</script>" inside the string would close the tag
    return json.dumps(value or "").replace("</", "<\\/")


class ContentRewriter:
    """Patches HTML so a proxied page keeps working inside an iframe.

    Rewriting is idempotent: running it on its own output changes nothing.
    """

    _FRAME_BLOCKING_META = re.compile(
        r"<meta\b[^>]*\bhttp-equiv\s*=\s*[\"']?\s*(?:x-frame-options|content-security-policy)\b[^>]*>",
        re.IGNORECASE,
    )
    _BASE_TAG = re.compile(r"<base\b", re.IGNORECASE)
    _HEAD_OPEN = re.compile(r"<head\b[^>]*>", re.IGNORECASE)
    _HEAD_CLOSE = re.compile(r"</head\s*>", re.IGNORECASE)
    _BODY_OPEN = re.compile(r"<body\b[^>]*>", re.IGNORECASE)
    _IFRAME_TAG = re.compile(r"<iframe\b[^>]*>", re.IGNORECASE)
    _LEADING_BASE = re.compile(r"^\s*<base\b[^>]*>", re.IGNORECASE)
    # one attribute per match, so quoted values are consumed whole
    _TAG_ATTR = re.compile(r"""(\s+)([^\s=>/"']+)(\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?""")

    def __init__(self, proxy_service_url: str, script_bridge: bool = True):
        self.proxy_service_url = proxy_service_url.rstrip("/")
        self.script_bridge = script_bridge

    def rewrite(self, html: str, target_url: str, session_id: Optional[str] = None) -> str:
        origin = origin_of(target_url)

        html = self._FRAME_BLOCKING_META.sub("", html)
        html = self._inject_base(html, origin)
        html = self._IFRAME_TAG.sub(lambda m: self._strip_sandbox(m.group(0)), html)
        html = self._inject_script(html, origin, target_url, session_id)
        return html

    def _inject_base(self, html: str, origin: str) -> str:
        if self._BASE_TAG.search(html):
            return html
        base_tag = f'<base href="{html_lib.escape(origin, quote=True)}/">'
        head = self._HEAD_OPEN.search(html)
        if head:
            return f"{html[:head.end()]}\n    {base_tag}{html[head.end():]}"
        return f"{base_tag}\n{html}"

    def _strip_sandbox(self, tag: str) -> str:
        return self._TAG_ATTR.sub(
            lambda m: "" if m.group(2).lower() == "sandbox" else m.group(0),
            tag,
        )

    def _inject_script(self, html: str, origin: str, target_url: str, session_id: Optional[str]) -> str:
        if COMPAT_SCRIPT_MARKER in html:
            return html
        script = _COMPAT_SCRIPT.substitute(
            marker=COMPAT_SCRIPT_MARKER,
            origin=_js(origin),
            target_url=_js(target_url),
            service_url=_js(self.proxy_service_url),
            session_id=_js(session_id),
            bridge=_SCRIPT_BRIDGE if self.script_bridge else "",
        )
        anchor = self._HEAD_CLOSE.search(html) or self._BODY_OPEN.search(html)
        if anchor:
            return f"{html[:anchor.start()]}{script}{html[anchor.start():]}"
        # bare fragment: after a leading <base>, else first
        lead = self._LEADING_BASE.match(html)
        if lead:
            return f"{html[:lead.end()]}\n{script}{html[lead.end():]}"
        return f"{script}\n{html}"
