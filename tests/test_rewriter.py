import pytest

from meterproxy.rewriter import COMPAT_SCRIPT_MARKER, ContentRewriter, is_html, origin_of

SERVICE = "https://proxy.local/proxy-service"
TARGET = "https://example.com/docs/page?x=1"

PAGE = """<!doctype html>
<html>
<HEAD lang="en">
  <meta charset="utf-8">
  <meta http-equiv="X-Frame-Options" content="DENY">
  <meta http-equiv='Content-Security-Policy' content="frame-ancestors 'none'">
  <title>t</title>
</HEAD>
<body>
  <iframe src="/a" sandbox="allow-scripts"></iframe>
  <iframe src="/b" sandbox></iframe>
  <iframe sandbox='allow-forms' src="/c"></iframe>
  <p>hello</p>
</body>
</html>
"""


@pytest.fixture
def rewriter():
    return ContentRewriter(SERVICE)


def test_frame_blocking_meta_tags_removed(rewriter):
    out = rewriter.rewrite(PAGE, TARGET, "sess-1")
    assert "X-Frame-Options" not in out
    assert "frame-ancestors 'none'" not in out
    assert '<meta charset="utf-8">' in out


def test_base_tag_inserted_right_after_head_open(rewriter):
    out = rewriter.rewrite(PAGE, TARGET, "sess-1")
    head = out.index('<HEAD lang="en">')
    base = out.index('<base href="https://example.com/">')
    assert base > head
    assert out[head:base].strip() == '<HEAD lang="en">'


def test_existing_base_tag_is_kept(rewriter):
    html = '<html><head><base href="https://cdn.example.net/"></head><body></body></html>'
    out = rewriter.rewrite(html, TARGET)
    assert out.count("<base") == 1
    assert 'href="https://cdn.example.net/"' in out


def test_base_prepended_when_no_head(rewriter):
    out = rewriter.rewrite("<p>fragment</p>", TARGET)
    assert out.startswith('<base href="https://example.com/">')


def test_sandbox_attributes_removed(rewriter):
    out = rewriter.rewrite(PAGE, TARGET, "sess-1")
    assert "sandbox" not in out
    assert '<iframe src="/a"></iframe>' in out
    assert '<iframe src="/b"></iframe>' in out
    assert '<iframe src="/c">' in out


def test_sandbox_word_inside_other_attributes_kept(rewriter):
    html = '<iframe title="a sandbox demo" data-note=\'sandbox\' src="/x" sandbox></iframe>'
    out = rewriter.rewrite(html, TARGET)
    assert '<iframe title="a sandbox demo" data-note=\'sandbox\' src="/x"></iframe>' in out


def test_sandbox_attribute_name_is_case_insensitive(rewriter):
    out = rewriter.rewrite('<iframe SANDBOX=allow-scripts src=/x></iframe>', TARGET)
    assert '<iframe src=/x></iframe>' in out


def test_sandbox_text_outside_iframes_untouched(rewriter):
    html = "<html><head></head><body><p>sandbox mode</p></body></html>"
    out = rewriter.rewrite(html, TARGET)
    assert "<p>sandbox mode</p>" in out


def test_script_goes_before_head_close(rewriter):
    out = rewriter.rewrite(PAGE, TARGET, "sess-1")
    assert out.count(COMPAT_SCRIPT_MARKER) == 1
    assert out.index(COMPAT_SCRIPT_MARKER) < out.index("</HEAD>")


def test_script_goes_before_body_without_head_close():
    html = "<html><body><p>x</p></body></html>"
    out = ContentRewriter(SERVICE).rewrite(html, TARGET)
    assert out.index(COMPAT_SCRIPT_MARKER) < out.index("<body>")


def test_script_follows_base_in_bare_fragment():
    out = ContentRewriter(SERVICE).rewrite("<p>x</p>", TARGET)
    assert out.startswith('<base href="https://example.com/">')
    assert out.index("<base") < out.index(COMPAT_SCRIPT_MARKER) < out.index("<p>x</p>")


def test_script_prepended_when_fragment_has_own_base_later():
    html = '<p>x</p><base href="https://cdn.example.net/">'
    out = ContentRewriter(SERVICE).rewrite(html, TARGET)
    assert out.index(COMPAT_SCRIPT_MARKER) < out.index("<p>x</p>")


def test_script_carries_page_context(rewriter):
    out = rewriter.rewrite(PAGE, TARGET, "sess-1")
    assert '"https://example.com"' in out
    assert '"https://example.com/docs/page?x=1"' in out
    assert '"https://proxy.local/proxy-service"' in out
    assert '"sess-1"' in out


def test_script_context_cannot_close_the_tag(rewriter):
    out = rewriter.rewrite("<html><head></head></html>", "https://example.com/</script><b>x")
    assert "</script><b>x" not in out


def test_bridge_toggle():
    with_bridge = ContentRewriter(SERVICE, script_bridge=True).rewrite(PAGE, TARGET)
    without = ContentRewriter(SERVICE, script_bridge=False).rewrite(PAGE, TARGET)
    assert "execute-script" in with_bridge
    assert "window.parent" in with_bridge
    assert "execute-script" not in without


def test_rewrite_is_idempotent(rewriter):
    once = rewriter.rewrite(PAGE, TARGET, "sess-1")
    twice = rewriter.rewrite(once, TARGET, "sess-1")
    assert once == twice


def test_header_tag_is_not_mistaken_for_head(rewriter):
    html = "<html><head></head><body><header>h</header></body></html>"
    out = rewriter.rewrite(html, TARGET)
    assert out.index("<base") < out.index("<header>")


@pytest.mark.parametrize("ct, expected", [
    ("text/html", True),
    ("text/html; charset=UTF-8", True),
    ("application/xhtml+xml", True),
    ("TEXT/HTML", True),
    ("text/css", False),
    ("application/json", False),
    (None, False),
])
def test_is_html(ct, expected):
    assert is_html(ct) is expected


def test_origin_strips_path_and_userinfo():
    assert origin_of("https://user:pw@example.com:8443/a/b?c") == "https://example.com:8443"
