"""Tests for pagestore.services.seo."""

from bs4 import BeautifulSoup

from pagestore.models.page import SeoMeta
from pagestore.services.seo import build_seo_tags, inject_seo_meta, strip_seo_tags

_SEO = SeoMeta(seo_title="My Page", description="About my page", keywords=["a", "b"])

_EXPECTED_TAGS = (
    "<title>My Page</title>"
    '<meta name="description" content="About my page">'
    '<meta name="keywords" content="a, b">'
)


def _head(html: str):
    return BeautifulSoup(html, "lxml").head


# ---------------------------------------------------------------------------
# Tag construction
# ---------------------------------------------------------------------------


class TestBuildSeoTags:
    def test_all_tags(self):
        assert build_seo_tags(_SEO) == _EXPECTED_TAGS

    def test_no_keywords_tag_without_keywords(self):
        tags = build_seo_tags(SeoMeta(seo_title="T", description="D"))
        assert "keywords" not in tags

    def test_blank_keywords_are_dropped(self):
        for keywords in ([], ["  "], [""]):
            tags = build_seo_tags(SeoMeta(seo_title="T", description="D", keywords=keywords))
            assert "keywords" not in tags

    def test_keywords_are_joined_as_given(self):
        tags = build_seo_tags(SeoMeta(seo_title="T", description="D", keywords=["a ", "", "b"]))
        assert '<meta name="keywords" content="a , , b">' in tags

    def test_values_are_escaped(self):
        tags = build_seo_tags(SeoMeta(seo_title='a < b & "c"', description='say "hi" <now>'))
        assert '<title>a &lt; b &amp; "c"</title>' in tags
        assert 'content="say &quot;hi&quot; &lt;now&gt;"' in tags

    def test_legacy_title_is_used(self):
        tags = build_seo_tags(SeoMeta(title="Legacy", description="D"))
        assert "<title>Legacy</title>" in tags


# ---------------------------------------------------------------------------
# Head rewriting
# ---------------------------------------------------------------------------


class TestInjectIntoHead:
    def test_empty_head(self):
        html = "<html><head></head><body></body></html>"
        assert inject_seo_meta(html, _SEO) == f"<html><head>{_EXPECTED_TAGS}</head><body></body></html>"

    def test_injecting_twice_is_idempotent(self):
        html = "<html><head></head><body></body></html>"
        once = inject_seo_meta(html, _SEO)
        twice = inject_seo_meta(once, _SEO)
        assert twice == once
        head = _head(twice)
        assert len(head.find_all("title")) == 1
        assert len(head.find_all("meta", attrs={"name": "description"})) == 1
        assert len(head.find_all("meta", attrs={"name": "keywords"})) == 1

    def test_existing_seo_tags_are_replaced(self):
        html = (
            "<html><HEAD>"
            '<meta charset="utf-8">'
            "<TITLE>Old</TITLE>"
            "<META NAME='Description' content='old description'>"
            "<meta name=keywords content=old>"
            '<link rel="stylesheet" href="/s.css">'
            "</HEAD><body><p>x</p></body></html>"
        )
        result = inject_seo_meta(html, _SEO)
        head = _head(result)
        assert [t.get_text() for t in head.find_all("title")] == ["My Page"]
        assert "old description" not in result
        assert "content=old" not in result
        assert head.find("meta", attrs={"charset": "utf-8"}) is not None
        assert head.find("link") is not None
        assert "<p>x</p>" in result

    def test_other_meta_tags_are_kept(self):
        html = '<html><head><meta name="viewport" content="width=device-width"></head></html>'
        result = inject_seo_meta(html, _SEO)
        assert '<meta name="viewport" content="width=device-width">' in result

    def test_unterminated_title_in_head_leaves_one_title(self):
        html = "<html><head><title>broken</head><body>x</body></html>"
        result = inject_seo_meta(html, _SEO)
        assert result == f"<html><head>{_EXPECTED_TAGS}</head><body>x</body></html>"

    def test_head_with_attributes(self):
        html = '<html><head lang="en"><title>x</title></head><body></body></html>'
        result = inject_seo_meta(html, _SEO)
        assert result.startswith(f'<html><head lang="en">{_EXPECTED_TAGS}</head>')

    def test_script_mentioning_head_close_is_skipped(self):
        html = '<html><head><script>var s = "</head>";</script></head><body></body></html>'
        result = inject_seo_meta(html, _SEO)
        assert '<script>var s = "</head>";</script></head>' in result
        assert result.count("<title>") == 1

    def test_header_is_not_head(self):
        html = "<html><body><header>h</header></body></html>"
        result = inject_seo_meta(html, _SEO)
        assert result == f"<html><head>{_EXPECTED_TAGS}</head><body><header>h</header></body></html>"


class TestSynthesizedHead:
    def test_after_html_tag(self):
        html = '<!doctype html><html lang="en"><body>x</body></html>'
        result = inject_seo_meta(html, _SEO)
        assert result == f'<!doctype html><html lang="en"><head>{_EXPECTED_TAGS}</head><body>x</body></html>'

    def test_before_body(self):
        result = inject_seo_meta("<body>x</body>", _SEO)
        assert result == f"<head>{_EXPECTED_TAGS}</head><body>x</body>"

    def test_fragment_is_prefixed(self):
        result = inject_seo_meta("<p>x</p>", _SEO)
        assert result == f"<head>{_EXPECTED_TAGS}</head><p>x</p>"

    def test_head_without_close_falls_back_to_html_tag(self):
        html = "<html><head><body>x</body></html>"
        result = inject_seo_meta(html, _SEO)
        assert result.startswith(f"<html><head>{_EXPECTED_TAGS}</head><head>")

    def test_broken_markup_still_gets_tags(self):
        result = inject_seo_meta("a < b <p>x", _SEO)
        assert result.startswith("<head><title>My Page</title>")


class TestStripSeoTags:
    def test_strips_title_and_meta(self):
        head = '<title>a</title><meta name="description" content="d"><meta name="robots" content="all">'
        assert strip_seo_tags(head) == '<meta name="robots" content="all">'

    def test_content_mentioning_description_is_kept(self):
        head = '<meta property="og:title" content="name=description">'
        assert strip_seo_tags(head) == head

    def test_unterminated_title_is_dropped_to_end_of_head(self):
        head = "<meta charset='utf-8'><title>open <b>x</b>"
        assert strip_seo_tags(head) == "<meta charset='utf-8'>"
