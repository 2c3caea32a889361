"""Tests for pagestore.services.render."""

from bs4 import BeautifulSoup

from pagestore.models.page import PageIndexEntry, PageMeta, SeoMeta
from pagestore.services.render import (
    render_404_html,
    render_index_html,
    render_page_html,
    render_sitemap_xml,
)

_ENTRIES = [
    PageIndexEntry(page_id="abc", seo=SeoMeta(seo_title="First <Page>", description="one & two")),
    PageIndexEntry(page_id="xyz", seo=SeoMeta(seo_title="Second", description="")),
]


def test_page_html_gets_seo_head():
    meta = PageMeta(seo=SeoMeta(seo_title="T", description="D"))
    result = render_page_html(meta, "<html><head></head><body><p>x</p></body></html>")
    soup = BeautifulSoup(result, "lxml")
    assert soup.title.get_text() == "T"
    assert soup.find("meta", attrs={"name": "description"})["content"] == "D"
    assert soup.find("p").get_text() == "x"


def test_index_lists_every_entry_with_escaped_titles():
    result = render_index_html(_ENTRIES, "My Site")
    soup = BeautifulSoup(result, "lxml")
    links = soup.find_all("a")
    assert [a.get_text() for a in links] == ["First <Page>", "Second"]
    assert links[0]["href"] == "/pages/First%20%3CPage%3E+abc"
    assert soup.title.get_text() == "My Site"
    assert "one &amp; two" in result


def test_index_with_no_pages():
    soup = BeautifulSoup(render_index_html([], "Empty"), "lxml")
    assert soup.find_all("li") == []


def test_404_page():
    result = render_404_html("My Site")
    soup = BeautifulSoup(result, "lxml")
    assert soup.h1.get_text() == "Page not found"
    assert "My Site" in soup.title.get_text()


class TestSitemap:
    def test_urls_and_lastmod(self):
        xml = render_sitemap_xml(_ENTRIES, "https://example.com", {"abc": 86400 * 365})
        soup = BeautifulSoup(xml, "xml")
        urls = soup.find_all("url")
        assert len(urls) == 2
        assert urls[0].loc.get_text() == "https://example.com/pages/First%20%3CPage%3E+abc"
        assert urls[0].lastmod.get_text() == "1971-01-01"
        assert urls[1].loc.get_text() == "https://example.com/pages/Second+xyz"
        assert urls[1].lastmod is None

    def test_namespace_and_declaration(self):
        xml = render_sitemap_xml([], "https://example.com")
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert 'xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"' in xml
