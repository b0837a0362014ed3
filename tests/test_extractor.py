"""Tests for head configuration extraction."""

from __future__ import annotations

import json

import pytest
from bs4 import BeautifulSoup

from pagemeta.config import HeadSettings
from pagemeta.errors import ExtractionFailure
from pagemeta.metadata import HeadExtractor


def _settings(**overrides) -> HeadSettings:
    return HeadSettings.model_validate(overrides)


@pytest.mark.asyncio
async def test_extract_renders_meta_with_marker_and_hid():
    context = await HeadExtractor().extract(
        _settings(
            meta=[
                {"charset": "utf-8"},
                {"hid": "description", "name": "description", "content": "Fresh & local"},
            ]
        )
    )

    assert context.meta.text() == (
        '<meta data-n-head="true" charset="utf-8"/>'
        '<meta data-n-head="true" data-hid="description" name="description" '
        'content="Fresh &amp; local"/>'
    )


def test_title_template_is_applied():
    context = HeadExtractor().build(_settings(title="Cart", titleTemplate="%s | Shop"))

    assert context.title.text() == '<title data-n-head="true">Cart | Shop</title>'


def test_empty_title_still_renders_tag_through_template():
    templated = HeadExtractor().build(_settings(titleTemplate="%s | Shop"))
    bare = HeadExtractor().build(_settings())

    assert templated.title.text() == '<title data-n-head="true"> | Shop</title>'
    assert bare.title.text() == '<title data-n-head="true"></title>'


def test_title_is_escaped():
    context = HeadExtractor().build(_settings(title="<Tom & Jerry>"))

    assert context.title.text() == '<title data-n-head="true">&lt;Tom &amp; Jerry&gt;</title>'


def test_attribute_groups_list_watched_names():
    context = HeadExtractor().build(
        _settings(htmlAttrs={"lang": "en", "amp": True, "dir": None}, bodyAttrs={})
    )

    assert context.html_attrs.text() == 'data-n-head-ssr lang="en" amp data-n-head="lang,amp"'
    assert context.body_attrs.text() == 'data-n-head=""'


def test_scripts_split_between_head_and_body():
    context = HeadExtractor().build(
        _settings(
            script=[
                {"src": "/vendor/analytics.js", "async": True},
                {"innerHTML": "window.__READY__ = true", "body": True},
            ],
            noscript=[{"innerHTML": "Enable JavaScript", "body": True}],
        )
    )

    assert context.script.text() == (
        '<script data-n-head="true" src="/vendor/analytics.js" async></script>'
    )
    assert context.script.text(body=True) == (
        '<script data-n-head="true">window.__READY__ = true</script>'
    )
    assert context.noscript.text() == ""
    assert context.noscript.text(body=True) == (
        '<noscript data-n-head="true">Enable JavaScript</noscript>'
    )


def test_json_script_content_is_escaped():
    context = HeadExtractor().build(
        _settings(script=[{"type": "application/ld+json", "json": {"name": "</script>"}}])
    )

    soup = BeautifulSoup(context.script.text(), "html.parser")
    tag = soup.find("script")
    assert tag is not None
    assert tag["type"] == "application/ld+json"
    assert "</script>" not in context.script.text()[:-len("</script>")]
    assert json.loads(tag.string) == {"name": "</script>"}


def test_style_uses_css_text_and_links_self_close():
    context = HeadExtractor().build(
        _settings(
            style=[{"cssText": "body{margin:0}", "type": "text/css"}],
            link=[{"rel": "icon", "href": "/favicon.ico"}],
        )
    )

    assert context.style.text() == '<style data-n-head="true" type="text/css">body{margin:0}</style>'
    assert context.link.text() == '<link data-n-head="true" rel="icon" href="/favicon.ico"/>'


def test_skipped_entries_are_not_rendered():
    context = HeadExtractor().build(_settings(link=[{"rel": "preconnect", "skip": True}]))

    assert len(context.link) == 0


def test_non_mapping_entry_raises_extraction_failure():
    with pytest.raises(ExtractionFailure, match=r"head.meta\[1\]"):
        HeadExtractor().build(_settings(meta=[{"charset": "utf-8"}, "viewport"]))


@pytest.mark.asyncio
async def test_extract_accepts_plain_mapping():
    context = await HeadExtractor().extract({"title": "Plain"})

    assert context.title.text() == '<title data-n-head="true">Plain</title>'


@pytest.mark.asyncio
async def test_extract_rejects_invalid_mapping():
    with pytest.raises(ExtractionFailure, match="Invalid head configuration"):
        await HeadExtractor().extract({"unknown": True})
