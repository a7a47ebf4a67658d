from __future__ import annotations

import json
import logging

import pytest
from fakes import site_config

from newscollector.core.errors import ConfigError
from newscollector.scrape.selectors import (
    Pagination,
    Selectors,
    apply_overrides,
    load_selector_overrides,
    merge_site_overrides,
)
from newscollector.scrape.sites import SITES


def test_required_selectors():
    with pytest.raises(ConfigError):
        Selectors(article_links="", title="h1")
    with pytest.raises(ConfigError):
        Selectors(article_links="a", title="")


def test_max_pages_must_be_positive():
    with pytest.raises(ConfigError):
        Pagination(enabled=True, max_pages=0)


def test_effective_max_pages_respects_enabled_flag():
    assert site_config(max_pages=4, enabled=True).max_pages == 4
    assert site_config(max_pages=4, enabled=False).max_pages == 1


def test_load_yaml_overrides(tmp_path):
    p = tmp_path / "selectors.yaml"
    p.write_text(
        "CNN:\n"
        "  selectors:\n"
        "    title: h1.pg-headline\n"
        "  pagination:\n"
        "    next_page_selector: a.next\n"
        "bbc: not-a-mapping\n",
        encoding="utf-8",
    )
    assert load_selector_overrides(p) == {
        "cnn": {
            "selectors": {"title": "h1.pg-headline"},
            "pagination": {"next_page_selector": "a.next"},
        }
    }


def test_load_json_overrides(tmp_path):
    p = tmp_path / "selectors.json"
    p.write_text(json.dumps({"bbc": {"delay_ms": 500}}), encoding="utf-8")
    assert load_selector_overrides(p) == {"bbc": {"delay_ms": 500}}


def test_missing_or_malformed_overrides_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_selector_overrides(tmp_path / "nope.yaml")
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_selector_overrides(bad)


def test_apply_overrides_replaces_only_named_fields():
    cfg = site_config()
    out = apply_overrides(
        cfg,
        {
            "selectors": {"title": "h2.title", "image_url": "figure img"},
            "pagination": {"enabled": True, "max_pages": 5},
            "name": "Example Daily",
            "delay_ms": "250",
        },
    )
    assert out.selectors.title == "h2.title"
    assert out.selectors.image_url == "figure img"
    assert out.selectors.article_links == cfg.selectors.article_links
    assert out.max_pages == 5
    assert out.name == "Example Daily"
    assert out.delay_ms == 250
    # original untouched
    assert cfg.selectors.title == "h1.headline"


def test_apply_overrides_rejects_unknown_fields():
    with pytest.raises(ConfigError, match="headline"):
        apply_overrides(site_config(), {"selectors": {"headline": "h1"}})
    with pytest.raises(ConfigError):
        apply_overrides(site_config(), {"pagination": {"pages": 2}})
    with pytest.raises(ConfigError):
        apply_overrides(site_config(), {"selectors": {"title": ""}})


def test_merge_site_overrides_ignores_unknown_source(caplog):
    with caplog.at_level(logging.WARNING, logger="newscollector"):
        merged = merge_site_overrides(
            SITES, {"guardian": {"selectors": {"title": "h1"}}, "aljazeera": {"name": "AJ"}}
        )
    assert list(merged) == ["cnn", "bbc", "reuters", "guardian"]
    assert merged["guardian"].selectors.title == "h1"
    assert merged["cnn"] is SITES["cnn"]
    assert SITES["guardian"].selectors.title == 'h1[data-testid="headline"]'
    assert "aljazeera" in caplog.text


def test_pagination_values_from_yaml_strings_are_converted():
    out = apply_overrides(
        SITES["cnn"], {"pagination": {"max_pages": "2", "enabled": "false"}}
    )
    assert out.pagination.max_pages == 2
    assert out.pagination.enabled is False
    assert out.max_pages == 1

    on = apply_overrides(SITES["cnn"], {"pagination": {"enabled": "yes", "max_pages": 5}})
    assert on.pagination.enabled is True
    assert on.max_pages == 5


@pytest.mark.parametrize(
    "rules",
    [
        {"pagination": {"max_pages": "two"}},
        {"pagination": {"max_pages": None}},
        {"pagination": {"max_pages": True}},
        {"pagination": {"max_pages": "0"}},
        {"selectors": {"title": 42}},
    ],
)
def test_bad_override_values_raise_config_error(rules):
    with pytest.raises(ConfigError):
        apply_overrides(SITES["bbc"], rules)
