# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for provider detection."""

from types import SimpleNamespace

import pytest

from tokentrace.providers import detect_provider


class FakeURL:
    """Mimics httpx.URL: not a str, but str() gives the URL."""

    def __init__(self, url):
        self._url = url

    def __str__(self):
        return self._url


@pytest.mark.parametrize(
    "base_url, provider",
    [
        ("https://api.openai.com/v1", "openai"),
        ("https://api.anthropic.com", "anthropic"),
        ("https://api.minimax.io/v1", "minimax"),
        ("https://api.minimaxi.com/v1", "minimax"),
        ("https://api.moonshot.ai/v1", "kimi"),
        ("https://generativelanguage.googleapis.com/v1beta/openai/", "google"),
    ],
)
def test_known_hosts(base_url, provider):
    assert detect_provider(SimpleNamespace(base_url=base_url)) == provider


def test_unknown_host_returns_hostname():
    client = SimpleNamespace(base_url="http://localhost:11434/v1")
    assert detect_provider(client) == "localhost"


def test_url_object_is_stringified():
    client = SimpleNamespace(base_url=FakeURL("https://api.openai.com/v1/"))
    assert detect_provider(client) == "openai"


def test_fallback_locations():
    assert detect_provider(SimpleNamespace(baseURL="https://api.moonshot.ai/v1")) == "kimi"
    nested = SimpleNamespace(_client=SimpleNamespace(base_url="https://api.anthropic.com"))
    assert detect_provider(nested) == "anthropic"
    options = SimpleNamespace(_options=SimpleNamespace(base_url="https://api.openai.com"))
    assert detect_provider(options) == "openai"


def test_first_location_wins():
    client = SimpleNamespace(
        base_url="https://api.openai.com/v1",
        _client=SimpleNamespace(base_url="https://api.anthropic.com"),
    )
    assert detect_provider(client) == "openai"


def test_missing_base_url_is_unknown():
    assert detect_provider(SimpleNamespace()) == "unknown"
    assert detect_provider(None) == "unknown"
    assert detect_provider(SimpleNamespace(base_url="")) == "unknown"


def test_unparsable_base_url_is_unknown():
    assert detect_provider(SimpleNamespace(base_url="not a url")) == "unknown"
    assert detect_provider(SimpleNamespace(base_url="http://[::1")) == "unknown"


def test_raising_property_is_unknown():
    class Exploding:
        @property
        def base_url(self):
            raise RuntimeError("boom")

    assert detect_provider(Exploding()) == "unknown"
