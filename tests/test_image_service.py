"""Image resolution for PDF export, with requests.get patched out."""
import os
import sys

import pytest
import requests

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from boq_tool.engine import PricedLineItem
from boq_tool.services import image_service


class FakeResponse:
    def __init__(self, content=b"img", content_type="image/png", status=200):
        self.content = content
        self.headers = {"Content-Type": content_type}
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


@pytest.fixture
def fake_get(monkeypatch):
    responses = {}
    calls = []

    def get(url, timeout):
        calls.append(url)
        response = responses.get(url)
        if response is None:
            raise requests.ConnectionError("unreachable")
        return response

    monkeypatch.setattr(image_service.requests, "get", get)
    return responses, calls


def _item(ref):
    return PricedLineItem(description="Fixture", quantity=1, unit="nos", rate=1, amount=1, image_ref=ref)


def test_fetch_image_as_data_uri(fake_get):
    responses, _ = fake_get
    responses["https://img.example/a.png"] = FakeResponse(b"abc", "image/png; charset=binary")

    assert image_service.fetch_image_as_data_uri("https://img.example/a.png") == "data:image/png;base64,YWJj"


@pytest.mark.parametrize("response", [None, FakeResponse(status=404), FakeResponse(content_type="text/html")])
def test_fetch_image_failures_return_none(fake_get, response):
    responses, _ = fake_get
    if response is not None:
        responses["https://img.example/x"] = response

    assert image_service.fetch_image_as_data_uri("https://img.example/x") is None


def test_resolve_image_refs_fetches_each_url_once(fake_get):
    responses, calls = fake_get
    responses["https://img.example/a.png"] = FakeResponse()

    items = [
        _item("https://img.example/a.png"),
        _item("https://img.example/a.png"),
        _item("https://img.example/gone.png"),
        _item("data:image/png;base64,YWJj"),
        _item(None),
    ]
    resolved = image_service.resolve_image_refs(items)

    assert list(resolved) == ["https://img.example/a.png"]
    assert calls == ["https://img.example/a.png", "https://img.example/gone.png"]
