# flake8: noqa
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))  # noqa: E402

import pytest
from openai import OpenAIError
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from fridge import app as app_module
from fridge import models
from fridge.errors import ExtractionError, ReceiptParseError
from fridge.receipt import DemoExtractor, OpenRouterExtractor, ReceiptExtractor, parse_items
from fridge.schemas import ReceiptItem


engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeExtractor(ReceiptExtractor):
    def __init__(self, result):
        self.result = result
        self.images = []

    def extract(self, image):
        self.images.append(image)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture
def client():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    app_module.app.dependency_overrides[app_module.get_db] = override_get_db
    app_module.app.dependency_overrides[app_module.get_demo_extractor] = lambda: DemoExtractor(delay=0)
    yield TestClient(app_module.app)
    app_module.app.dependency_overrides.pop(app_module.get_receipt_extractor, None)
    app_module.app.dependency_overrides.pop(app_module.get_demo_extractor, None)


def test_parse_plain_array():
    items = parse_items('[{"name": "tomato", "quantity": 3, "unit": "pieces", "expiry_days": 5}]')
    assert items == [ReceiptItem(name="tomato", quantity=3, unit="pieces", expiry_days=5)]


def test_parse_array_wrapped_in_prose():
    text = 'Here you go:\n```json\n[{"name": "milk", "quantity": 1, "unit": "bottle", "expiry_days": 5}]\n```\nEnjoy!'
    items = parse_items(text)
    assert [i.name for i in items] == ["milk"]


@pytest.mark.parametrize("text", [
    "I could not read this receipt.",
    '{"name": "milk"}',
    '[{"quantity": 2}]',
    "",
    None,
])
def test_parse_failures(text):
    with pytest.raises(ReceiptParseError):
        parse_items(text)


def test_demo_extractor_returns_canned_items():
    items = DemoExtractor(delay=0).extract("data:image/png;base64,AAAA")
    assert [i.name for i in items] == ["tomato", "apple", "milk", "bread"]
    assert items[2].unit == "bottle"


def test_openrouter_extractor_sends_image_and_prompt():
    completions = FakeCompletions(content='[{"name": "bread", "quantity": 1, "unit": "loaf", "expiry_days": 3}]')
    extractor = OpenRouterExtractor(api_key="k", model="test/model", client=fake_client(completions))

    items = extractor.extract("data:image/jpeg;base64,xyz")
    assert [i.name for i in items] == ["bread"]
    call = completions.calls[0]
    assert call["model"] == "test/model"
    content = call["messages"][0]["content"]
    assert content[0]["type"] == "text" and "JSON array" in content[0]["text"]
    assert content[1] == {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,xyz"}}


def test_openrouter_extractor_wraps_client_errors():
    completions = FakeCompletions(error=OpenAIError("boom"))
    extractor = OpenRouterExtractor(api_key="k", client=fake_client(completions))
    with pytest.raises(ExtractionError) as info:
        extractor.extract("data:image/jpeg;base64,xyz")
    assert not isinstance(info.value, ReceiptParseError)


def test_openrouter_extractor_needs_key():
    with pytest.raises(ExtractionError):
        OpenRouterExtractor(api_key="").extract("data:image/jpeg;base64,xyz")


def test_extract_endpoint_demo_mode(client):
    res = client.post("/api/receipts/extract", json={"image": "data:image/png;base64,AAAA", "demo": True})
    assert res.status_code == 200
    assert [i["name"] for i in res.json()["items"]] == ["tomato", "apple", "milk", "bread"]


def test_extract_endpoint_uses_extractor(client):
    fake = FakeExtractor([ReceiptItem(name="egg", quantity=12, unit="pieces", expiry_days=14)])
    app_module.app.dependency_overrides[app_module.get_receipt_extractor] = lambda: fake

    res = client.post("/api/receipts/extract", json={"image": "data:image/png;base64,BBBB"})
    assert res.status_code == 200
    assert res.json()["items"] == [{"name": "egg", "quantity": 12, "unit": "pieces", "expiry_days": 14}]
    assert fake.images == ["data:image/png;base64,BBBB"]


def test_extract_endpoint_parse_failure_points_to_demo(client):
    fake = FakeExtractor(ReceiptParseError("Could not parse items from receipt"))
    app_module.app.dependency_overrides[app_module.get_receipt_extractor] = lambda: fake

    res = client.post("/api/receipts/extract", json={"image": "data:image/png;base64,BBBB"})
    assert res.status_code == 502
    assert "demo mode" in res.json()["error"]


def test_extract_endpoint_requires_image(client):
    res = client.post("/api/receipts/extract", json={"demo": True})
    assert res.status_code == 400


def test_import_endpoint_adds_groceries(client):
    items = [
        {"name": "bread", "quantity": 1, "unit": "loaf", "expiry_days": 3},
        {"name": "tomato", "quantity": 3, "unit": "pieces", "expiry_days": 5},
    ]
    res = client.post("/api/receipts/import", json={"items": items})
    assert res.status_code == 201
    created = res.json()
    assert [c["category"] for c in created] == ["grocery", "grocery"]

    today = datetime.now(timezone.utc).date()
    listed = client.get("/api/ingredients").json()
    assert [(i["name"], i["expiry_date"]) for i in listed] == [
        ("bread", (today + timedelta(days=3)).isoformat()),
        ("tomato", (today + timedelta(days=5)).isoformat()),
    ]


def test_parse_fractional_quantities():
    text = '[{"name": "tomato", "quantity": 3, "unit": "pieces", "expiry_days": 5}, {"name": "cheese", "quantity": 0.5, "unit": "kg", "expiry_days": 14}, {"name": "rice", "quantity": 2.7, "unit": "kg", "expiry_days": 30.5}]'
    items = parse_items(text)
    assert [(i.name, i.quantity, i.expiry_days) for i in items] == [
        ("tomato", 3, 5), ("cheese", 1, 14), ("rice", 2, 30),
    ]


def test_receipt_item_falls_back_like_scan_screen():
    assert ReceiptItem(name="milk", quantity=0, expiry_days=0) == ReceiptItem(name="milk", quantity=1, expiry_days=3)
    assert ReceiptItem(name="milk", quantity="4").quantity == 4


def test_extractor_without_extract_cannot_be_built():
    class Incomplete(ReceiptExtractor):
        pass

    with pytest.raises(TypeError):
        Incomplete()


def test_receipt_extractor_dependency_is_reused():
    assert app_module.get_receipt_extractor() is app_module.get_receipt_extractor()


def test_import_endpoint_zero_quantity_becomes_one(client):
    items = [
        {"name": "bread", "quantity": 1, "unit": "loaf", "expiry_days": 3},
        {"name": "milk", "quantity": 0, "unit": "bottle", "expiry_days": 5},
    ]
    res = client.post("/api/receipts/import", json={"items": items})
    assert res.status_code == 201
    listed = client.get("/api/ingredients").json()
    assert [(i["name"], i["quantity"]) for i in listed] == [("bread", 1), ("milk", 1)]


@pytest.mark.parametrize("bad", [
    {"name": "milk", "quantity": -2, "unit": "bottle", "expiry_days": 5},
    {"name": "", "quantity": 1, "unit": "bottle", "expiry_days": 5},
    {"name": "milk", "quantity": 1, "unit": "bottle", "expiry_days": -1},
])
def test_import_endpoint_bad_item_saves_nothing(client, bad):
    items = [{"name": "bread", "quantity": 1, "unit": "loaf", "expiry_days": 3}, bad]
    res = client.post("/api/receipts/import", json={"items": items})
    assert res.status_code == 400
    assert client.get("/api/ingredients").json() == []
