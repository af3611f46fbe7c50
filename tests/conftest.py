from __future__ import annotations

from typing import List, Tuple
from xml.sax.handler import ContentHandler

import pytest

from skelmerge import configuration


class RecordingHandler(ContentHandler):
    """Collects tokenizer events as plain tuples."""

    def __init__(self) -> None:
        super().__init__()
        self.events: List[Tuple] = []

    def startDocument(self):
        self.events.append(("startDocument",))

    def endDocument(self):
        self.events.append(("endDocument",))

    def startElement(self, name, attrs):
        self.events.append(("start", name, dict(attrs.items())))

    def characters(self, content):
        self.events.append(("chars", content))

    def endElement(self, name):
        self.events.append(("end", name))

    @property
    def body(self) -> List[Tuple]:
        return [event for event in self.events if event[0] not in ("startDocument", "endDocument")]


@pytest.fixture
def recorder() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def sequential_ids():
    """Id factory yielding tu1, tu2, ..."""

    counter = {"value": 0}

    def factory() -> str:
        counter["value"] += 1
        return f"tu{counter['value']}"

    return factory


@pytest.fixture(autouse=True)
def clean_configuration(monkeypatch):
    for key in list(configuration.SkelmergeConfig.__field_infos__):
        monkeypatch.delenv(key, raising=False)
    configuration._load_config_instance.cache_clear()
    yield
    configuration._load_config_instance.cache_clear()
