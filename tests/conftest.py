import gzip
import json

import pytest


class FakeTable:
    """In-memory stand-in for EventsTable; list order is token order."""

    def __init__(self, partitions, page_size=3, column_family="events", first=None):
        self.keys = [key for key, _ in partitions]
        self.columns = {key: sorted(columns) for key, columns in partitions}
        self.page_size = page_size
        self.column_family = column_family
        self.first = first
        self.calls = []

    def first_key(self):
        self.calls.append(("first_key",))
        if self.first is not None:
            return self.first
        return self.keys[0] if self.keys else None

    def key_before(self, key):
        self.calls.append(("key_before", key))
        i = self.keys.index(key)
        return self.keys[i - 1] if i > 0 else None

    def key_after(self, key):
        self.calls.append(("key_after", key))
        i = self.keys.index(key)
        return self.keys[i + 1] if i + 1 < len(self.keys) else None

    def column_page(self, key, after=None):
        self.calls.append(("column_page", key, after))
        columns = [c for c in self.columns[key] if after is None or c[0] > after]
        return columns[:self.page_size]

    def page_queries(self, key):
        return [c for c in self.calls if c[0] == "column_page" and c[1] == key]


@pytest.fixture
def make_table():
    return FakeTable


@pytest.fixture
def write_dump(tmp_path):
    """Write a gzip-compressed dump from a JSON string or Python object."""
    def _write(content, name="ddsc.json.gz"):
        path = tmp_path / name
        if not isinstance(content, str):
            content = json.dumps(content)
        with gzip.open(path, "wt", encoding="utf-8") as f:
            f.write(content)
        return path
    return _write
