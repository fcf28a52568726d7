"""
Shared fixtures: an in-memory stand-in for the Elasticsearch client.

Only the calls the index adapter makes are implemented. Search ignores the
query and returns every document of the index ordered by id.
"""

import copy
from unittest.mock import MagicMock

import pytest
from elasticsearch import BadRequestError, NotFoundError

from esindex import EsIndex, IndexDefinition


def api_error(cls=NotFoundError, status=404, error_type="index_not_found_exception"):
    return cls(error_type, MagicMock(status=status), {"error": {"type": error_type}})


class FakeIndices:
    def __init__(self, es: "FakeElasticsearch"):
        self._es = es

    def exists(self, index):
        self._es.calls.append(("exists", index))
        return index in self._es.data

    def create(self, index, settings=None, mappings=None):
        self._es.calls.append(("create", index))
        if index in self._es.data:
            raise api_error(BadRequestError, 400, "resource_already_exists_exception")
        self._es.data[index] = {}
        self._es.settings[index] = settings
        self._es.mappings[index] = mappings

    def delete(self, index):
        self._es.calls.append(("delete_index", index))
        self._es._require(index)
        del self._es.data[index]

    def refresh(self, index):
        self._es.calls.append(("refresh", index))
        self._es._require(index)

    def flush(self, index):
        self._es.calls.append(("flush", index))
        self._es._require(index)


class FakeElasticsearch:
    def __init__(self):
        self.data = {}
        self.settings = {}
        self.mappings = {}
        self.calls = []
        self.closed = False
        self.indices = FakeIndices(self)

    def _require(self, index):
        if index not in self.data:
            raise api_error()

    def get(self, index, id):
        self.calls.append(("get", index, id))
        self._require(index)
        if id not in self.data[index]:
            raise api_error(error_type="document_missing")
        return {"_id": id, "_source": copy.deepcopy(self.data[index][id])}

    def index(self, index, id, document):
        self.calls.append(("index", index, id))
        # Elasticsearch creates missing indices on write
        self.data.setdefault(index, {})[id] = copy.deepcopy(document)

    def delete(self, index, id):
        self.calls.append(("delete", index, id))
        self._require(index)
        if id not in self.data[index]:
            raise api_error(error_type="document_missing")
        del self.data[index][id]

    def search(self, index, query=None, from_=0, size=10, track_total_hits=None):
        self.calls.append(("search", index, from_, size))
        self._require(index)
        keys = sorted(self.data[index])
        page = keys[from_:from_ + size]
        return {
            "hits": {
                "total": {"value": len(keys), "relation": "eq"},
                "hits": [{"_id": k, "_score": 1.0} for k in page],
            }
        }

    def count(self, index, query=None):
        self.calls.append(("count", index))
        self._require(index)
        return {"count": len(self.data[index])}

    def close(self):
        self.closed = True


@pytest.fixture
def es():
    return FakeElasticsearch()


@pytest.fixture
def definition():
    return IndexDefinition.of("Titles", [
        ("jcr:title", "string"),
        ("year", "long"),
        ("price", "double"),
        ("published", "date"),
        ("tags", "string"),
        ("flag", "boolean"),
    ])


@pytest.fixture
def index(es, definition):
    return EsIndex(definition, "default", client=es)
