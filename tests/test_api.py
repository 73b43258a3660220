import json
import threading
import time

import pytest

from quiverdb import api
from quiverdb.config import Config
from quiverdb.errors import LoadError, MissingConfigError, PersistenceError, QuiverError


@pytest.fixture
def api_store(store, monkeypatch):
    monkeypatch.setattr(api, "get_store", lambda: store)
    return store


class FakeResponse:
    status_code = None


def test_health():
    assert "running" in api.health()


def test_upsert_vector_reports_created_then_updated(api_store):
    req = api.UpsertVectorRequest(vector=[0.1, 0.2], text="first", metadata={"a": "b"})
    resp = FakeResponse()
    record = api.upsert_vector("doc_001", req, resp)
    assert resp.status_code == 201
    assert record.id == "doc_001"

    resp = FakeResponse()
    api.upsert_vector("doc_001", api.UpsertVectorRequest(vector=[0.3], text="second"), resp)
    assert resp.status_code == 200
    assert api_store.get("doc_001").text == "second"


def test_upsert_text_embeds(api_store, provider):
    resp = FakeResponse()
    record = api.upsert_text("t", api.UpsertTextRequest(text="cats"), resp)
    assert resp.status_code == 201
    assert record.vector == provider.embed("cats")


def test_get_missing_vector_is_404(api_store):
    resp = api.get_vector("nope")
    assert resp.status_code == 404
    body = json.loads(resp.body)
    assert body["error"] == "VECTOR_NOT_FOUND"
    assert "nope" in body["message"]


def test_head_and_delete(api_store):
    api_store.upsert("x", [1.0], "")
    assert api.vector_exists("x").status_code == 200
    assert api.delete_vector("x") == {"deleted": True, "id": "x"}
    assert api.vector_exists("x").status_code == 404
    assert api.delete_vector("x").status_code == 404


def test_count_and_list(api_store):
    api_store.upsert("x", [1.0], "")
    assert api.vector_count()["count"] == 1
    assert [r.id for r in api.list_vectors()] == ["x"]
    api.delete_all_vectors()
    assert api.vector_count()["count"] == 0


def test_search_accepts_camel_case_top_k(api_store):
    api_store.upsert_text("a", "cats and dogs")
    api_store.upsert_text("b", "car engines")

    req = api.SearchRequest.model_validate({"text": "feline pets", "topK": 1})
    out = api.search_text(req)
    assert out["query"] == "feline pets"
    assert out["count"] == 1
    assert out["results"][0].id == "a"
    assert out["execution_time_ms"] >= 0


def test_vector_query_defaults(api_store):
    api_store.upsert("a", [1.0, 0.0], "")
    req = api.QueryRequest(vector=[1.0, 0.0])
    assert req.top_k == Config.DEFAULT_TOP_K
    out = api.search_vector(req)
    assert out["count"] == 1


def test_top_k_bounds_are_validated():
    with pytest.raises(ValueError):
        api.QueryRequest.model_validate({"vector": [1.0], "topK": 0})
    with pytest.raises(ValueError):
        api.SearchRequest.model_validate({"text": "x", "topK": Config.MAX_TOP_K + 1})


def test_batch_upload(api_store):
    req = api.BatchRequest.model_validate(
        {
            "documents": [
                {"id": "1", "text": "cats"},
                {"id": "2", "text": "dogs", "metadata": {"k": "v"}},
                {"id": "3", "text": "car"},
            ]
        }
    )
    result = api.batch_upload(req)
    assert (result.successful, result.failed) == (3, 0)
    assert api_store.count() == 3


def test_persistence_errors_map_to_500():
    class FakeRequest:
        method = "PUT"

        class url:
            path = "/vectors/a"

    resp = api.quiver_error_handler(FakeRequest(), PersistenceError("disk full"))
    assert resp.status_code == 500
    assert json.loads(resp.body)["error"] == "PERSISTENCE_ERROR"


def test_get_store_requires_embeddings_path(monkeypatch):
    monkeypatch.setattr(api, "_STORE", None)
    monkeypatch.setattr(Config, "EMBEDDINGS_PATH", None)
    with pytest.raises(MissingConfigError):
        api.get_store()


def test_get_store_opens_and_caches(monkeypatch, glove_file, data_file):
    monkeypatch.setattr(api, "_STORE", None)
    monkeypatch.setattr(Config, "EMBEDDINGS_PATH", str(glove_file))
    monkeypatch.setattr(Config, "DATA_FILE", str(data_file))

    first = api.get_store()
    assert first is api.get_store()
    assert first.embedding_provider.dimensionality == 3


def test_upsert_non_finite_vector_is_400(api_store):
    resp = api.upsert_vector(
        "bad",
        api.UpsertVectorRequest(vector=[float("nan"), 1.0], text="x"),
        FakeResponse(),
    )
    assert resp.status_code == 400
    assert json.loads(resp.body)["error"] == "INVALID_VECTOR"
    assert not api_store.exists("bad")


def test_query_non_finite_vector_is_400(api_store):
    api_store.upsert("a", [1.0, 0.0], "")
    resp = api.search_vector(api.QueryRequest(vector=[float("inf"), 0.0]))
    assert resp.status_code == 400


@pytest.mark.parametrize(
    "exc, code",
    [
        (PersistenceError("disk full"), "PERSISTENCE_ERROR"),
        (LoadError("no table"), "EMBEDDINGS_LOAD_ERROR"),
        (MissingConfigError("unset"), "CONFIGURATION_ERROR"),
        (QuiverError("other"), "INTERNAL_ERROR"),
    ],
)
def test_error_code_follows_exception_type(exc, code):
    class FakeRequest:
        method = "GET"

        class url:
            path = "/vectors"

    resp = api.quiver_error_handler(FakeRequest(), exc)
    assert resp.status_code == 500
    assert json.loads(resp.body)["error"] == code


def test_get_store_opens_a_single_store_across_threads(monkeypatch, glove_file, data_file):
    monkeypatch.setattr(api, "_STORE", None)
    monkeypatch.setattr(Config, "EMBEDDINGS_PATH", str(glove_file))
    monkeypatch.setattr(Config, "DATA_FILE", str(data_file))

    opened = []
    real_open = api.VectorStore.open

    def slow_open(provider, path):
        time.sleep(0.05)
        store = real_open(provider, path)
        opened.append(store)
        return store

    monkeypatch.setattr(api.VectorStore, "open", staticmethod(slow_open))

    results = []
    threads = [threading.Thread(target=lambda: results.append(api.get_store())) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(opened) == 1
    assert all(r is opened[0] for r in results)
