"""FastAPI routes exposing the vector store over HTTP."""
import threading
import time
from typing import Dict, List

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .config import Config, configure_logging
from .embeddings import GloveEmbedding
from .errors import LoadError, MissingConfigError, PersistenceError, QuiverError
from .models import BatchDocument, BatchResult, VectorMatch, VectorRecord, utc_now
from .vector_store import VectorStore

app = FastAPI(title="QuiverDB Vector Database API", version="1.0.0")


class UpsertVectorRequest(BaseModel):
    vector: List[float]
    text: str
    metadata: Dict[str, str] = Field(default_factory=dict)


class UpsertTextRequest(BaseModel):
    text: str
    metadata: Dict[str, str] = Field(default_factory=dict)


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    top_k: int = Field(default=Config.TEXT_TOP_K, ge=1, le=Config.MAX_TOP_K, alias="topK")
    threshold: float = Field(default=0.0, ge=0.0, le=1.0)


class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vector: List[float]
    top_k: int = Field(default=Config.DEFAULT_TOP_K, ge=1, le=Config.MAX_TOP_K, alias="topK")
    threshold: float = Field(default=0.0, ge=0.0, le=1.0)


class BatchRequest(BaseModel):
    documents: List[BatchDocument]


_STORE: VectorStore | None = None
_STORE_LOCK = threading.Lock()


def get_store() -> VectorStore:
    """Lazily load the word vectors and open the store, then cache it.

    Startup failures (missing table, corrupt snapshot) propagate to the caller.
    """
    global _STORE
    with _STORE_LOCK:
        if _STORE is None:
            provider = GloveEmbedding(Config.require_embeddings_path())
            _STORE = VectorStore.open(provider, Config.DATA_FILE)
        return _STORE


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "timestamp": utc_now().isoformat()},
    )


def _not_found(id: str) -> JSONResponse:
    return error_response(404, "VECTOR_NOT_FOUND", f"Vector with ID '{id}' does not exist")


def _invalid_vector(exc: ValueError) -> JSONResponse:
    return error_response(400, "INVALID_VECTOR", str(exc))


ERROR_CODES = {
    PersistenceError: "PERSISTENCE_ERROR",
    LoadError: "EMBEDDINGS_LOAD_ERROR",
    MissingConfigError: "CONFIGURATION_ERROR",
}


@app.exception_handler(QuiverError)
def quiver_error_handler(request: Request, exc: QuiverError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    code = next(
        (code for cls, code in ERROR_CODES.items() if isinstance(exc, cls)), "INTERNAL_ERROR"
    )
    return error_response(500, code, str(exc))


@app.get("/health")
def health():
    return "QuiverDB Server is running!"


@app.get("/vectors/count")
def vector_count():
    return {"count": get_store().count(), "timestamp": utc_now()}


@app.get("/vectors", response_model=List[VectorRecord])
def list_vectors():
    return get_store().query_all()


@app.head("/vectors/{id}")
def vector_exists(id: str):
    return Response(status_code=200 if get_store().exists(id) else 404)


@app.get("/vectors/{id}", response_model=VectorRecord)
def get_vector(id: str):
    record = get_store().get(id)
    if record is None:
        return _not_found(id)
    return record


@app.put("/vectors/{id}", response_model=VectorRecord)
def upsert_vector(id: str, req: UpsertVectorRequest, response: Response):
    store = get_store()
    try:
        with store.lock:
            created = not store.exists(id)
            record = store.upsert(id, req.vector, req.text, req.metadata)
    except ValueError as exc:
        return _invalid_vector(exc)
    response.status_code = 201 if created else 200
    return record


@app.put("/vectors/{id}/text", response_model=VectorRecord)
def upsert_text(id: str, req: UpsertTextRequest, response: Response):
    store = get_store()
    with store.lock:
        created = not store.exists(id)
        record = store.upsert_text(id, req.text, req.metadata)
    response.status_code = 201 if created else 200
    return record


@app.delete("/vectors/{id}")
def delete_vector(id: str):
    if not get_store().remove_at(id):
        return _not_found(id)
    return {"deleted": True, "id": id}


@app.delete("/vectors")
def delete_all_vectors():
    get_store().remove_all()
    return {"deleted": True}


@app.post("/vectors/search")
def search_text(req: SearchRequest):
    start = time.perf_counter()
    results: List[VectorMatch] = get_store().query_text(
        req.text, top_k=req.top_k, threshold=req.threshold
    )
    return {
        "query": req.text,
        "results": results,
        "count": len(results),
        "execution_time_ms": (time.perf_counter() - start) * 1000,
    }


@app.post("/vectors/query")
def search_vector(req: QueryRequest):
    start = time.perf_counter()
    try:
        results = get_store().query(req.vector, top_k=req.top_k, threshold=req.threshold)
    except ValueError as exc:
        return _invalid_vector(exc)
    return {
        "results": results,
        "count": len(results),
        "execution_time_ms": (time.perf_counter() - start) * 1000,
    }


@app.post("/vectors/batch", response_model=BatchResult)
def batch_upload(req: BatchRequest):
    return get_store().batch_upsert_texts(req.documents)


def main():
    """Entrypoint: configure logging, open the store, and serve the API."""
    import uvicorn

    configure_logging()
    store = get_store()
    logger.info(f"Server configured with {store.count()} vectors, ready to start")
    uvicorn.run(app, host=Config.HOST, port=Config.PORT)


if __name__ == "__main__":
    main()
