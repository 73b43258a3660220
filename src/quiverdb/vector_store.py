import os
import tempfile
import threading
from math import isfinite, sqrt
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .embeddings import GloveEmbedding
from .errors import PersistenceError
from .models import BatchDocument, BatchResult, VectorMatch, VectorRecord, utc_now

_RECORDS = TypeAdapter(List[VectorRecord])


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Normalized dot product; 0.0 when either vector has zero magnitude.

    Vectors of different lengths are not rejected; the dot product covers their
    common prefix.
    """

    def dot(x, y):
        return sum(p * q for p, q in zip(x, y))

    def norm(x):
        return sqrt(sum(p * p for p in x))

    magnitude = norm(a) * norm(b)
    if magnitude == 0:
        return 0.0
    return dot(a, b) / magnitude


def _check_finite(vector: Sequence[float], what: str) -> List[float]:
    values = [float(v) for v in vector]
    if not all(isfinite(v) for v in values):
        raise ValueError(f"{what} contains NaN or infinite values")
    return values


def _as_batch_document(doc) -> BatchDocument:
    if isinstance(doc, BatchDocument):
        return doc
    if isinstance(doc, dict):
        return BatchDocument.model_validate(doc)
    if isinstance(doc, (tuple, list)):
        if len(doc) not in (2, 3):
            raise ValueError(f"expected (id, text, metadata), got {len(doc)} fields")
        metadata = doc[2] if len(doc) == 3 else None
        return BatchDocument.model_validate(
            {"id": doc[0], "text": doc[1], "metadata": metadata or {}}
        )
    raise TypeError(f"unsupported document type {type(doc).__name__}")


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'document'}: {err['msg']}"
            for err in exc.errors()
        )
    return str(exc)


class VectorStore:
    """File-backed vector database with exact cosine-similarity search.

    Every operation runs under one re-entrant lock, so callers on different threads
    see operations applied strictly one at a time. Mutations write the whole record
    map back to ``storage_path`` before returning.

    Only one store may be opened against a given path at a time; this is not enforced.

    ``lock`` may be held by callers that need several operations applied as one step.
    """

    def __init__(self, embedding_provider: GloveEmbedding, storage_path: str | Path):
        self.embedding_provider = embedding_provider
        self.storage_path = Path(storage_path)
        self._vectors: Dict[str, VectorRecord] = {}
        self.lock = threading.RLock()
        self._load()

    @classmethod
    def open(cls, embedding_provider: GloveEmbedding, storage_path: str | Path) -> "VectorStore":
        """Open a store, restoring records from ``storage_path`` when the file exists."""
        return cls(embedding_provider, storage_path)

    def count(self) -> int:
        with self.lock:
            return len(self._vectors)

    def is_empty(self) -> bool:
        return self.count() == 0

    def exists(self, id: str) -> bool:
        with self.lock:
            return id in self._vectors

    # --- Upserts ---
    def upsert(
        self,
        id: str,
        vector: Sequence[float],
        text: str = "",
        metadata: Dict[str, str] | None = None,
    ) -> VectorRecord:
        """Store ``vector`` under ``id`` (replacing any previous record) and save.

        A vector holding NaN or infinity raises ``ValueError`` and leaves the store untouched.
        """
        with self.lock:
            record = self._build_record(id, vector, text, metadata)
            self._vectors[id] = record
            self._save()
            return record.model_copy(deep=True)

    def upsert_text(
        self, id: str, text: str, metadata: Dict[str, str] | None = None
    ) -> VectorRecord:
        with self.lock:
            vector = self.embedding_provider.embed(text)
            return self.upsert(id, vector, text, metadata)

    def batch_upsert_texts(
        self, documents: Iterable[BatchDocument | dict | Tuple[str, str, Dict[str, str]]]
    ) -> BatchResult:
        """Embed and store each document in order, then save once.

        Documents may be ``BatchDocument`` objects, dicts, or ``(id, text, metadata)``
        tuples. Malformed documents and documents without an id are reported in
        ``errors`` and skipped; the rest of the batch still goes through.
        """
        successful = 0
        errors: List[str] = []

        with self.lock:
            for index, doc in enumerate(documents):
                try:
                    doc = _as_batch_document(doc)
                except (ValidationError, ValueError, TypeError) as exc:
                    errors.append(f"Document {index}: {_describe(exc)}")
                    continue
                if not doc.id.strip():
                    errors.append(f"Document {index}: missing id")
                    continue

                vector = self.embedding_provider.embed(doc.text)
                try:
                    record = self._build_record(doc.id, vector, doc.text, doc.metadata)
                except ValueError as exc:
                    errors.append(f"Document {index}: {exc}")
                    continue
                self._vectors[doc.id] = record
                successful += 1

            if successful:
                self._save()

        if errors:
            logger.warning(f"Batch upsert rejected {len(errors)} documents")
        return BatchResult(successful=successful, failed=len(errors), errors=errors)

    # --- Reads ---
    def get(self, id: str) -> VectorRecord | None:
        with self.lock:
            record = self._vectors.get(id)
            return record.model_copy(deep=True) if record is not None else None

    def query(
        self,
        vector: Sequence[float],
        top_k: int = 5,
        threshold: float | None = None,
    ) -> List[VectorMatch]:
        """Rank every stored record by cosine similarity to ``vector``.

        Returns at most ``top_k`` matches, highest score first. Equal scores come back
        in no particular order. With ``threshold`` set, lower-scoring matches are dropped.
        """
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")
        vector = _check_finite(vector, "Query vector")

        with self.lock:
            matches = []
            for id, record in self._vectors.items():
                score = cosine_similarity(vector, record.vector)
                if threshold is not None and score < threshold:
                    continue
                matches.append(
                    VectorMatch(
                        id=id,
                        score=score,
                        text=record.text,
                        metadata=dict(record.metadata),
                    )
                )

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    def query_text(
        self, text: str, top_k: int = 10, threshold: float | None = None
    ) -> List[VectorMatch]:
        with self.lock:
            vector = self.embedding_provider.embed(text)
            return self.query(vector, top_k=top_k, threshold=threshold)

    def query_all(self) -> List[VectorRecord]:
        with self.lock:
            return [r.model_copy(deep=True) for r in self._vectors.values()]

    # --- Removal ---
    def remove_at(self, id: str) -> bool:
        """Delete the record for ``id``; returns False (and skips saving) if absent."""
        with self.lock:
            if self._vectors.pop(id, None) is None:
                return False
            self._save()
            return True

    def remove_all(self) -> None:
        with self.lock:
            if not self._vectors:
                return
            self._vectors.clear()
            self._save()

    # --- Persistence ---
    @staticmethod
    def _build_record(id, vector, text, metadata) -> VectorRecord:
        return VectorRecord(
            id=id,
            vector=_check_finite(vector, f"Vector for '{id}'"),
            text=text or "",
            metadata=dict(metadata or {}),
            timestamp=utc_now(),
        )

    def _save(self) -> None:
        """Write the full record map over the snapshot file.

        Called with the lock held. The snapshot goes to a temporary file first and is
        then renamed into place, so readers never see a half-written file.
        """
        records = list(self._vectors.values())
        target = self.storage_path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            data = _RECORDS.dump_json(records)
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, target)
            except Exception:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            logger.error(f"Failed to save vectors to {target}: {exc}")
            raise PersistenceError(
                f"Failed to save vectors to '{target}': {exc}", path=str(target)
            ) from exc

        logger.debug(f"Successfully saved {len(records)} vectors")

    def _load(self) -> None:
        target = self.storage_path
        if not target.exists():
            logger.info(f"No existing vectors file found at {target}, starting with empty database")
            return

        try:
            records = _RECORDS.validate_json(target.read_bytes())
        except (OSError, ValueError, ValidationError) as exc:
            logger.error(f"Failed to load vectors from {target}: {exc}")
            raise PersistenceError(
                f"Failed to load vectors from '{target}': {exc}", path=str(target)
            ) from exc

        for record in records:
            self._vectors[record.id] = record
        logger.info(f"Loaded {len(records)} vectors")
