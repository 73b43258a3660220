"""Averaged word-vector embeddings backed by a GloVe-format text table."""
import time
from math import isfinite
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from loguru import logger

from .errors import LoadError


class GloveEmbedding:
    """Turn text into a fixed-length vector by averaging pre-trained word vectors.

    Basic usage:
      provider = GloveEmbedding("glove.6B.50d.txt")
      vector = provider.embed("cats and dogs")

    The table is read once at construction; afterwards the provider is stateless and
    ``embed`` is a pure function of its input.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if not self.path.is_file():
            raise LoadError(f"Word-vector file '{self.path}' not found.")

        logger.info(f"Loading GloVe embeddings from {self.path}...")
        try:
            with self.path.open("r", encoding="utf-8") as f:
                self._embeddings, self._dimensions = self.parse(f)
        except (OSError, UnicodeDecodeError) as exc:
            raise LoadError(f"Could not read word-vector file '{self.path}': {exc}") from exc

        if not self._embeddings:
            raise LoadError(f"Word-vector file '{self.path}' contains no word vectors.")

    @staticmethod
    def parse(lines: Iterable[str]) -> Tuple[Dict[str, List[float]], int]:
        """Parse ``word v1 v2 ...`` lines into a word table and its dimensionality.

        The first parsed entry fixes the dimensionality; later entries of a different
        length are skipped rather than treated as errors, as are rows with no numeric
        values or with NaN/infinite values.
        """
        start = time.perf_counter()
        embeddings: Dict[str, List[float]] = {}
        dimensions = 0

        for line in lines:
            parts = line.split()
            if len(parts) < 2:
                continue

            word = parts[0]
            vector = []
            for raw in parts[1:]:
                try:
                    vector.append(float(raw))
                except ValueError:
                    continue

            if not vector or not all(isfinite(v) for v in vector):
                continue
            if dimensions == 0:
                dimensions = len(vector)
            if len(vector) != dimensions:
                continue

            embeddings[word] = vector

        elapsed = time.perf_counter() - start
        logger.info(
            f"GloVe parsing completed: {len(embeddings)} words with {dimensions} dimensions in {elapsed:.2f}s"
        )
        return embeddings, dimensions

    @property
    def dimensionality(self) -> int:
        return self._dimensions

    @property
    def vocabulary_size(self) -> int:
        """Number of words in the loaded table; useful when debugging coverage."""
        return len(self._embeddings)

    def embed(self, text: str) -> List[float]:
        """Average the vectors of the known words in ``text``.

        Words are lowercased and split on whitespace. Unknown words are dropped, and
        text with no known words yields the zero vector.
        """
        words = text.lower().split()
        word_vectors = [self._embeddings[w] for w in words if w in self._embeddings]

        if not word_vectors:
            return [0.0] * self._dimensions

        count = len(word_vectors)
        return [sum(column) / count for column in zip(*word_vectors)]
