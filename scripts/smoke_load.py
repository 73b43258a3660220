import os
import sys

from quiverdb.embeddings import GloveEmbedding
from quiverdb.vector_store import VectorStore

embeddings_path = os.getenv("QUIVER_EMBEDDINGS_PATH", os.path.join(os.getcwd(), "data", "glove.6B.50d.txt"))
data_file = sys.argv[1] if len(sys.argv) > 1 else os.path.join(os.getcwd(), "vectors.json")
try:
    provider = GloveEmbedding(embeddings_path)
    print(f"Loaded {provider.vocabulary_size} words, {provider.dimensionality} dimensions")
    store = VectorStore.open(provider, data_file)
    print(f"Loaded {store.count()} vectors from {data_file}")
    for record in store.query_all()[:10]:
        print(
            "-",
            record.id,
            "dims=",
            len(record.vector),
            "preview=",
            repr(record.text[:200]),
        )
except Exception as e:
    print("Error during smoke load:", e)
