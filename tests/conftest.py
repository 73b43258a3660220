import pytest

from quiverdb.embeddings import GloveEmbedding
from quiverdb.vector_store import VectorStore

# Tiny 3-d table: axis 0 ~ animals, axis 2 ~ machines.
GLOVE_LINES = """\
cats 0.9 0.1 0.0
dogs 0.8 0.2 0.0
and 0.3 0.3 0.3
feline 0.95 0.05 0.0
pets 0.7 0.3 0.0
car 0.0 0.1 0.9
engines 0.1 0.0 0.8
machine 0.2 0.2 0.6
learning 0.4 0.4 0.2
broken 0.5 0.5
"""


@pytest.fixture
def glove_file(tmp_path):
    path = tmp_path / "glove.test.3d.txt"
    path.write_text(GLOVE_LINES, encoding="utf-8")
    return path


@pytest.fixture
def provider(glove_file):
    return GloveEmbedding(glove_file)


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "test_vectors.json"


@pytest.fixture
def store(provider, data_file):
    return VectorStore.open(provider, data_file)
