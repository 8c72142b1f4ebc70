import pytest
from fastapi.testclient import TestClient

from bookverse.catalog.store import CatalogStore
from bookverse.config import Settings
from bookverse.main import create_app


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "catalog.json"


@pytest.fixture
def store(data_file):
    return CatalogStore(data_file)


@pytest.fixture
def client(tmp_path, data_file):
    settings = Settings(data_file=data_file, static_dir=tmp_path / "no-static")
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def author(store):
    return store.create("authors", {"name": "Machado de Assis", "nationality": "Brazilian"})


@pytest.fixture
def user(store):
    return store.create("users", {"name": "Ana", "email": "ana@example.com", "password": "s3cret"})


@pytest.fixture
def book(store, author):
    return store.create("books", {"title": "Dom Casmurro", "price": 10, "authorId": author["id"]})
