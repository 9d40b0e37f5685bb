"""Pytest configuration and fixtures."""

import io
import os
import tarfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from artifact_registry.api.dependencies import get_object_store
from artifact_registry.config import Settings, get_settings
from artifact_registry.database import Base, build_engine, get_db
from artifact_registry.exceptions import StorageError
from artifact_registry.main import app
from artifact_registry.services.accounts import CredentialStore
from artifact_registry.services.packages import PackageStore
from artifact_registry.services.tokens import TokenIssuer

# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace(
        "/artifact_registry", "/artifact_registry_test"
    )
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = build_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USER_PASSWORD = "correct horse battery"  # noqa: S105

ACME_MANIFEST = """\
[package]
name = "acme-widgets"
description = "d"
homepage = "https://acme.example"
repository_url = "https://github.com/acme/widgets"
keywords = ["a", "b"]
"""


class FakeObjectStore:
    """In-memory object store that can be told to fail."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.fail_put = False
        self.fail_delete = False

    def put(self, bucket: str, key: str, data: bytes) -> None:
        self.calls.append(("put", bucket, key))
        if self.fail_put:
            raise StorageError("Object store put returned status 500", "put", bucket, key)
        self.objects[(bucket, key)] = data

    def delete(self, bucket: str, key: str) -> None:
        self.calls.append(("delete", bucket, key))
        if self.fail_delete:
            raise StorageError("Object store delete returned status 500", "delete", bucket, key)
        self.objects.pop((bucket, key), None)


def build_artifact(files: dict[str, str | bytes]) -> bytes:
    """Build a gzip-compressed tarball in memory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def descriptor(name: str = "acme-widgets", **overrides) -> dict:
    """A valid package descriptor."""
    data = {
        "name": name,
        "description": "Widgets for everyone",
        "homepage": "https://acme.example",
        "repository_url": "https://github.com/acme/widgets",
        "keywords": ["widgets", "acme"],
    }
    data.update(overrides)
    return data


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        # For PostgreSQL, create the test database
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def settings():
    """Settings for tests: fast hashing and no live DNS lookups."""
    return Settings(
        database_url=SQLALCHEMY_DATABASE_URL,
        jwt_secret="test-secret",  # noqa: S106
        jwt_audience="registry.test",
        s3_bucket_name="test-artifacts",
        manifest_filename="package.toml",
        check_repository_host=False,
        password_hash_rounds=4,
    )


@pytest.fixture
def object_store():
    """In-memory object store."""
    return FakeObjectStore()


@pytest.fixture
def credential_store(db, settings):
    return CredentialStore(db, settings)


@pytest.fixture
def token_issuer(settings):
    return TokenIssuer(settings)


@pytest.fixture
def package_store(db, object_store, settings):
    return PackageStore(db, object_store, settings)


@pytest.fixture
def user(credential_store):
    """A registered user whose password is USER_PASSWORD."""
    return credential_store.create_user(
        {
            "full_name": "Ada Lovelace",
            "public_email": "ada@example.com",
            "private_email": "Ada.Private@Example.com",
            "password": USER_PASSWORD,
            "password_confirmation": USER_PASSWORD,
        }
    )


@pytest.fixture(scope="function")
def client(db, settings, object_store):
    """Create a test client with database, settings and object store overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_object_store] = lambda: object_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client, user):
    """Log the user in through the API and return bearer headers."""
    response = client.post(
        "/api/v1/auth/login",
        json={"identifier": "ada.private@example.com", "password": USER_PASSWORD},
    )
    assert response.status_code == 200
    token = response.json()["token"]

    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_artifact():
    """Build an in-memory artifact from a {path: content} mapping."""
    return build_artifact


@pytest.fixture
def make_descriptor():
    """Build a valid descriptor, with optional field overrides."""
    return descriptor


@pytest.fixture
def acme_manifest():
    return ACME_MANIFEST


@pytest.fixture
def user_password():
    return USER_PASSWORD
