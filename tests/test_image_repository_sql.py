import pytest
from sqlmodel import SQLModel, Session, create_engine
from sqlmodel.pool import StaticPool

from app.application.media.errors import ErrorKind, PersistenceError
from app.application.ports.image_repo import NewImageRecord
from app.db.models import UploadedImage  # noqa: F401
from app.infrastructure.persistence.sqlalchemy.repositories.image_repository_sql import SqlImageRepository


@pytest.fixture
def session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


def _new(key="posters/musical/m1/poster-1.jpg", **overrides):
    fields = dict(
        original_filename="poster.jpg",
        storage_key=key,
        public_url=f"https://bucket.s3.us-east-1.amazonaws.com/{key}",
        size_bytes=1234,
        mime_type="image/jpeg",
        uploaded_by="alice",
        image_type="poster",
        width=1200,
        height=900,
        entity_type="musical",
        entity_id="m1",
    )
    fields.update(overrides)
    return NewImageRecord(**fields)


def test_create_assigns_id_and_timestamps(session):
    repo = SqlImageRepository(session)
    record = repo.create(_new())
    assert record.id
    assert record.created_at is not None
    assert record.updated_at == record.created_at
    assert record.status == "active"
    assert repo.get(record.id).storage_key == "posters/musical/m1/poster-1.jpg"


def test_create_rejects_missing_storage_key(session):
    repo = SqlImageRepository(session)
    with pytest.raises(PersistenceError) as exc:
        repo.create(_new(key=None, public_url="https://x"))
    assert exc.value.kind == ErrorKind.RECORD_INCOMPLETE
    assert "storage_key" in exc.value.detail


def test_get_unknown_returns_none(session):
    assert SqlImageRepository(session).get("nope") is None


def test_list_by_owner_orders_and_filters(session):
    repo = SqlImageRepository(session)
    first = repo.create(_new("a.jpg"))
    second = repo.create(_new("b.jpg", image_type="thumbnail"))
    third = repo.create(_new("c.jpg"))
    repo.create(_new("d.jpg", uploaded_by="bob"))

    assert [r.id for r in repo.list_by_owner("alice")] == [first.id, second.id, third.id]
    assert [r.id for r in repo.list_by_owner("alice", "poster")] == [first.id, third.id]


def test_list_by_entity(session):
    repo = SqlImageRepository(session)
    repo.create(_new("a.jpg"))
    repo.create(_new("b.jpg", entity_id="m2"))
    assert [r.storage_key for r in repo.list_by_entity("musical", "m1")] == ["a.jpg"]


def test_update_merges_and_refreshes_updated_at(session):
    repo = SqlImageRepository(session)
    record = repo.create(_new())
    updated = repo.update(record.id, {"original_filename": "renamed.jpg"})
    assert updated.original_filename == "renamed.jpg"
    assert updated.width == 1200
    assert updated.storage_key == record.storage_key
    assert updated.updated_at >= record.updated_at


def test_update_unknown_id_returns_none(session):
    assert SqlImageRepository(session).update("nope", {"status": "delete_failed"}) is None


def test_update_rejects_non_updatable_fields(session):
    repo = SqlImageRepository(session)
    record = repo.create(_new())
    with pytest.raises(ValueError):
        repo.update(record.id, {"storage_key": "other"})


def test_delete_reports_whether_a_row_was_removed(session):
    repo = SqlImageRepository(session)
    record = repo.create(_new())
    assert repo.delete(record.id) is True
    assert repo.delete(record.id) is False
    assert repo.get(record.id) is None


def test_duplicate_storage_key_is_a_persistence_error(session):
    repo = SqlImageRepository(session)
    repo.create(_new("same.jpg"))
    with pytest.raises(PersistenceError) as exc:
        repo.create(_new("same.jpg"))
    assert exc.value.kind == ErrorKind.PERSISTENCE_ERROR
