from datetime import datetime, timedelta, timezone

import pytest

from filegate.core.errors import UpstreamFailure, ValidationError
from filegate.models.database import build_engine, build_session_factory
from filegate.stores.metadata import MetadataStore

from conftest import make_settings

NOW = datetime.now(timezone.utc).replace(microsecond=0)


def test_insert_user_is_check_then_insert(metadata):
    assert metadata.insert_user("alice") is True
    assert metadata.insert_user("alice") is False

    user = metadata.get_user("alice")
    assert user.user_id == "alice"
    assert user.locked is False
    assert user.phash is None
    assert user.creation_date is not None


def test_insert_user_requires_id(metadata):
    with pytest.raises(ValidationError):
        metadata.insert_user("")


def test_get_credential_returns_first_issued_valid_row(metadata):
    metadata.insert_user("alice")
    first = metadata.insert_credential("alice", "?sig=first", NOW - timedelta(days=1), NOW + timedelta(days=30))
    metadata.insert_credential("alice", "?sig=second", NOW, NOW + timedelta(days=60))

    assert metadata.get_credential("alice").token == first.token
    assert [c.token for c in metadata.list_credentials("alice")] == ["?sig=first", "?sig=second"]


def test_get_credential_skips_expired_rows(metadata):
    metadata.insert_user("alice")
    metadata.insert_credential("alice", "?sig=old", NOW - timedelta(days=400), NOW - timedelta(days=40))

    assert metadata.get_credential("alice") is None

    metadata.insert_credential("alice", "?sig=new", NOW - timedelta(minutes=1), NOW + timedelta(days=360))
    assert metadata.get_credential("alice").token == "?sig=new"


def test_get_credential_unknown_user(metadata):
    assert metadata.get_credential("nobody") is None


def test_insert_and_list_shares(metadata):
    metadata.insert_share("u-1", "q3-summary", "https://s3/shares/q3-summary.pdf", "alice", "abc123", "create")
    metadata.insert_share("u-1", "q3-summary", "https://s3/shares/q3-summary.pdf", "alice", "def456", "edit")
    metadata.insert_share("u-2", "other", "https://s3/shares/other.txt", "bob", "999", "create")

    shares = metadata.list_shares("alice")
    assert [(s.uuid, s.operation, s.source_etag) for s in shares] == [
        ("u-1", "create", "abc123"),
        ("u-1", "edit", "def456"),
    ]


def test_insert_share_rejects_unknown_operation(metadata):
    with pytest.raises(ValidationError):
        metadata.insert_share("u-1", "x", "https://s3/shares/x", "alice", "etag", "delete")


def test_database_errors_become_upstream_failures():
    # no tables created
    engine = build_engine(make_settings())
    store = MetadataStore(build_session_factory(engine))

    with pytest.raises(UpstreamFailure) as excinfo:
        store.insert_user("alice")

    assert excinfo.value.store == "metadata-store"
    assert excinfo.value.operation == "insert_user"
    assert excinfo.value.retryable
