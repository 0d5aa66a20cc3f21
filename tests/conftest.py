import os

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from filegate.core.config import Settings
from filegate.main import create_app
from filegate.models.database import build_engine, build_session_factory, create_tables
from filegate.routers.dependencies import build_services
from filegate.stores.metadata import MetadataStore
from filegate.stores.objects import ObjectStore

REGION = "us-east-1"


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from any real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    os.environ.pop("AWS_PROFILE", None)


def make_settings(**overrides) -> Settings:
    values = {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "aws_region": REGION,
        "database_url": "sqlite://",
        "credential_signing_key": "test-signing-key",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def s3(aws_credentials):
    with mock_aws():
        yield boto3.client("s3", region_name=REGION)


@pytest.fixture
def metadata(settings):
    engine = build_engine(settings)
    create_tables(engine)
    yield MetadataStore(build_session_factory(engine))
    engine.dispose()


@pytest.fixture
def objects(s3, settings):
    return ObjectStore(s3, settings)


@pytest.fixture
def services(settings, metadata, objects):
    return build_services(settings, metadata, objects)


@pytest.fixture
def client(settings, metadata, objects):
    app = create_app(settings, objects=objects, metadata=metadata)
    with TestClient(app) as test_client:
        yield test_client


def object_body(s3, bucket, key) -> bytes:
    return s3.get_object(Bucket=bucket, Key=key)["Body"].read()


def bucket_names(s3):
    return {bucket["Name"] for bucket in s3.list_buckets().get("Buckets", [])}
