from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from trackfinder.core.config import Settings
from trackfinder.core.errors import StoreUnavailable
from trackfinder.services.storage import (
    LocalBlobStore,
    R2BlobStore,
    build_blob_key,
    build_blob_store,
    guess_content_type,
)


def _r2_settings(**overrides) -> Settings:
    values = dict(
        storage_mode="r2",
        r2_endpoint="https://example.r2.cloudflarestorage.com",
        r2_bucket="tracks",
        r2_access_key_id="key",
        r2_secret_access_key="secret",
        r2_prefix="prod/",
        public_base_url="https://cdn.example.com/",
        _env_file=None,
    )
    values.update(overrides)
    return Settings(**values)


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "op")


def test_blob_key_is_sanitized_and_unique():
    a = build_blob_key("tracks", "../My Song (final).mp3")
    b = build_blob_key("tracks", "../My Song (final).mp3")
    assert a.startswith("tracks/uploads/")
    assert a.endswith("_My_Song_final_.mp3")
    assert ".." not in a
    assert a != b


@pytest.mark.parametrize(
    "name,expected",
    [("a.mp3", "audio/mpeg"), ("a.FLAC", "audio/flac"), ("a.png", "image/png"), ("a", "application/octet-stream")],
)
def test_guess_content_type(name, expected):
    assert guess_content_type(name) == expected


def test_local_store_roundtrip(tmp_path):
    store = LocalBlobStore(tmp_path, "http://cdn.local/media/")
    url = store.put("tracks/uploads/x.mp3", b"abc", "audio/mpeg")
    assert url == "http://cdn.local/media/tracks/uploads/x.mp3"
    assert (tmp_path / "tracks/uploads/x.mp3").read_bytes() == b"abc"

    store.delete("tracks/uploads/x.mp3")
    assert not store.exists("tracks/uploads/x.mp3")
    store.delete("tracks/uploads/x.mp3")  # missing is fine


def test_local_store_rejects_escaping_keys(tmp_path):
    store = LocalBlobStore(tmp_path / "root", "http://cdn.local")
    with pytest.raises(ValueError):
        store.put("../outside.mp3", b"x", "audio/mpeg")


def test_r2_put_applies_prefix():
    client = MagicMock()
    store = R2BlobStore(_r2_settings(), client=client)

    url = store.put("/tracks/uploads/x.mp3", b"abc", "audio/mpeg")

    client.put_object.assert_called_once_with(
        Bucket="tracks", Key="prod/tracks/uploads/x.mp3", Body=b"abc", ContentType="audio/mpeg"
    )
    assert url == "https://cdn.example.com/prod/tracks/uploads/x.mp3"


def test_r2_put_failure_is_store_unavailable():
    client = MagicMock()
    client.put_object.side_effect = _client_error("InternalError")
    store = R2BlobStore(_r2_settings(), client=client)
    with pytest.raises(StoreUnavailable):
        store.put("k", b"x", "audio/mpeg")


def test_r2_delete_ignores_missing_key():
    client = MagicMock()
    client.delete_object.side_effect = _client_error("NoSuchKey")
    R2BlobStore(_r2_settings(), client=client).delete("k")

    client.delete_object.side_effect = _client_error("AccessDenied")
    with pytest.raises(StoreUnavailable):
        R2BlobStore(_r2_settings(), client=client).delete("k")


def test_r2_exists_maps_missing_to_false():
    client = MagicMock()
    store = R2BlobStore(_r2_settings(), client=client)
    assert store.exists("tracks/uploads/x.mp3") is True
    client.head_object.assert_called_once_with(Bucket="tracks", Key="prod/tracks/uploads/x.mp3")

    client.head_object.side_effect = _client_error("404")
    assert store.exists("tracks/uploads/x.mp3") is False

    client.head_object.side_effect = _client_error("AccessDenied")
    with pytest.raises(StoreUnavailable):
        store.exists("tracks/uploads/x.mp3")


def test_r2_requires_credentials():
    with pytest.raises(RuntimeError, match="R2_BUCKET"):
        R2BlobStore(_r2_settings(r2_bucket=None), client=MagicMock())


def test_build_blob_store_defaults_to_local(tmp_path):
    settings = Settings(storage_mode="local", local_storage_dir=str(tmp_path), _env_file=None)
    assert isinstance(build_blob_store(settings), LocalBlobStore)
