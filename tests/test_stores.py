"""
Tests for metadata stores (SQLite, JSON) and the local blob store.
"""
import time

import pytest

from foliosign.core.errors import (
    BlobNotFoundError,
    ConcurrentModificationError,
    DocumentNotFoundError,
    InvalidUploadError,
    PermissionDeniedError,
)


@pytest.fixture(params=["sqlite", "json"])
def store(request, metadata, json_metadata):
    return metadata if request.param == "sqlite" else json_metadata


class TestMetadataStore:
    """Same behaviour for every metadata backend."""

    def test_create_and_get(self, store):
        row = store.create_document(name="contract.pdf", storage_key="u1/contract_1.pdf", owner_id="u1")
        assert row["id"]
        assert row["version"] == 0
        assert row["visitor_id"] is None
        assert row["created_at"] == row["updated_at"]
        assert store.get_document(row["id"]) == row

    def test_guest_owner_is_none(self, store):
        row = store.create_document(name="a.pdf", storage_key="guest/a_1.pdf", owner_id="")
        assert row["owner_id"] is None

    def test_get_missing(self, store):
        assert store.get_document("nope") is None

    def test_list_by_owner(self, store):
        store.create_document(name="a.pdf", storage_key="u1/a_1.pdf", owner_id="u1")
        store.create_document(name="b.pdf", storage_key="u2/b_1.pdf", owner_id="u2")
        store.create_document(name="c.pdf", storage_key="guest/c_1.pdf", owner_id=None)
        names = [d["name"] for d in store.list_documents("u1")]
        assert names == ["a.pdf"]

    def test_claim_then_commit(self, store):
        row = store.create_document(name="a.pdf", storage_key="guest/a_1.pdf")
        claimed = store.claim_signature(row["id"], 0, "lease-1", 60)
        assert claimed["version"] == 1
        assert claimed["visitor_id"] is None
        assert claimed["updated_at"] == row["updated_at"]
        assert "lease_token" not in claimed

        time.sleep(0.01)
        signed = store.commit_signature(row["id"], "lease-1", 1, "visitor-42")
        assert signed["version"] == 1
        assert signed["visitor_id"] == "visitor-42"
        assert signed["updated_at"] > row["updated_at"]
        assert signed["created_at"] == row["created_at"]

    def test_claim_stale_version(self, store):
        row = store.create_document(name="a.pdf", storage_key="guest/a_1.pdf")
        store.claim_signature(row["id"], 0, "lease-1", 60)
        store.commit_signature(row["id"], "lease-1", 1, None)
        with pytest.raises(ConcurrentModificationError) as exc:
            store.claim_signature(row["id"], 0, "lease-2", 60)
        assert exc.value.status_code == 409
        assert store.get_document(row["id"])["version"] == 1

    def test_claim_blocked_while_lease_held(self, store):
        """A second signer that already read the bumped version still cannot start."""
        row = store.create_document(name="a.pdf", storage_key="guest/a_1.pdf")
        store.claim_signature(row["id"], 0, "lease-1", 60)
        with pytest.raises(ConcurrentModificationError):
            store.claim_signature(row["id"], 1, "lease-2", 60)

    def test_expired_lease_can_be_taken_over(self, store):
        row = store.create_document(name="a.pdf", storage_key="guest/a_1.pdf")
        store.claim_signature(row["id"], 0, "crashed", 0)
        time.sleep(0.01)
        assert store.claim_signature(row["id"], 1, "lease-2", 60)["version"] == 2
        # the stale holder can neither commit nor roll back
        with pytest.raises(ConcurrentModificationError):
            store.commit_signature(row["id"], "crashed", 1, "late")
        assert store.release_signature(row["id"], "crashed") is False
        assert store.get_document(row["id"])["version"] == 2

    def test_release_restores_row(self, store):
        row = store.create_document(name="a.pdf", storage_key="guest/a_1.pdf")
        store.claim_signature(row["id"], 0, "lease-1", 60)
        assert store.release_signature(row["id"], "lease-1") is True
        assert store.get_document(row["id"]) == row
        # lease is free again
        assert store.claim_signature(row["id"], 0, "lease-2", 60)["version"] == 1

    def test_claim_missing(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.claim_signature("nope", 0, "lease-1", 60)
        assert store.release_signature("nope", "lease-1") is False

    def test_delete(self, store):
        row = store.create_document(name="a.pdf", storage_key="guest/a_1.pdf")
        assert store.delete_document(row["id"]) is True
        assert store.get_document(row["id"]) is None
        assert store.delete_document(row["id"]) is False

    def test_ping(self, store):
        store.ping()


class TestLocalBlobStore:
    """Tests for the filesystem blob store and its presigned links."""

    def test_put_get_overwrite(self, blobs):
        blobs.put("guest/a_1.pdf", b"one")
        blobs.put("guest/a_1.pdf", b"two")
        assert blobs.get("guest/a_1.pdf") == b"two"

    def test_get_missing(self, blobs):
        with pytest.raises(BlobNotFoundError) as exc:
            blobs.get("guest/missing.pdf")
        assert exc.value.status_code == 404

    def test_delete_missing_is_ok(self, blobs):
        blobs.delete("guest/missing.pdf")

    @pytest.mark.parametrize("key", ["../escape.pdf", "/etc/passwd", "a/../../b.pdf", ""])
    def test_path_traversal_rejected(self, blobs, key):
        with pytest.raises(InvalidUploadError):
            blobs.put(key, b"x")

    def test_presigned_link_verifies(self, blobs):
        url = blobs.presign_get("u1/a_1.pdf", 60)
        assert url.startswith("http://testserver/blobs/u1/a_1.pdf?")
        query = dict(part.split("=", 1) for part in url.split("?", 1)[1].split("&"))
        blobs.verify("GET", "u1/a_1.pdf", int(query["expires"]), query["signature"])

    def test_presigned_link_is_method_bound(self, blobs):
        url = blobs.presign_get("u1/a_1.pdf", 60)
        query = dict(part.split("=", 1) for part in url.split("?", 1)[1].split("&"))
        with pytest.raises(PermissionDeniedError):
            blobs.verify("PUT", "u1/a_1.pdf", int(query["expires"]), query["signature"])

    def test_expired_link(self, blobs):
        url = blobs.presign_put("u1/a_1.pdf", 60)
        query = dict(part.split("=", 1) for part in url.split("?", 1)[1].split("&"))
        with pytest.raises(PermissionDeniedError):
            blobs.verify("PUT", "u1/a_1.pdf", int(query["expires"]), query["signature"], now=time.time() + 120)
