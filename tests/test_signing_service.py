"""
Tests for the signing read-modify-write cycle.
"""
import asyncio

import pytest

from foliosign.core.errors import (
    BlobNotFoundError,
    ConcurrentModificationError,
    DocumentNotFoundError,
    InvalidBase64Error,
    PageOutOfRangeError,
    StorageError,
)
from foliosign.core.signing import SignRequest, SigningService

from conftest import data_uri, image_rects, make_png, page_count


def _request(doc_id, uri, **kwargs):
    params = dict(x=306, y=396, width=200, height=80, page=2)
    params.update(kwargs)
    return SignRequest(document_id=doc_id, signature_data_uri=uri, **params)


class FailingPutBlobs:
    """Blob store whose writes always fail (bucket outage)."""

    def __init__(self, inner):
        self.inner = inner

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def put(self, key, data, content_type="application/pdf"):
        raise StorageError("Failed to put object: service unavailable", key=key)


class InterleavingBlobs:
    """Runs `during_put` once, just before the first write lands."""

    def __init__(self, inner, during_put):
        self.inner = inner
        self.during_put = during_put
        self.outcome = None

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def put(self, key, data, content_type="application/pdf"):
        if self.during_put is not None:
            run, self.during_put = self.during_put, None
            try:
                self.outcome = run()
            except Exception as e:
                self.outcome = e
        self.inner.put(key, data, content_type)


class TestSignDocument:
    """Tests for SigningService.sign_document."""

    def test_sign_overwrites_blob_and_bumps_metadata(self, signing_service, metadata, blobs, stored_doc, png_uri):
        result = asyncio.run(
            signing_service.sign_document(_request(stored_doc["id"], png_uri, visitor_id="visitor-1"))
        )

        stored = blobs.get(stored_doc["storage_key"])
        assert stored == result.pdf_bytes
        assert page_count(stored) == 3
        assert len(image_rects(stored, 1)) == 1

        doc = metadata.get_document(stored_doc["id"])
        assert doc["version"] == 1
        assert doc["visitor_id"] == "visitor-1"
        assert doc["storage_key"] == stored_doc["storage_key"]
        assert doc["updated_at"] >= stored_doc["updated_at"]

    def test_missing_document(self, signing_service, png_uri):
        with pytest.raises(DocumentNotFoundError) as exc:
            asyncio.run(signing_service.sign_document(_request("nope", png_uri)))
        assert exc.value.status_code == 404

    def test_missing_blob(self, signing_service, metadata, png_uri):
        doc = metadata.create_document(name="a.pdf", storage_key="guest/a_1.pdf")
        with pytest.raises(BlobNotFoundError):
            asyncio.run(signing_service.sign_document(_request(doc["id"], png_uri)))
        assert metadata.get_document(doc["id"])["version"] == 0

    @pytest.mark.parametrize("page", [0, 4])
    def test_failed_placement_leaves_document_untouched(
        self, signing_service, metadata, blobs, stored_doc, pdf_bytes, png_uri, page
    ):
        with pytest.raises(PageOutOfRangeError):
            asyncio.run(signing_service.sign_document(_request(stored_doc["id"], png_uri, page=page)))

        assert blobs.get(stored_doc["storage_key"]) == pdf_bytes
        assert metadata.get_document(stored_doc["id"]) == stored_doc

    def test_bad_signature_sets_no_visitor(self, signing_service, metadata, stored_doc):
        with pytest.raises(InvalidBase64Error):
            asyncio.run(
                signing_service.sign_document(_request(stored_doc["id"], "%%%", visitor_id="visitor-1"))
            )
        assert metadata.get_document(stored_doc["id"])["visitor_id"] is None

    def test_concurrent_signs_both_apply(self, signing_service, metadata, blobs, stored_doc):
        """Two placements on one document run one after another; neither is lost."""
        first = _request(stored_doc["id"], data_uri(make_png(50, 20)), x=150, y=200, width=100, height=40)
        second = _request(stored_doc["id"], data_uri(make_png(60, 30, (255, 0, 0, 255))), x=450, y=600, width=120, height=60)

        async def run_both():
            return await asyncio.gather(
                signing_service.sign_document(first),
                signing_service.sign_document(second),
            )

        asyncio.run(run_both())

        stored = blobs.get(stored_doc["storage_key"])
        rects = sorted(image_rects(stored, 1))
        assert len(rects) == 2
        assert rects[0] == pytest.approx((100, 572, 100, 40), abs=0.01)
        assert rects[1] == pytest.approx((390, 162, 120, 60), abs=0.01)
        assert metadata.get_document(stored_doc["id"])["version"] == 2
        assert len(signing_service.locks) == 0

    def test_conflict_from_another_writer(self, metadata, blobs, stored_doc, png_uri):
        """A version bump behind our back surfaces as a 409 and the blob is not written."""

        class RacingMetadata:
            def __init__(self, inner):
                self.inner = inner

            def __getattr__(self, name):
                return getattr(self.inner, name)

            def get_document(self, doc_id):
                doc = self.inner.get_document(doc_id)
                # another process signs right after we read
                self.inner.claim_signature(doc_id, doc["version"], "other", 60)
                self.inner.commit_signature(doc_id, "other", doc["version"] + 1, "other")
                return doc

        before = blobs.get(stored_doc["storage_key"])
        service = SigningService(RacingMetadata(metadata), blobs)
        with pytest.raises(ConcurrentModificationError) as exc:
            asyncio.run(service.sign_document(_request(stored_doc["id"], png_uri)))
        assert exc.value.status_code == 409
        assert blobs.get(stored_doc["storage_key"]) == before
        assert metadata.get_document(stored_doc["id"])["visitor_id"] == "other"

    def test_failed_blob_write_leaves_metadata_untouched(self, metadata, blobs, stored_doc, pdf_bytes, png_uri):
        service = SigningService(metadata, FailingPutBlobs(blobs))
        with pytest.raises(StorageError) as exc:
            asyncio.run(service.sign_document(_request(stored_doc["id"], png_uri, visitor_id="visitor-1")))
        assert exc.value.status_code == 502

        assert blobs.get(stored_doc["storage_key"]) == pdf_bytes
        assert metadata.get_document(stored_doc["id"]) == stored_doc

        # the lease was handed back: a later sign goes through
        asyncio.run(SigningService(metadata, blobs).sign_document(_request(stored_doc["id"], png_uri)))
        assert metadata.get_document(stored_doc["id"])["version"] == 1

    def test_second_process_cannot_sign_mid_write(self, metadata, blobs, stored_doc):
        """Another process (its own lock table) signing while our blob write is in flight gets a 409."""
        first = _request(stored_doc["id"], data_uri(make_png(50, 20)), x=150, y=200, width=100, height=40)
        second = _request(stored_doc["id"], data_uri(make_png(60, 30, (255, 0, 0, 255))), x=450, y=600, width=120, height=60)

        other_process = SigningService(metadata, blobs)
        interleaved = InterleavingBlobs(blobs, lambda: asyncio.run(other_process.sign_document(second)))
        asyncio.run(SigningService(metadata, interleaved).sign_document(first))

        assert isinstance(interleaved.outcome, ConcurrentModificationError)
        assert len(image_rects(blobs.get(stored_doc["storage_key"]), 1)) == 1
        assert metadata.get_document(stored_doc["id"])["version"] == 1

        # retrying after the first write has committed keeps both stamps
        asyncio.run(other_process.sign_document(second))
        assert len(image_rects(blobs.get(stored_doc["storage_key"]), 1)) == 2
        assert metadata.get_document(stored_doc["id"])["version"] == 2
