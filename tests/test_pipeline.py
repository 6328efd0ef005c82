"""
End-to-end: upload client -> relay -> catalog -> proxy, all in-process
"""
import pytest

from course_archive.client.errors import CatalogWriteError, DuplicateResource, RelayError
from course_archive.client.hasher import fingerprint_file
from course_archive.client.uploader import ArchiveClient, UploadMetadata

from .conftest import ALICE, BOB, UPLOAD_SECRET


@pytest.fixture
def lecture(tmp_path):
    path = tmp_path / "Lecture 1.pdf"
    path.write_bytes(b"%PDF-1.7 " + b"slides " * 5000)
    return path


@pytest.fixture
def metadata() -> UploadMetadata:
    return UploadMetadata(course_id="cs f111", year="2023-24", semester=1, prof="Dr. Rao")


@pytest.fixture
def alice(client) -> ArchiveClient:
    return ArchiveClient(upload_secret=UPLOAD_SECRET, base_url="http://test", http=client)


@pytest.fixture
def bob(bob_client) -> ArchiveClient:
    return ArchiveClient(upload_secret=UPLOAD_SECRET, base_url="http://test", http=bob_client)


class TestUploadPipeline:
    async def test_upload_then_list_then_download(self, alice, client, store, lecture, metadata):
        progress = []

        resource = await alice.upload(lecture, metadata, on_progress=progress.append)

        assert progress[0] == 0 and progress[-1] == 100
        assert resource["uploader_email"] == ALICE
        assert resource["file_hash"] == fingerprint_file(lecture)
        assert store.objects[resource["hf_path"]] == lecture.read_bytes()

        listing = await client.get("/api/courses/CS F111/resources")
        listed = listing.json()["groups"][0]["resources"]
        assert [r["id"] for r in listed] == [resource["id"]]

        download = await client.get(resource["download_url"])
        assert download.status_code == 200
        assert download.content == lecture.read_bytes()
        assert download.headers["content-disposition"] == 'attachment; filename="Lecture 1.pdf"'

    async def test_sequential_duplicate_rejected_before_store_write(self, alice, bob, store, lecture, metadata):
        await alice.upload(lecture, metadata)
        writes = list(store.put_calls)

        with pytest.raises(DuplicateResource):
            await bob.upload(lecture, metadata)

        assert store.put_calls == writes

    async def test_concurrent_identical_uploads_both_land(self, alice, bob, client, store, lecture, metadata):
        fingerprint = fingerprint_file(lecture)

        # Both check before either inserts
        assert not await alice.check_duplicate(fingerprint)
        assert not await bob.check_duplicate(fingerprint)

        first = await alice.upload_to_relay(lecture, metadata)
        second = await bob.upload_to_relay(lecture, metadata)
        assert first["hf_path"] != second["hf_path"]

        a = await alice.create_resource(metadata, lecture.name, first["hf_path"], fingerprint)
        b = await bob.create_resource(metadata, lecture.name, second["hf_path"], fingerprint)

        assert a["id"] != b["id"]
        assert a["file_hash"] == b["file_hash"] == fingerprint
        assert {a["uploader_email"], b["uploader_email"]} == {ALICE, BOB}
        assert len(store.objects) == 2
        listing = await client.get("/api/courses/CS F111/resources")
        assert listing.json()["total_count"] == 2

    async def test_deleted_resource_blob_still_downloadable(self, alice, client, store, lecture, metadata):
        resource = await alice.upload(lecture, metadata)

        deleted = await client.delete(f"/api/resources/{resource['id']}")
        assert deleted.status_code == 204

        listing = await client.get("/api/courses/CS F111/resources")
        assert listing.json()["total_count"] == 0

        download = await client.get("/proxy", params={"path": resource["hf_path"]})
        assert download.status_code == 200
        assert download.content == lecture.read_bytes()

    async def test_store_failure_leaves_catalog_untouched(self, alice, client, store, lecture, metadata):
        store.fail_writes = True

        with pytest.raises(RelayError, match="Upload to storage failed"):
            await alice.upload(lecture, metadata)

        listing = await client.get("/api/courses/CS F111/resources")
        assert listing.json()["total_count"] == 0

    async def test_rejected_catalog_insert_removes_blob(self, alice, client, store, lecture):
        # The relay takes any year; the catalog caps it at 32 characters
        metadata = UploadMetadata(course_id="CS F111", year="2023-24 " * 6, semester=1)

        with pytest.raises(CatalogWriteError) as exc_info:
            await alice.upload(lecture, metadata)

        assert exc_info.value.compensated is True
        assert store.delete_calls == [exc_info.value.hf_path]
        assert store.objects == {}

    async def test_wrong_secret_uploads_nothing(self, client, store, lecture, metadata):
        intruder = ArchiveClient(upload_secret="wrong", base_url="http://test", http=client)

        with pytest.raises(RelayError) as exc_info:
            await intruder.upload(lecture, metadata)

        assert exc_info.value.status_code == 401
        assert store.objects == {}

    async def test_upload_secret_cannot_delete_catalogued_blob(self, alice, client, store, lecture, metadata):
        resource = await alice.upload(lecture, metadata)

        response = await client.delete(
            "/relay/objects",
            params={"path": resource["hf_path"]},
            headers={"secret": UPLOAD_SECRET}
        )

        assert response.status_code == 403
        assert store.delete_calls == []
        listing = await client.get("/api/courses/CS F111/resources")
        assert listing.json()["total_count"] == 1
        download = await client.get(resource["download_url"])
        assert download.status_code == 200
        assert download.content == lecture.read_bytes()
