from datetime import datetime
from unittest import mock

from bson import ObjectId

from buzzsmile.services import media
from buzzsmile.utils import task_helpers


def _insert_video(sync_db, **fields):
    doc = {
        "owner": ObjectId(),
        "title": "clip",
        "filePath": "/tmp/clip.mp4",
        "status": "queued",
        "createdAt": datetime.utcnow(),
        **fields,
    }
    doc["_id"] = sync_db["videos"].insert_one(doc).inserted_id
    return doc


def test_successful_run_marks_video_ready(sync_db):
    video = _insert_video(sync_db, thumbnailPath="/tmp/thumb.jpg")
    metadata = {"duration": 12.0, "width": 640, "height": 360, "bitrate": 1000, "fps": 25.0}

    with mock.patch.object(media, "concat_to_mp4") as concat, \
            mock.patch.object(media, "read_metadata", return_value=metadata):
        result = task_helpers.run_video_processing(str(video["_id"]), "job-1")

    concat.assert_called_once()
    assert concat.call_args.args[0] == ["/tmp/clip.mp4"]
    assert result["status"] == "ready"

    stored = sync_db["videos"].find_one({"_id": video["_id"]})
    assert stored["status"] == "ready"
    assert stored["processedFilePath"].endswith(f"{video['_id']}.mp4")
    assert stored["downloadExpiresAt"] > stored["processedAt"]
    assert stored["duration"] == 12.0
    assert stored["metadata"]["width"] == 640
    assert stored["editingJob"]["jobId"] == "job-1"
    assert stored["editingJob"]["progress"] == 100


def test_multiple_sources_are_merged(sync_db):
    video = _insert_video(
        sync_db,
        filename="merged-1.mp4",
        isMultipleFiles=True,
        sourceFiles=[{"filePath": "/tmp/a.mp4"}, {"filePath": "/tmp/b.mp4"}],
        thumbnailPath="/tmp/thumb.jpg",
    )
    with mock.patch.object(media, "concat_to_mp4") as concat, \
            mock.patch.object(media, "read_metadata", return_value={}):
        task_helpers.run_video_processing(video["_id"], "job-2")
    assert concat.call_args.args[0] == ["/tmp/a.mp4", "/tmp/b.mp4"]

    stored = sync_db["videos"].find_one({"_id": video["_id"]})
    assert stored["filePath"] == stored["processedFilePath"]
    assert stored["filename"] == f"{video['_id']}.mp4"
    assert stored["format"] == "mp4"


def test_mark_video_failed_records_error(sync_db):
    video = _insert_video(sync_db)
    task_helpers.mark_video_failed(video["_id"], "ffmpeg exploded")

    stored = sync_db["videos"].find_one({"_id": video["_id"]})
    assert stored["status"] == "failed"
    assert stored["failedAt"]
    assert stored["editingJob"]["errorMessage"] == "ffmpeg exploded"


def test_mark_video_failed_never_raises_without_database():
    task_helpers.mark_video_failed(ObjectId(), "no db")


def test_inline_fallback_marks_failure(sync_db):
    video = _insert_video(sync_db)
    with mock.patch.object(media, "concat_to_mp4", side_effect=media.MediaError("bad input")):
        task_helpers.process_inline(str(video["_id"]), "local-job")

    stored = sync_db["videos"].find_one({"_id": video["_id"]})
    assert stored["status"] == "failed"
    assert stored["editingJob"]["errorMessage"] == "bad input"
