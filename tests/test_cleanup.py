import os

from scribe.models import SessionStatus, UploadStatus


def _touch(path: str) -> str:
    with open(path, "wb") as f:
        f.write(b"audio")
    return path


async def _transcribed_upload(store, storage, name="rec.mp3", chunks=2):
    path = _touch(os.path.join(storage.upload_dir, name))
    stem, ext = os.path.splitext(path)
    chunk_paths = [_touch(f"{stem}_chunk{i}{ext}") for i in range(chunks)]
    upload = await store.create_upload(
        filename=name,
        original_name=name,
        path=path,
        size=5,
        mime_type="audio/mpeg",
    )
    return await store.update_upload_status(upload.id, UploadStatus.transcribed, chunk_paths)


def test_delete_file_is_idempotent(cleanup, storage):
    path = _touch(os.path.join(storage.upload_dir, "twice.mp3"))

    assert cleanup.delete_file(path) is True
    assert cleanup.delete_file(path) is True
    assert not os.path.exists(path)


async def test_cleanup_upload_removes_audio_and_chunks(store, storage, cleanup):
    upload = await _transcribed_upload(store, storage)

    assert await cleanup.cleanup_upload(upload.id) is True

    assert os.listdir(storage.upload_dir) == []
    cleaned = await store.get_upload(upload.id)
    assert cleaned.status is UploadStatus.cleaned
    assert cleaned.chunk_paths == []


async def test_cleanup_skips_upload_not_yet_transcribed(store, storage, cleanup):
    upload = await _transcribed_upload(store, storage)
    await store.update_upload_status(upload.id, UploadStatus.transcribing)

    assert await cleanup.cleanup_upload(upload.id) is False

    assert os.path.exists(upload.path)
    assert (await store.get_upload(upload.id)).status is UploadStatus.transcribing


async def test_cleanup_tolerates_already_missing_files(store, storage, cleanup):
    upload = await _transcribed_upload(store, storage)
    os.remove(upload.chunk_paths[0])

    assert await cleanup.cleanup_upload(upload.id) is True
    assert (await store.get_upload(upload.id)).status is UploadStatus.cleaned


async def test_one_failed_delete_does_not_stop_the_rest(
    store, storage, cleanup, monkeypatch
):
    upload = await _transcribed_upload(store, storage)
    stuck = upload.chunk_paths[0]
    real_delete = storage.delete

    def flaky_delete(path):
        if path == stuck:
            raise PermissionError(13, "Permission denied", path)
        return real_delete(path)

    monkeypatch.setattr(storage, "delete", flaky_delete)

    assert await cleanup.cleanup_upload(upload.id) is True

    assert os.listdir(storage.upload_dir) == [os.path.basename(stuck)]
    assert (await store.get_upload(upload.id)).status is UploadStatus.cleaned


async def test_cleanup_session_requires_saved_transcript(
    store, storage, cleanup, campaign
):
    upload = await _transcribed_upload(store, storage)
    session = await store.create_session(campaign.id, "S", "2026-10-04")
    await store.update_session(session.id, upload_id=upload.id, status=SessionStatus.uploaded)

    assert await cleanup.cleanup_session(session.id) is False
    assert os.path.exists(upload.path)

    await store.update_session(session.id, status=SessionStatus.completed)
    assert await cleanup.cleanup_session(session.id) is True
    assert not os.path.exists(upload.path)


async def test_cleanup_session_removes_legacy_audio(store, storage, cleanup, campaign):
    legacy = _touch(os.path.join(storage.upload_dir, "legacy.wav"))
    session = await store.create_session(
        campaign.id, "S", "2026-10-04", audio_file_path=legacy
    )
    await store.update_session(session.id, status=SessionStatus.transcribed)

    assert await cleanup.cleanup_session(session.id) is True
    assert not os.path.exists(legacy)


async def test_batch_cleanup_counts_successes(store, storage, cleanup):
    first = await _transcribed_upload(store, storage, "a.mp3")
    second = await _transcribed_upload(store, storage, "b.mp3")
    await store.update_upload_status(second.id, UploadStatus.uploaded)

    cleaned = await cleanup.batch_cleanup([first.id, second.id, 9999])

    assert cleaned == 1
    assert (await store.get_upload(first.id)).status is UploadStatus.cleaned
    assert (await store.get_upload(second.id)).status is UploadStatus.uploaded
