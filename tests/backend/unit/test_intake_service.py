import io
from dataclasses import replace

import pytest

from autobrief.application.intake_service import IntakeService, UploadedFile
from autobrief.core.domain.summary_job import JobStatus
from autobrief.core.errors import (
    AnonymousUploadError,
    EnqueueError,
    FileTooLargeError,
    InvalidMediaTypeError,
    MissingFileError,
    QuotaExceededError,
)
from autobrief.infrastructure.storage.object_store import build_object_key, sanitize_filename

PDF = "application/pdf"


def _upload(name="Q3 report.pdf", media_type=PDF, data=b"%PDF-1.4 content"):
    return UploadedFile(filename=name, media_type=media_type, stream=io.BytesIO(data))


def _service(repo, object_store, trigger, settings, clock=lambda: 1700000000.5):
    return IntakeService(repo, object_store, trigger, settings, clock=clock)


def test_valid_upload_creates_processing_record_and_enqueues(repo, object_store, trigger, settings, free_user):
    service = _service(repo, object_store, trigger, settings)

    job = service.submit(_upload(), free_user)

    assert job.status == JobStatus.processing
    assert job.owner_id == "u1"
    assert job.source_name == "Q3 report.pdf"
    assert job.media_type == PDF
    assert job.source_path == "u1/1700000000500-Q3_report.pdf"
    assert object_store.objects[job.source_path] == b"%PDF-1.4 content"
    assert trigger.enqueued == [job.job_id]
    assert repo.get(job.job_id) == job


def test_anonymous_upload_goes_under_anonymous_prefix(repo, object_store, trigger, settings):
    job = _service(repo, object_store, trigger, settings).submit(_upload(), None)
    assert job.owner_id is None
    assert job.source_path.startswith("anonymous/")


def test_anonymous_upload_rejected_when_disabled(repo, object_store, trigger, settings):
    service = _service(repo, object_store, trigger, replace(settings, allow_anonymous_uploads=False))
    with pytest.raises(AnonymousUploadError):
        service.submit(_upload(), None)
    assert repo.jobs == {}


def test_missing_file_is_rejected(repo, object_store, trigger, settings, free_user):
    service = _service(repo, object_store, trigger, settings)
    with pytest.raises(MissingFileError) as exc_info:
        service.submit(None, free_user)
    assert exc_info.value.code == "no_file"
    with pytest.raises(MissingFileError):
        service.submit(_upload(name=""), free_user)


def test_empty_file_is_rejected(repo, object_store, trigger, settings, free_user):
    with pytest.raises(MissingFileError):
        _service(repo, object_store, trigger, settings).submit(_upload(data=b""), free_user)
    assert object_store.objects == {}


def test_invalid_type_creates_nothing(repo, object_store, trigger, settings, free_user):
    service = _service(repo, object_store, trigger, settings)

    with pytest.raises(InvalidMediaTypeError) as exc_info:
        service.submit(_upload(name="notes.txt", media_type="text/plain"), free_user)

    assert exc_info.value.http_status == 400
    assert repo.jobs == {}
    assert object_store.objects == {}
    assert trigger.enqueued == []


def test_media_type_parameters_are_ignored(repo, object_store, trigger, settings, free_user):
    job = _service(repo, object_store, trigger, settings).submit(
        _upload(name="talk.mp3", media_type="Audio/MPEG; charset=binary"), free_user
    )
    assert job.media_type == "audio/mpeg"


def test_too_large_creates_nothing(repo, object_store, trigger, settings, free_user):
    service = _service(repo, object_store, trigger, settings)

    with pytest.raises(FileTooLargeError) as exc_info:
        service.submit(_upload(data=b"x" * (settings.max_upload_bytes + 1)), free_user)

    assert exc_info.value.http_status == 413
    assert repo.jobs == {}
    assert object_store.objects == {}


def test_file_at_exact_limit_is_accepted(repo, object_store, trigger, settings, free_user):
    job = _service(repo, object_store, trigger, settings).submit(
        _upload(data=b"x" * settings.max_upload_bytes), free_user
    )
    assert len(object_store.objects[job.source_path]) == settings.max_upload_bytes


def test_sixth_free_upload_is_blocked_before_storage(repo, object_store, trigger, settings, free_user):
    ticks = iter(range(1, 100))
    service = _service(repo, object_store, trigger, settings, clock=lambda: float(next(ticks)))
    for _ in range(5):
        service.submit(_upload(), free_user)

    with pytest.raises(QuotaExceededError) as exc_info:
        service.submit(_upload(), free_user)

    assert exc_info.value.http_status == 403
    assert len(repo.jobs) == 5
    assert len(object_store.objects) == 5


def test_paid_plan_is_not_metered(repo, object_store, trigger, settings, pro_user):
    ticks = iter(range(1, 100))
    service = _service(repo, object_store, trigger, settings, clock=lambda: float(next(ticks)))
    for _ in range(7):
        service.submit(_upload(), pro_user)
    assert len(repo.jobs) == 7


def test_key_collision_picks_next_millisecond(repo, object_store, trigger, settings, free_user):
    object_store.put(build_object_key("u1", "Q3 report.pdf", 1700000000500), b"old", PDF)

    job = _service(repo, object_store, trigger, settings).submit(_upload(), free_user)

    assert job.source_path == "u1/1700000000501-Q3_report.pdf"
    assert object_store.objects["u1/1700000000500-Q3_report.pdf"] == b"old"


def test_enqueue_failure_marks_record_failed(repo, object_store, failing_trigger, settings, free_user):
    service = _service(repo, object_store, failing_trigger, settings)

    with pytest.raises(EnqueueError) as exc_info:
        service.submit(_upload(), free_user)

    assert exc_info.value.http_status == 500
    [job] = repo.jobs.values()
    assert job.status == JobStatus.failed
    assert job.status_detail == "Could not enqueue processing."


def test_record_failure_removes_the_stored_object(repo, object_store, trigger, settings, free_user, monkeypatch):
    def create(job):
        raise RuntimeError("connection refused")

    monkeypatch.setattr(repo, "create", create)
    service = _service(repo, object_store, trigger, settings)

    with pytest.raises(RuntimeError):
        service.submit(_upload(), free_user)

    assert object_store.objects == {}
    assert trigger.enqueued == []


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Q3 report.pdf", "Q3_report.pdf"),
        ("../../etc/passwd", "etc_passwd"),
        ("__weird  name__.docx", "weird_name_.docx"),
        ("résumé.pdf", "r_sum_.pdf"),
        ("***", "upload"),
        ("", "upload"),
    ],
)
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected
