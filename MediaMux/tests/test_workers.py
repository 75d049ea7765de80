from __future__ import annotations

import logging
import time
from unittest import mock

import pytest

from fakes import FakeAdapter, FakeProbe
from mediamux.core.config import default_config
from mediamux.core.errors import MetadataFetchFailed, PasswordRequired, ProbeFailed
from mediamux.core.history import RecentFiles
from mediamux.core.models import Failed, MediaProbeResult, RemoteMediaInfo


def _drain(app, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        app.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _collect(signal):
    seen = []
    signal.connect(lambda *args: seen.append(args))
    return seen


def test_bridge_relays_queue_callbacks(qapp):
    from mediamux.workers.queue_bridge import QueueSignalBridge

    history = RecentFiles()
    bridge = QueueSignalBridge(history)
    progress = _collect(bridge.jobProgress)
    states = _collect(bridge.jobStateChanged)
    notes = _collect(bridge.notificationRaised)
    recorded = _collect(bridge.historyRecorded)

    bridge.on_progress(1, 40)
    bridge.on_state_changed(1, "failed", "boom")
    bridge.record_history("/out/a.mp4", "merge")
    bridge.notify("Merge failed", "boom", "error")

    assert progress == [(1, 40)]
    assert states == [(1, "failed", "boom")]
    assert recorded == [("/out/a.mp4", "merge")]
    assert notes == [("Merge failed", "boom", "error")]
    assert history.entries()[0].path == "/out/a.mp4"


def test_bridge_can_mute_notifications(qapp):
    from mediamux.workers.queue_bridge import QueueSignalBridge

    bridge = QueueSignalBridge(notifications_enabled=False)
    notes = _collect(bridge.notificationRaised)

    bridge.notify("Merge completed successfully!", "/out/a.mp4", "success")

    assert notes == []


def test_base_worker_logs_unhandled_failure(qapp, caplog):
    from mediamux.workers.base_worker import BaseWorker

    class ExplodingWorker(BaseWorker):
        name = "explode"

        def run(self):
            self.run_guarded(execute=mock.Mock(side_effect=RuntimeError("boom")))

    worker = ExplodingWorker("https://example.com/v")
    statuses = _collect(worker.statusChanged)
    errors = _collect(worker.errorRaised)
    summaries = _collect(worker.finishedSummary)
    finished = _collect(worker.finished)

    with caplog.at_level(logging.ERROR, logger="mediamux.workers.base_worker"):
        worker.run()

    assert statuses == [("explode", "running"), ("explode", "error")]
    assert errors == [("explode", "boom")]
    assert summaries == []
    assert len(finished) == 1
    assert "explode worker failed for https://example.com/v" in caplog.text
    assert any(record.exc_info for record in caplog.records)


def test_stopped_worker_publishes_nothing(qapp):
    from mediamux.workers.metadata_worker import MetadataWorker

    fetch = mock.Mock()
    worker = MetadataWorker("https://example.com/v", fetch=fetch)
    statuses = _collect(worker.statusChanged)
    summaries = _collect(worker.finishedSummary)
    finished = _collect(worker.finished)

    worker.stop()
    worker.run()

    fetch.assert_not_called()
    assert statuses == []
    assert summaries == []
    assert len(finished) == 1


def test_metadata_worker_emits_info(qapp):
    from mediamux.workers.metadata_worker import MetadataWorker

    info = RemoteMediaInfo(url="https://example.com/v", title="Clip")
    fetch = mock.Mock(return_value=info)
    worker = MetadataWorker("https://example.com/v", password="pw", timeout_seconds=3, fetch=fetch)
    summaries = _collect(worker.finishedSummary)
    statuses = _collect(worker.statusChanged)
    finished = _collect(worker.finished)

    worker.run()

    fetch.assert_called_once_with("https://example.com/v", password="pw", timeout_seconds=3)
    assert summaries == [(("https://example.com/v", info),)]
    assert len(finished) == 1
    assert statuses == [("metadata", "running"), ("metadata", "done")]


def test_metadata_worker_separates_password_prompt_from_errors(qapp):
    from mediamux.workers.metadata_worker import MetadataWorker

    locked = MetadataWorker("https://vimeo.com/1", fetch=mock.Mock(side_effect=PasswordRequired("https://vimeo.com/1")))
    prompts = _collect(locked.passwordRequired)
    locked_errors = _collect(locked.errorRaised)
    locked.run()

    broken = MetadataWorker("https://example.com/v", fetch=mock.Mock(side_effect=MetadataFetchFailed("u", "Unsupported URL")))
    broken_prompts = _collect(broken.passwordRequired)
    broken_errors = _collect(broken.errorRaised)
    broken.run()

    assert prompts == [("https://vimeo.com/1",)]
    assert locked_errors == []
    assert broken_prompts == []
    assert broken_errors == [("metadata", "Unsupported URL")]


def test_media_probe_worker_reports_empty_result_on_failure(qapp):
    from mediamux.workers.media_probe_worker import MediaProbeWorker

    probe = mock.Mock()
    probe.probe.side_effect = ProbeFailed("not media")
    worker = MediaProbeWorker(probe, "/in/a.mp3", role="audio")
    summaries = _collect(worker.finishedSummary)
    logs = _collect(worker.logChanged)

    worker.run()

    assert summaries == [(("audio", MediaProbeResult(path="/in/a.mp3")),)]
    assert "not media" in logs[0][0]


def test_thumbnail_worker_enforces_image_content(qapp):
    from mediamux.workers import thumbnail_worker

    response = mock.MagicMock()
    response.__enter__.return_value = response
    response.headers = {"content-type": "image/jpeg"}
    response.iter_content.return_value = [b"abc", b"", b"def"]
    with mock.patch.object(thumbnail_worker.requests, "get", return_value=response) as get:
        worker = thumbnail_worker.ThumbnailWorker("https://img.example.com/t.jpg")
        summaries = _collect(worker.finishedSummary)
        worker.run()

    get.assert_called_once()
    assert summaries == [(("https://img.example.com/t.jpg", b"abcdef"),)]

    response.headers = {"content-type": "text/html"}
    with mock.patch.object(thumbnail_worker.requests, "get", return_value=response):
        assert thumbnail_worker.fetch_thumbnail_bytes("https://img.example.com/t.jpg") == b""


def test_thumbnail_worker_reports_http_errors(qapp):
    from mediamux.workers import thumbnail_worker

    with mock.patch.object(thumbnail_worker.requests, "get", side_effect=thumbnail_worker.requests.ConnectionError("offline")):
        worker = thumbnail_worker.ThumbnailWorker("https://img.example.com/t.jpg")
        errors = _collect(worker.errorRaised)
        summaries = _collect(worker.finishedSummary)
        worker.run()

    assert errors == [("thumbnail", "offline")]
    assert summaries == [(("https://img.example.com/t.jpg", b""),)]


@pytest.fixture
def controller_factory(qapp, tmp_path):
    from mediamux.app_controller import AppController

    created = []

    def make(adapter, **overrides):
        config = default_config()
        config.download_location = str(tmp_path)
        for key, value in overrides.items():
            setattr(config, key, value)
        adapter.probe = FakeProbe()
        adapter.is_available = lambda _kind: True
        controller = AppController(config, adapter=adapter)
        created.append(controller)
        return controller

    yield make
    for controller in created:
        controller.shutdown(timeout_ms=500)


def _merge_form(tmp_path, name="clip"):
    return {
        "videoPath": str(tmp_path / f"{name}.mp4"),
        "audioPath": str(tmp_path / f"{name}.m4a"),
        "outputPath": str(tmp_path / f"{name}_with_audio.mp4"),
    }


def test_controller_runs_submitted_job_and_records_history(qapp, tmp_path, controller_factory):
    controller = controller_factory(FakeAdapter())
    states = _collect(controller.jobStateChanged)
    history_changes = _collect(controller.historyChanged)

    job_id = controller.submit("merge", _merge_form(tmp_path))

    assert controller.queue.wait_idle(timeout=5)
    assert _drain(qapp, lambda: (job_id, "completed", "") in states)
    assert _drain(qapp, lambda: len(history_changes) == 1)
    assert [entry.path for entry in controller.recent_files()] == ["/out/1.mp4"]
    assert controller.tool_status() == {"ffmpeg": True, "ffprobe": True, "yt-dlp": True}


def test_controller_respects_manual_start(qapp, tmp_path, controller_factory):
    adapter = FakeAdapter()
    controller = controller_factory(adapter, auto_start_queue=False)

    job_id = controller.submit("merge", _merge_form(tmp_path))

    assert adapter.started == []
    assert controller.jobs()[0].job_id == job_id
    controller.remove_job(job_id)
    assert controller.jobs() == []


def test_controller_logs_failure_hint(qapp, tmp_path, controller_factory):
    adapter = FakeAdapter(script={1: [Failed(1, "/out/clip_with_audio.mp4: Permission denied")]})
    controller = controller_factory(adapter)
    logs = _collect(controller.logChanged)

    controller.submit("merge", _merge_form(tmp_path))

    assert controller.queue.wait_idle(timeout=5)
    assert _drain(qapp, lambda: len(logs) >= 2)
    assert "(filesystem)" in logs[0][0]
    assert "write permissions" in logs[1][0]


def test_controller_relays_worker_status_and_metadata(qapp, tmp_path, controller_factory, monkeypatch):
    from mediamux import app_controller

    info = RemoteMediaInfo(url="https://example.com/v", title="Clip")
    monkeypatch.setattr(app_controller, "fetch_media_info", mock.Mock(return_value=info))
    controller = controller_factory(FakeAdapter())
    statuses = _collect(controller.workerStatusChanged)
    ready = _collect(controller.mediaInfoReady)

    assert controller.fetch_metadata("https://example.com/v") is True

    assert _drain(qapp, lambda: ("metadata", "done") in statuses)
    assert _drain(qapp, lambda: ready == [("https://example.com/v", info)])
    assert statuses[0] == ("metadata", "running")


def test_controller_relays_password_prompt(qapp, tmp_path, controller_factory, monkeypatch):
    from mediamux import app_controller

    monkeypatch.setattr(
        app_controller,
        "fetch_media_info",
        mock.Mock(side_effect=PasswordRequired("https://vimeo.com/1")),
    )
    controller = controller_factory(FakeAdapter())
    statuses = _collect(controller.workerStatusChanged)
    prompts = _collect(controller.passwordRequired)

    controller.fetch_metadata("https://vimeo.com/1")

    assert _drain(qapp, lambda: prompts == [("https://vimeo.com/1",)])
    assert _drain(qapp, lambda: ("metadata", "password") in statuses)
