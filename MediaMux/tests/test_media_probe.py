from __future__ import annotations

import json
import subprocess
from unittest import mock

import pytest

from mediamux.core.errors import ProbeFailed
from mediamux.core.media_probe import MediaProbe, compare_durations, merged_duration, parse_probe_output

PROBE_PAYLOAD = {
    "format": {"duration": "120.500000"},
    "streams": [
        {"codec_type": "video", "codec_name": "h264"},
        {"codec_type": "audio", "codec_name": "aac", "bit_rate": "128000", "sample_rate": "44100"},
    ],
}


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=["ffprobe"], returncode=returncode, stdout=stdout, stderr=stderr)


def test_parse_probe_output_reads_streams():
    result = parse_probe_output("/v.mp4", PROBE_PAYLOAD)

    assert result.duration_seconds == pytest.approx(120.5)
    assert result.has_video and result.has_audio
    assert result.audio_codec == "aac"
    assert result.audio_bitrate == 128000
    assert result.sample_rate == 44100


def test_parse_probe_output_handles_audio_only_and_missing_duration():
    result = parse_probe_output("/a.mp3", {"format": {"duration": "N/A"}, "streams": [{"codec_type": "audio"}]})

    assert result.duration_seconds is None
    assert not result.has_video
    assert result.has_audio


def test_probe_runs_ffprobe_json():
    probe = MediaProbe("/usr/bin/ffprobe")
    with mock.patch("mediamux.core.media_probe.subprocess.run", return_value=_completed(json.dumps(PROBE_PAYLOAD))) as run:
        result = probe.probe("/v.mp4")

    command = run.call_args.args[0]
    assert command[0] == "/usr/bin/ffprobe"
    assert "-show_streams" in command
    assert command[-1] == "/v.mp4"
    assert result.duration_seconds == pytest.approx(120.5)


def test_probe_failure_raises_probe_failed():
    probe = MediaProbe("/usr/bin/ffprobe")
    with mock.patch(
        "mediamux.core.media_probe.subprocess.run",
        return_value=_completed(returncode=1, stderr="/v.mp4: Invalid data found when processing input"),
    ):
        with pytest.raises(ProbeFailed, match="Invalid data"):
            probe.probe("/v.mp4")


def test_probe_without_binary_raises():
    with pytest.raises(ProbeFailed):
        MediaProbe(None).probe("/v.mp4")


def test_duration_or_none_swallows_probe_errors():
    probe = MediaProbe("/usr/bin/ffprobe")
    with mock.patch("mediamux.core.media_probe.subprocess.run", side_effect=OSError("boom")):
        assert probe.duration_or_none("/v.mp4") is None


@pytest.mark.parametrize(
    ("video", "audio", "status"),
    [
        (100.0, 100.4, "match"),
        (100.0, 103.0, "close"),
        (60.0, 90.0, "audio_longer"),
        (90.0, 60.0, "video_longer"),
    ],
)
def test_compare_durations(video, audio, status):
    assert compare_durations(video, audio).status == status


def test_compare_durations_messages():
    assert compare_durations(60.0, 90.0).message == "Audio is 0:30 longer than video. Audio will be trimmed."
    assert compare_durations(100.0, 100.0).message == "Durations match perfectly!"


def test_compare_durations_needs_both():
    assert compare_durations(None, 10.0) is None
    assert compare_durations(10.0, 0) is None


def test_merged_duration_follows_shortest_stream():
    assert merged_duration(120.0, 80.0) == 80.0
    assert merged_duration(80.0, 120.0) == 80.0
    assert merged_duration(None, 80.0) == 80.0
    assert merged_duration(None, None) is None
