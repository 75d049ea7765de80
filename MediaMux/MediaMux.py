"""
MediaMux - queue-driven merge, extract, remove-audio and download jobs

Runs one job headless and prints its progress:

    python MediaMux.py merge VIDEO AUDIO [-o OUTPUT]
    python MediaMux.py extract-audio VIDEO [-o OUTPUT]
    python MediaMux.py remove-audio VIDEO [-o OUTPUT]
    python MediaMux.py download URL [--audio-only] [--password PASSWORD]
"""
from __future__ import annotations

import argparse
import logging
import sys

from PySide6.QtCore import QCoreApplication

from mediamux.core.config import APP_NAME, APP_VERSION
from mediamux.core.errors import MediaMuxError
from mediamux.core.formatting import default_output_path
from mediamux.core.models import TERMINAL_JOB_STATES, JobKind, JobState

_COMMAND_KINDS = {
    "merge": JobKind.MERGE,
    "extract-audio": JobKind.EXTRACT_AUDIO,
    "remove-audio": JobKind.REMOVE_AUDIO,
    "download": JobKind.DOWNLOAD,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    merge = sub.add_parser("merge", help="Put an audio track on a video (video copied, audio to AAC).")
    merge.add_argument("video")
    merge.add_argument("audio")
    merge.add_argument("-o", "--output", default="")

    for name, text in (
        ("extract-audio", "Save the audio of a video as MP3."),
        ("remove-audio", "Copy a video without its audio."),
    ):
        command = sub.add_parser(name, help=text)
        command.add_argument("video")
        command.add_argument("-o", "--output", default="")

    download = sub.add_parser("download", help="Download a URL with yt-dlp.")
    download.add_argument("url")
    download.add_argument("-d", "--folder", default="")
    download.add_argument("-n", "--filename", default="")
    download.add_argument("--video-format", default="")
    download.add_argument("--audio-format", default="")
    download.add_argument("--audio-only", action="store_true")
    download.add_argument("--password", default="")
    return parser


def _job_values(args: argparse.Namespace, download_location: str) -> dict[str, object]:
    kind = _COMMAND_KINDS[args.command]
    if kind is JobKind.DOWNLOAD:
        return {
            "url": args.url,
            "output_folder": args.folder or download_location,
            "filename": args.filename,
            "video_format_id": args.video_format,
            "audio_format_id": args.audio_format,
            "audio_only": args.audio_only,
            "password": args.password,
        }
    values: dict[str, object] = {
        "video_path": args.video,
        "output_path": args.output or default_output_path(kind, args.video),
    }
    if kind is JobKind.MERGE:
        values["audio_path"] = args.audio
    return values


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(APP_VERSION)
    app.setOrganizationName(APP_NAME)

    from mediamux.app_controller import AppController

    controller = AppController()
    controller.config.auto_start_queue = False
    kind = _COMMAND_KINDS[args.command]
    try:
        job_id = controller.submit(kind, _job_values(args, controller.config.download_location))
    except MediaMuxError as exc:
        print(f"{APP_NAME}: {exc}", file=sys.stderr)
        return 2

    outcome: dict[str, str] = {}

    def on_progress(progress_job_id: int, percent: int) -> None:
        if progress_job_id == job_id:
            print(f"\r{percent:3d}%", end="", flush=True)

    def on_state(state_job_id: int, state: str, error: str) -> None:
        if state_job_id != job_id or state not in TERMINAL_JOB_STATES:
            return
        outcome["state"] = state
        outcome["error"] = error
        app.quit()

    controller.jobProgress.connect(on_progress)
    controller.jobStateChanged.connect(on_state)
    controller.logChanged.connect(lambda text: print(text, file=sys.stderr))
    controller.start_queue()

    job = controller.queue.get(job_id)
    if job is not None and job.is_terminal:
        outcome.setdefault("state", job.state)
        outcome.setdefault("error", job.error)
    else:
        app.exec()
    print()
    controller.shutdown()

    if outcome.get("state") != JobState.COMPLETED.value:
        print(f"{APP_NAME}: {outcome.get('error') or 'job failed'}", file=sys.stderr)
        return 1
    finished = controller.queue.get(job_id)
    print(finished.output_location if finished is not None else "")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
