"""HLS repackaging through an external ffmpeg process."""

from __future__ import annotations

import logging
import pathlib
import subprocess

from catalog_sync.errors import TranscodeFailed
from catalog_sync.utils.process import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

PLAYLIST_NAME = "index.m3u8"
HLS_SUFFIXES = {".ts", ".m3u8"}


def purge_hls_output(output_dir: pathlib.Path) -> int:
    """Remove segments and playlists left by a previous asset."""
    if not output_dir.is_dir():
        return 0
    removed = 0
    for path in output_dir.iterdir():
        if path.is_file() and path.suffix in HLS_SUFFIXES:
            path.unlink()
            removed += 1
    return removed


class HlsTranscoder:
    def __init__(
        self,
        *,
        runner: CommandRunner | None = None,
        ffmpeg_bin: str = "ffmpeg",
        segment_seconds: int = 10,
        timeout: float | None = 1800.0,
    ) -> None:
        self.runner = runner or SubprocessRunner()
        self.ffmpeg_bin = ffmpeg_bin
        self.segment_seconds = segment_seconds
        self.timeout = timeout

    def build_args(self, source: pathlib.Path, output_dir: pathlib.Path, slug: str) -> list[str]:
        return [
            self.ffmpeg_bin,
            "-i", str(source),
            "-codec", "copy",
            "-start_number", "0",
            "-hls_time", str(self.segment_seconds),
            "-hls_list_size", "0",
            "-hls_segment_filename", str(output_dir / f"{slug}_%03d.ts"),
            "-y",
            str(output_dir / PLAYLIST_NAME),
        ]

    def transcode(self, source: pathlib.Path, output_dir: pathlib.Path, slug: str) -> pathlib.Path:
        """Blocking; returns the playlist path."""
        output_dir.mkdir(parents=True, exist_ok=True)
        playlist = output_dir / PLAYLIST_NAME
        logger.info("ffmpeg HLS: %s -> %s", source, output_dir)
        try:
            result = self.runner.run(self.build_args(source, output_dir, slug), timeout=self.timeout)
        except FileNotFoundError as exc:
            raise TranscodeFailed(f"Failed to run {self.ffmpeg_bin}, is it installed? ({exc})") from exc
        except subprocess.TimeoutExpired as exc:
            raise TranscodeFailed(f"{self.ffmpeg_bin} killed after {exc.timeout}s") from exc
        if not result.ok:
            raise TranscodeFailed(f"ffmpeg failed (exit {result.returncode}): {result.stderr.strip()}")
        if not playlist.is_file():
            raise TranscodeFailed(f"ffmpeg exited cleanly but {playlist} is missing")
        segments = sum(1 for path in output_dir.glob("*.ts"))
        logger.info("HLS complete: %s segments", segments)
        return playlist
