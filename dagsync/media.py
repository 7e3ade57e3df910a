"""Audio transcoding and technical metadata, via ffmpeg and mediainfo."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from .exceptions import DagSyncEncodeError, DagSyncProbeError
from .models import MediaInfo

logger = logging.getLogger(__name__)


def convert(input_path: Path, output_path: Path, ffmpeg_bin: str = "ffmpeg") -> None:
    """Transcode ``input_path`` to ``output_path``.

    The output format follows the output file's extension.

    Raises:
        DagSyncEncodeError: If ffmpeg is missing or exits non-zero
    """
    command = [
        ffmpeg_bin,
        "-y",
        "-i",
        str(input_path),
        str(output_path),
        "-loglevel",
        "error",
    ]
    logger.debug(f"Running {' '.join(command)}")
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise DagSyncEncodeError(f"ffmpeg executable not found: {ffmpeg_bin}") from e

    if result.returncode != 0:
        raise DagSyncEncodeError(
            f"ffmpeg returned {result.returncode} for {input_path}: "
            f"{result.stderr.strip()[:200]}"
        )


def convert_missing(
    root: Path,
    source_ext: str = ".flac",
    target_ext: str = ".ogg",
    ffmpeg_bin: str = "ffmpeg",
) -> list[Path]:
    """Convert every source file under ``root`` whose target does not exist.

    Targets are written next to their sources with ``target_ext``.

    Returns:
        Paths of the newly written files
    """
    converted = []
    for source in sorted(root.rglob(f"*{source_ext}")):
        target = source.with_suffix(target_ext)
        if target.exists():
            continue
        logger.info(f"Converting {source} -> {target}")
        convert(source, target, ffmpeg_bin=ffmpeg_bin)
        converted.append(target)
    return converted


def probe(path: Path, mediainfo_bin: str = "mediainfo") -> MediaInfo:
    """Get technical info about the audio stream of a media file.

    Raises:
        DagSyncProbeError: If the file is missing, mediainfo fails or the
            file has no audio track
    """
    path = Path(path)
    if not path.exists():
        raise DagSyncProbeError(f"Path {path} does not exist")

    try:
        result = subprocess.run(
            [mediainfo_bin, "--Output=JSON", str(path)],
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        raise DagSyncProbeError(f"mediainfo executable not found: {mediainfo_bin}") from e

    if result.returncode != 0:
        raise DagSyncProbeError(
            f"mediainfo returned {result.returncode} for {path}: {result.stderr.strip()}"
        )

    try:
        data = json.loads(result.stdout)
    except ValueError as e:
        raise DagSyncProbeError(f"Invalid mediainfo output for {path}") from e

    track = _find_audio_track(data)
    if track is None:
        raise DagSyncProbeError(f"Failed to find audio track info in {path}")

    try:
        return MediaInfo.from_track(track)
    except KeyError as e:
        raise DagSyncProbeError(f"Audio track of {path} lacks field {e}") from e


def _find_audio_track(data: Any):
    if not isinstance(data, dict):
        return None
    media = data.get("media")
    if not isinstance(media, dict):
        return None
    for track in media.get("track") or []:
        if isinstance(track, dict) and track.get("@type") == "Audio":
            return track
    return None
