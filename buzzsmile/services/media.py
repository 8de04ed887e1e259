import json
import logging
import os
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

FFMPEG_BIN = os.getenv("FFMPEG_PATH", "ffmpeg")
FFPROBE_BIN = os.getenv("FFPROBE_PATH", "ffprobe")


class MediaError(RuntimeError):
    pass


def ffmpeg_available() -> bool:
    return shutil.which(FFMPEG_BIN) is not None and shutil.which(FFPROBE_BIN) is not None


def _run(command: list) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True,
        )
    except FileNotFoundError as e:
        raise MediaError(f"{command[0]} is not installed") from e
    except subprocess.CalledProcessError as e:
        error_msg = e.stderr.decode(errors="replace")[-500:]
        raise MediaError(f"{command[0]} failed: {error_msg}") from e


def _parse_frame_rate(value: str):
    # ffprobe reports e.g. "30000/1001"
    if not value or value == "0/0":
        return None
    num, _, den = value.partition("/")
    try:
        return round(float(num) / float(den or 1), 3)
    except (ValueError, ZeroDivisionError):
        return None


def parse_ffprobe_output(raw: str) -> dict:
    """Reduce ffprobe's JSON output to the fields stored on a video."""
    data = json.loads(raw or "{}")
    fmt = data.get("format") or {}
    video_stream = next(
        (s for s in data.get("streams") or [] if s.get("codec_type") == "video"),
        {},
    )

    def _number(value, cast=float):
        try:
            return cast(value)
        except (TypeError, ValueError):
            return None

    return {
        "duration": _number(fmt.get("duration")) or 0,
        "width": _number(video_stream.get("width"), int),
        "height": _number(video_stream.get("height"), int),
        "bitrate": _number(fmt.get("bit_rate"), int),
        "fps": _parse_frame_rate(video_stream.get("avg_frame_rate") or video_stream.get("r_frame_rate")),
    }


def read_metadata(video_path) -> dict:
    if not os.path.exists(video_path):
        raise MediaError(f"Video file does not exist: {video_path}")
    result = _run([
        FFPROBE_BIN,
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path),
    ])
    return parse_ffprobe_output(result.stdout.decode(errors="replace"))


def get_video_duration(video_path) -> int:
    """Whole seconds, 0 when the file cannot be read by ffprobe."""
    try:
        return int(read_metadata(video_path)["duration"])
    except MediaError:
        logger.warning("Could not read duration of %s", video_path, exc_info=True)
        return 0


def thumbnail_timemark(duration) -> int:
    """Midpoint clamped to 1..30 seconds, 5 seconds when duration is unknown."""
    if not duration or duration <= 0:
        return 5
    return max(1, min(30, int(duration // 2)))


def generate_thumbnail(video_path, output_dir, name=None) -> str:
    """
    Grab a single JPEG frame from the video.

    Returns the thumbnail path. Raises MediaError when ffmpeg fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    base = str(name) if name else Path(video_path).stem
    output_path = output_dir / f"{base}.jpg"

    timemark = thumbnail_timemark(get_video_duration(video_path))
    _run([
        FFMPEG_BIN,
        "-y",
        "-ss", str(timemark),
        "-i", str(video_path),
        "-frames:v", "1",
        "-q:v", "3",
        str(output_path),
    ])
    if not output_path.exists():
        raise MediaError("Thumbnail generation failed, output file not found")
    return str(output_path)


def transcode_to_mp4(source_path, output_path) -> str:
    """Re-encode to H.264/AAC MP4 with faststart for progressive download."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    _run([
        FFMPEG_BIN,
        "-y",
        "-i", str(source_path),
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-crf", "23",
        "-c:a", "aac",
        "-b:a", "128k",
        "-movflags", "+faststart",
        str(output_path),
    ])
    if not os.path.exists(output_path):
        raise MediaError("Transcode failed, output file not found")
    return str(output_path)


def concat_to_mp4(source_paths: list, output_path) -> str:
    """Join several clips end to end, re-encoding to a common format."""
    if len(source_paths) == 1:
        return transcode_to_mp4(source_paths[0], output_path)

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    inputs = []
    for path in source_paths:
        inputs += ["-i", str(path)]
    streams = "".join(f"[{i}:v:0][{i}:a:0]" for i in range(len(source_paths)))
    filter_graph = f"{streams}concat=n={len(source_paths)}:v=1:a=1[v][a]"
    _run([
        FFMPEG_BIN, "-y", *inputs,
        "-filter_complex", filter_graph,
        "-map", "[v]", "-map", "[a]",
        "-c:v", "libx264", "-preset", "veryfast", "-crf", "23",
        "-c:a", "aac", "-b:a", "128k",
        "-movflags", "+faststart",
        str(output_path),
    ])
    return str(output_path)
