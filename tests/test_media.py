import json
import subprocess
from unittest import mock

import pytest

from buzzsmile.services import media


FFPROBE_OUTPUT = json.dumps({
    "format": {"duration": "42.5", "bit_rate": "1200000"},
    "streams": [
        {"codec_type": "audio"},
        {"codec_type": "video", "width": 1920, "height": 1080, "avg_frame_rate": "30000/1001"},
    ],
})


def test_parse_ffprobe_output():
    assert media.parse_ffprobe_output(FFPROBE_OUTPUT) == {
        "duration": 42.5,
        "width": 1920,
        "height": 1080,
        "bitrate": 1200000,
        "fps": 29.97,
    }


def test_parse_ffprobe_output_tolerates_missing_fields():
    assert media.parse_ffprobe_output("{}") == {
        "duration": 0, "width": None, "height": None, "bitrate": None, "fps": None,
    }


@pytest.mark.parametrize("duration, expected", [(None, 5), (0, 5), (1, 1), (10, 5), (600, 30)])
def test_thumbnail_timemark(duration, expected):
    assert media.thumbnail_timemark(duration) == expected


def test_missing_binary_becomes_media_error():
    with mock.patch("buzzsmile.services.media.subprocess.run", side_effect=FileNotFoundError()):
        with pytest.raises(media.MediaError, match="not installed"):
            media._run(["ffmpeg", "-version"])


def test_failed_command_becomes_media_error():
    error = subprocess.CalledProcessError(1, ["ffprobe"], stderr=b"moov atom not found")
    with mock.patch("buzzsmile.services.media.subprocess.run", side_effect=error):
        with pytest.raises(media.MediaError, match="moov atom not found"):
            media._run(["ffprobe", "x.mp4"])


def test_duration_is_zero_for_missing_file(tmp_path):
    assert media.get_video_duration(tmp_path / "missing.mp4") == 0


def test_concat_single_source_transcodes(tmp_path):
    with mock.patch("buzzsmile.services.media.transcode_to_mp4", return_value="out.mp4") as transcode:
        assert media.concat_to_mp4(["a.mov"], tmp_path / "out.mp4") == "out.mp4"
    transcode.assert_called_once()
