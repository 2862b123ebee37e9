import os
import sys

import pytest

from dualcast.capture import build_encoder_args, resolve_encoder_binary
from dualcast.errors import SetupError
from dualcast.models import StreamKind


def _value_after(args, flag):
    return args[args.index(flag) + 1]


def test_linux_screen_args(tmp_path, options):
    args = build_encoder_args("linux", StreamKind.SCREEN, options, tmp_path)

    assert args[:4] == ["-f", "x11grab", "-i", "1+0,0"]
    assert _value_after(args, "-draw_mouse") == "1"
    assert _value_after(args, "-r") == "60"
    assert _value_after(args, "-crf") == "28"
    assert _value_after(args, "-segment_format") == "mpegts"
    assert _value_after(args, "-segment_time") == "3"
    assert _value_after(args, "-segment_list") == str(tmp_path / "segment_list.txt")
    assert _value_after(args, "-segment_list_type") == "flat"
    assert args[-1] == str(tmp_path / "recording_chunk_%03d.mkv")
    assert (tmp_path / "segment_list.txt").exists()


def test_linux_video_uses_options_framerate(tmp_path, options):
    args = build_encoder_args("linux", StreamKind.VIDEO, options, tmp_path)

    assert "-draw_mouse" not in args
    assert _value_after(args, "-i") == "0+0,0"
    assert _value_after(args, "-r") == "24"


def test_darwin_video_sets_size_and_matroska(tmp_path, options):
    args = build_encoder_args("darwin", StreamKind.VIDEO, options, tmp_path)

    assert args[:2] == ["-f", "avfoundation"]
    assert _value_after(args, "-video_size") == "640x480"
    assert _value_after(args, "-framerate") == "24"
    assert _value_after(args, "-i") == "0:none"
    assert _value_after(args, "-pix_fmt") == "nv12"
    assert _value_after(args, "-segment_format") == "matroska"
    assert "-crf" not in args


def test_darwin_screen_has_no_video_size(tmp_path, options):
    args = build_encoder_args("darwin", StreamKind.SCREEN, options, tmp_path)

    assert "-video_size" not in args
    assert _value_after(args, "-framerate") == "60"
    assert _value_after(args, "-i") == "1:none"


def test_windows_screen_and_video_sources(tmp_path, options):
    screen = build_encoder_args("win32", StreamKind.SCREEN, options, tmp_path)
    video = build_encoder_args("win32", StreamKind.VIDEO, options, tmp_path)

    assert screen[:4] == ["-f", "gdigrab", "-i", "desktop"]
    assert video[:4] == ["-f", "dshow", "-i", "video=0"]
    assert _value_after(video, "-pixel_format") == "nv12"


def test_encoder_overrides(tmp_path, options):
    args = build_encoder_args("linux", StreamKind.SCREEN, options, tmp_path,
                              {"segment_time": 6, "container": "ts", "gop": 60})

    assert _value_after(args, "-segment_time") == "6"
    assert _value_after(args, "-g") == "60"
    assert args[-1].endswith("recording_chunk_%03d.ts")


def test_unsupported_platform_has_no_side_effects(tmp_path, options):
    with pytest.raises(SetupError, match="Unsupported OS"):
        build_encoder_args("sunos5", StreamKind.SCREEN, options, tmp_path)
    assert not (tmp_path / "segment_list.txt").exists()


def test_resolve_encoder_binary_absolute_path():
    assert resolve_encoder_binary(sys.executable) == os.path.realpath(sys.executable)


def test_resolve_encoder_binary_missing():
    with pytest.raises(SetupError):
        resolve_encoder_binary("definitely-not-an-encoder-binary")
    with pytest.raises(SetupError):
        resolve_encoder_binary(os.path.join("no", "such", "ffmpeg"))
