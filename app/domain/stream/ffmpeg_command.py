"""FFmpeg command construction for multi-destination restreaming."""

from dataclasses import dataclass

DEFAULT_RTMP_URL_TEMPLATE = "rtmp://a.rtmp.youtube.com/live2/{key}"

VIDEO_ENCODER = "libx264"
PIXEL_FORMAT = "yuv420p"
KEYFRAME_INTERVAL = 50

AUDIO_CODEC = "aac"
AUDIO_BITRATE = "128k"
AUDIO_CHANNELS = 2
AUDIO_SAMPLE_RATE = 44100

OUTPUT_FORMAT = "flv"


@dataclass(frozen=True)
class VideoProfile:
    preset: str
    bitrate: str
    maxrate: str
    bufsize: str


STANDARD_PROFILE = VideoProfile(preset="medium", bitrate="2500k", maxrate="2500k", bufsize="5000k")
MOBILE_PROFILE = VideoProfile(preset="fast", bitrate="1000k", maxrate="1000k", bufsize="2000k")


def select_video_profile(mobile_mode: bool) -> VideoProfile:
    """Lower-bandwidth profile in mobile mode, higher quality otherwise."""
    return MOBILE_PROFILE if mobile_mode else STANDARD_PROFILE


def build_destination_url(key: str, template: str = DEFAULT_RTMP_URL_TEMPLATE) -> str:
    return template.format(key=key.strip())


def _build_input_args(input_path: str, loop_video: bool) -> list[str]:
    args = ["-stream_loop", "-1"] if loop_video else []
    # -re: read at native frame rate, not as fast as possible
    return [*args, "-re", "-i", input_path]


def _build_video_args(profile: VideoProfile) -> list[str]:
    return [
        "-c:v", VIDEO_ENCODER,
        "-preset", profile.preset,
        "-b:v", profile.bitrate,
        "-maxrate", profile.maxrate,
        "-bufsize", profile.bufsize,
        "-pix_fmt", PIXEL_FORMAT,
        "-g", str(KEYFRAME_INTERVAL),
    ]  # fmt: skip


def _build_audio_args() -> list[str]:
    return [
        "-c:a", AUDIO_CODEC,
        "-b:a", AUDIO_BITRATE,
        "-ac", str(AUDIO_CHANNELS),
        "-ar", str(AUDIO_SAMPLE_RATE),
    ]  # fmt: skip


def _build_output_args(stream_keys: list[str], profile: VideoProfile, template: str) -> list[str]:
    # Output options bind to the next output only, so each destination repeats them
    outputs: list[str] = []
    for key in stream_keys:
        outputs += [
            *_build_video_args(profile),
            *_build_audio_args(),
            "-f", OUTPUT_FORMAT,
            build_destination_url(key, template),
        ]  # fmt: skip
    return outputs


def build_restream_cmd(
    input_path: str,
    stream_keys: list[str],
    *,
    loop_video: bool = False,
    mobile_mode: bool = False,
    ffmpeg_bin: str = "ffmpeg",
    url_template: str = DEFAULT_RTMP_URL_TEMPLATE,
) -> list[str]:
    """Build one ffmpeg invocation that decodes the input once and pushes an
    encode of it to every stream key.

    The result is deterministic for the given arguments.
    """
    if not stream_keys:
        raise ValueError("at least one stream key is required")

    return [
        ffmpeg_bin,
        "-hide_banner",
        "-nostdin",
        *_build_input_args(input_path, loop_video),
        *_build_output_args(stream_keys, select_video_profile(mobile_mode), url_template),
    ]
