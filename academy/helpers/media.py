import os
import re
import tempfile
from flask import current_app
from academy.utils.s3_helper import storage

ALLOWED_VIDEO_EXT = {"mp4", "mov", "avi", "mkv", "webm"}
ALLOWED_IMG_EXT = {"png", "jpg", "jpeg", "gif", "webp"}

YOUTUBE_ID_RE = re.compile(
    r"(?:youtube(?:-nocookie)?\.com/(?:watch\?(?:.*&)?v=|embed/|shorts/|live/|v/)"
    r"|youtu\.be/)([A-Za-z0-9_-]{11})"
)
BARE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")


def allowed_file(filename, allowed_ext):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in allowed_ext


def extract_youtube_id(url):
    if not url:
        return None
    url = url.strip()
    if BARE_ID_RE.match(url):
        return url
    match = YOUTUBE_ID_RE.search(url)
    return match.group(1) if match else None


def youtube_thumbnail(video_id):
    return f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg"


def format_lesson_duration(seconds, placeholder="--:--"):
    """Lesson durations render as m:ss."""
    if not seconds:
        return placeholder
    seconds = int(seconds)
    return f"{seconds // 60}:{seconds % 60:02}"


def format_total_duration(seconds):
    """Course totals render as Xh Ym."""
    if not seconds or seconds <= 0:
        return "Duration TBD"
    seconds = int(seconds)
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def format_size(bytes_size):
    """Convert bytes to human-readable GB/MB/KB."""
    if not bytes_size:
        return "0 KB"
    for unit in ["B", "KB", "MB", "GB"]:
        if bytes_size < 1024.0:
            return f"{bytes_size:.2f} {unit}"
        bytes_size /= 1024.0
    return f"{bytes_size:.2f} TB"


def get_video_metadata(video_path):
    """Return (duration_seconds, size_bytes); (None, None) when the file can't be probed."""
    from moviepy import VideoFileClip

    clip = None
    try:
        clip = VideoFileClip(video_path, audio=False)
        duration = int(round(clip.duration)) if clip.duration else None
        return duration, os.path.getsize(video_path)
    except Exception as e:
        current_app.logger.warning(f"Error analyzing video {video_path}: {e}")
        return None, None
    finally:
        if clip is not None:
            clip.close()


def store_video(file_storage, course_id):
    """Probe and upload a lesson video.

    Returns ``(upload_result, duration_seconds, size_bytes)``; the metadata is None when
    the file could not be probed.
    """
    suffix = os.path.splitext(file_storage.filename or "")[1]
    fd, tmp_path = tempfile.mkstemp(suffix=suffix)
    os.close(fd)
    try:
        file_storage.save(tmp_path)
        duration, size = get_video_metadata(tmp_path)
        with open(tmp_path, "rb") as fh:
            result = storage.upload_file(
                fh,
                current_app.config["VIDEO_FOLDER"],
                filename=file_storage.filename,
                course_id=course_id,
            )
        return result, duration, size
    finally:
        os.remove(tmp_path)


def store_thumbnail(file_storage, course_id=None):
    return storage.upload_file(
        file_storage,
        current_app.config["THUMBNAIL_FOLDER"],
        filename=file_storage.filename,
        course_id=course_id,
    )
