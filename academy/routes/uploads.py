"""
Uploads - through the API or straight from the browser.

``/video`` and ``/thumbnail`` accept multipart files and store them via the
S3 helper. For large videos the frontend asks ``/generate-upload-url`` for a
presigned POST, uploads directly to the bucket, then calls
``/confirm-upload`` to attach the object to a lesson or course.
"""

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from academy.extensions import db
from academy.models import Course, Lesson
from academy.utils.auth import role_required
from academy.utils.s3_helper import storage, ALLOWED_VIDEO_TYPES, ALLOWED_IMAGE_TYPES
from academy.helpers.course_builder import recompute_duration
from academy.helpers.media import (
    allowed_file, format_size, store_thumbnail, store_video, ALLOWED_IMG_EXT, ALLOWED_VIDEO_EXT,
)

bp = Blueprint("upload", __name__)


def _course_id_arg():
    value = request.form.get("course_id") or request.args.get("course_id")
    try:
        return int(value) if value else None
    except ValueError:
        return None


@bp.route("/video", methods=["POST"])
@jwt_required()
@role_required("admin")
def upload_video():
    video = request.files.get("file")
    if not video or not video.filename:
        return jsonify({"error": "No file provided"}), 400
    if not allowed_file(video.filename, ALLOWED_VIDEO_EXT):
        return jsonify({"error": f"Invalid video type. Allowed: {sorted(ALLOWED_VIDEO_EXT)}"}), 400

    result, duration, size = store_video(video, _course_id_arg())
    if not result["success"]:
        return jsonify({"error": f"Upload failed: {result['error']}"}), 502

    return jsonify({
        "file_key": result["file_key"],
        "file_url": result["file_url"],
        "duration_seconds": duration,
        "size": format_size(size),
    }), 201


@bp.route("/thumbnail", methods=["POST"])
@jwt_required()
@role_required("admin")
def upload_thumbnail():
    image = request.files.get("file")
    if not image or not image.filename:
        return jsonify({"error": "No file provided"}), 400
    if not allowed_file(image.filename, ALLOWED_IMG_EXT):
        return jsonify({"error": f"Invalid image type. Allowed: {sorted(ALLOWED_IMG_EXT)}"}), 400

    result = store_thumbnail(image, _course_id_arg())
    if not result["success"]:
        return jsonify({"error": f"Upload failed: {result['error']}"}), 502

    return jsonify({"file_key": result["file_key"], "file_url": result["file_url"]}), 201


@bp.route("/generate-upload-url", methods=["POST"])
@jwt_required()
@role_required("admin")
def generate_upload_url():
    """
    Presigned POST for a direct browser upload.

    Request body:
    {
        "filename": "intro.mp4",
        "filetype": "video/mp4",
        "folder": "videos",     // or "thumbnails"
        "course_id": 12         // optional
    }
    """
    data = request.get_json() or {}
    filename = data.get("filename")
    filetype = data.get("filetype")
    if not filename or not filetype:
        return jsonify({"error": "filename and filetype are required"}), 400

    folder = data.get("folder", "videos")
    if folder == "videos":
        if filetype not in ALLOWED_VIDEO_TYPES:
            return jsonify({"error": f"Invalid video type. Allowed: {ALLOWED_VIDEO_TYPES}"}), 400
        prefix = current_app.config["VIDEO_FOLDER"]
    elif folder == "thumbnails":
        if filetype not in ALLOWED_IMAGE_TYPES:
            return jsonify({"error": f"Invalid image type. Allowed: {ALLOWED_IMAGE_TYPES}"}), 400
        prefix = current_app.config["THUMBNAIL_FOLDER"]
    else:
        return jsonify({"error": "folder must be 'videos' or 'thumbnails'"}), 400

    file_key = storage.build_key(prefix, filename, data.get("course_id"))
    presigned_post = storage.generate_presigned_post(file_key, filetype)
    if presigned_post is None:
        return jsonify({"error": "Could not create upload URL"}), 502

    return jsonify({
        "upload_url": presigned_post["url"],
        "fields": presigned_post["fields"],
        "file_key": file_key,
        "file_url": storage.get_public_url(file_key),
    }), 200


@bp.route("/confirm-upload", methods=["POST"])
@jwt_required()
@role_required("admin")
def confirm_upload():
    """
    Attach a directly uploaded object.

    Request body: ``lesson_id`` (video) or ``course_id`` (thumbnail), plus
    ``file_key`` and an optional ``duration`` in seconds for videos.
    """
    data = request.get_json() or {}
    file_key = data.get("file_key")
    if not file_key:
        return jsonify({"error": "file_key is required"}), 400
    if not data.get("lesson_id") and not data.get("course_id"):
        return jsonify({"error": "lesson_id or course_id is required"}), 400
    if not storage.file_exists(file_key):
        return jsonify({"error": "Uploaded file not found"}), 400

    file_url = storage.get_public_url(file_key)

    if data.get("lesson_id"):
        lesson = db.session.get(Lesson, data["lesson_id"])
        if not lesson:
            return jsonify({"error": "Lesson not found"}), 404
        lesson.video_url = file_url
        duration = data.get("duration")
        if duration:
            try:
                lesson.duration_seconds = int(round(float(duration)))
            except (TypeError, ValueError):
                return jsonify({"error": "duration must be a number of seconds"}), 400
        course = lesson.module.course
        recompute_duration(course)
        course.touch()
        db.session.commit()
        return jsonify({
            "message": "Upload confirmed successfully",
            "lesson": {"id": lesson.id, "video_url": lesson.video_url,
                       "duration_seconds": lesson.duration_seconds},
        }), 200

    course = db.session.get(Course, data["course_id"])
    if not course:
        return jsonify({"error": "Course not found"}), 404
    course.thumbnail_url = file_url
    course.touch()
    db.session.commit()
    return jsonify({
        "message": "Upload confirmed successfully",
        "course": {"id": course.id, "thumbnail_url": course.thumbnail_url},
    }), 200
