"""Multi-step course saves.

A course save is a sequence of independent writes: thumbnail upload, course
row, then each module and each of its lessons (with optional video upload).
There is no surrounding transaction. Upload failures and lesson write
failures are collected as warnings and the save keeps going; a failure to
write a module stops the save, leaving whatever was already committed.
"""

import json
from flask import current_app, request
from sqlalchemy.exc import SQLAlchemyError
from academy.extensions import db
from academy.models import Course, Module, Lesson
from academy.models.course import DIFFICULTIES, COURSE_STATUSES
from academy.models.lesson import LESSON_TYPES
from academy.helpers.grading import normalize_quiz_data
from academy.helpers.media import (
    allowed_file, extract_youtube_id, store_thumbnail, store_video,
    ALLOWED_IMG_EXT, ALLOWED_VIDEO_EXT,
)


class PayloadError(ValueError):
    pass


class CourseSaveError(Exception):
    """A save stopped partway; ``course`` and ``warnings`` describe what was written."""

    def __init__(self, message, course=None, warnings=None):
        super().__init__(message)
        self.course = course
        self.warnings = warnings or []


def load_payload(missing_message="Missing course data"):
    """Read the JSON payload from a multipart ``data`` field or a JSON body."""
    raw = request.form.get("data")
    if raw is not None:
        try:
            data = json.loads(raw)
        except ValueError:
            raise PayloadError("Invalid JSON format")
    else:
        data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise PayloadError(missing_message)
    return data


def lesson_video_field(module_index, lesson_index):
    return f"module_{module_index}_lesson_{lesson_index}_video"


def validate_course_fields(data, creating=False):
    if creating or "title" in data:
        if not str(data.get("title") or "").strip():
            return "Title is required"
    if creating or "difficulty" in data:
        if data.get("difficulty") not in DIFFICULTIES:
            return f"Difficulty must be one of {list(DIFFICULTIES)}"
    if "status" in data and data["status"] not in COURSE_STATUSES:
        return f"Status must be one of {list(COURSE_STATUSES)}"
    return None


def apply_course_fields(course, data):
    if "title" in data:
        course.title = str(data["title"]).strip()
    for field in ("description", "category", "difficulty", "status", "thumbnail_url"):
        if field in data:
            setattr(course, field, data[field])


def build_lesson_fields(data, existing=None):
    """Validate lesson input; returns ``(fields, error)``.

    Only keys present in ``data`` are written for an existing lesson, except
    that the type-specific payload is always re-checked against the type.
    """
    default_passing = current_app.config.get("DEFAULT_PASSING_SCORE", 70)
    fields = {}

    lesson_type = data.get("type") or (existing.type if existing else "video")
    if lesson_type not in LESSON_TYPES:
        return None, f"Lesson type must be one of {list(LESSON_TYPES)}"
    fields["type"] = lesson_type

    if "title" in data or existing is None:
        title = str(data.get("title") or "").strip()
        if not title:
            return None, "Lesson title is required"
        fields["title"] = title

    for key in ("description", "content", "video_url"):
        if key in data:
            fields[key] = data[key] or None

    if "duration_seconds" in data:
        try:
            duration = int(data["duration_seconds"] or 0)
        except (TypeError, ValueError):
            return None, "Duration must be a whole number of seconds"
        if duration < 0:
            return None, "Duration cannot be negative"
        fields["duration_seconds"] = duration

    if "youtube_url" in data:
        fields["youtube_url"] = data["youtube_url"] or None
    if lesson_type == "youtube":
        url = fields.get("youtube_url", existing.youtube_url if existing else None)
        if not extract_youtube_id(url):
            return None, "A valid YouTube URL is required"

    if lesson_type == "quiz":
        raw_quiz = data.get("quiz_data", existing.quiz_data if existing else None)
        quiz_data, error = normalize_quiz_data(raw_quiz, default_passing)
        if error:
            return None, error
        fields["quiz_data"] = quiz_data

    if lesson_type == "assignment":
        raw = data.get("assignment_data", existing.assignment_data if existing else None) or {}
        prompt = str(raw.get("prompt") or "").strip() if isinstance(raw, dict) else ""
        if not prompt:
            return None, "An assignment needs a prompt"
        fields["assignment_data"] = {"prompt": prompt}

    # Payloads belonging to another lesson type are dropped
    if lesson_type != "quiz":
        fields["quiz_data"] = None
    if lesson_type != "assignment":
        fields["assignment_data"] = None

    return fields, None


def recompute_duration(course):
    course.duration_minutes = course.total_duration_seconds // 60


def _upload_thumbnail(files, course_id, warnings):
    thumbnail = files.get("thumbnail")
    if not thumbnail or not thumbnail.filename:
        return None
    if not allowed_file(thumbnail.filename, ALLOWED_IMG_EXT):
        warnings.append(f"Thumbnail upload failed: unsupported file type '{thumbnail.filename}'")
        return None
    result = store_thumbnail(thumbnail, course_id)
    if not result["success"]:
        warnings.append(f"Thumbnail upload failed: {result['error']}")
        return None
    return result["file_url"]


def upload_lesson_video(video, course_id, fields, warnings):
    if not allowed_file(video.filename, ALLOWED_VIDEO_EXT):
        warnings.append(f"Video upload failed: unsupported file type '{video.filename}'")
        return
    result, duration, _ = store_video(video, course_id)
    if not result["success"]:
        warnings.append(f"Video upload failed: {result['error']}")
        return
    fields["video_url"] = result["file_url"]
    if duration:
        fields["duration_seconds"] = duration


def _save_lesson(course, module, module_index, lesson_index, lesson_data, files, warnings):
    title = str(lesson_data.get("title") or "").strip()
    if not title:
        return None

    existing = None
    lesson_id = lesson_data.get("id")
    if lesson_id:
        existing = db.session.get(Lesson, lesson_id)
        if existing is None or existing.module.course_id != course.id:
            warnings.append(f"Lesson {lesson_id} not found; skipped")
            return None

    action = "update" if existing else "create"
    fields, error = build_lesson_fields(lesson_data, existing)
    if error:
        warnings.append(f"Failed to {action} lesson '{title}': {error}")
        return None

    video = files.get(lesson_video_field(module_index, lesson_index))
    if video and video.filename:
        upload_lesson_video(video, course.id, fields, warnings)

    fields["order_index"] = lesson_index
    lesson = existing or Lesson()
    lesson.module_id = module.id
    for key, value in fields.items():
        setattr(lesson, key, value)
    if existing is None:
        db.session.add(lesson)

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Lesson {action} error for '{title}': {e}")
        warnings.append(f"Failed to {action} lesson '{title}'")
        return None
    return lesson


def save_modules(course, modules_data, files, warnings):
    for module_index, module_data in enumerate(modules_data):
        if not isinstance(module_data, dict):
            warnings.append(f"Module {module_index + 1} is malformed; skipped")
            continue
        title = str(module_data.get("title") or "").strip() or f"Module {module_index + 1}"

        module_id = module_data.get("id")
        if module_id:
            module = Module.query.filter_by(id=module_id, course_id=course.id).first()
            if module is None:
                warnings.append(f"Module {module_id} not found; skipped")
                continue
            module.title = title
            module.order_index = module_index
        else:
            module = Module(course_id=course.id, title=title, order_index=module_index)
            db.session.add(module)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Module save error for '{title}': {e}")
            raise CourseSaveError(f"Failed to save module '{title}'", course, warnings)

        for lesson_index, lesson_data in enumerate(module_data.get("lessons") or []):
            if isinstance(lesson_data, dict):
                _save_lesson(course, module, module_index, lesson_index, lesson_data, files, warnings)


def create_course(data, files, author, publish=False):
    """Create a course with its modules and lessons. Returns ``(course, warnings)``."""
    warnings = []
    thumbnail_url = _upload_thumbnail(files, None, warnings)

    course = Course(
        title=str(data["title"]).strip(),
        description=data.get("description"),
        difficulty=data["difficulty"],
        category=data.get("category"),
        thumbnail_url=thumbnail_url or data.get("thumbnail_url"),
        status="draft",
        created_by=author.id if author else None,
    )
    if publish:
        course.publish()
    db.session.add(course)
    db.session.commit()
    current_app.logger.info(f"Course {course.id} created by user {course.created_by}")

    save_modules(course, data.get("modules") or [], files, warnings)

    recompute_duration(course)
    db.session.commit()
    return course, warnings


def save_course(course, data, files, publish=False):
    """Edit-page save: course fields, then every module and lesson in payload order."""
    warnings = []
    thumbnail_url = _upload_thumbnail(files, course.id, warnings)

    apply_course_fields(course, data)
    if thumbnail_url:
        course.thumbnail_url = thumbnail_url
    if publish:
        course.publish()
    course.touch()
    db.session.commit()

    if "modules" in data:
        save_modules(course, data.get("modules") or [], files, warnings)

    recompute_duration(course)
    db.session.commit()
    return course, warnings
