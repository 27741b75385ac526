"""Module and lesson editing, one row at a time.

Mounted under ``/courses`` next to the course routes; the full-tree editor
save lives in ``courses.save_course``.
"""

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from academy.extensions import db
from academy.models import Course, Module, Lesson
from academy.utils.auth import role_required
from academy.helpers.course_builder import (
    PayloadError, load_payload, build_lesson_fields, recompute_duration, upload_lesson_video,
)
from academy.helpers.ordering import move_item, reindex, next_order_index
from academy.helpers.serializers import module_dict, lesson_dict

bp = Blueprint("lessons", __name__)


def get_module_or_404(course_id, module_id):
    return Module.query.filter_by(id=module_id, course_id=course_id).first_or_404(
        description="Module not found"
    )


def get_lesson_or_404(course_id, lesson_id):
    return (
        Lesson.query.join(Module)
        .filter(Lesson.id == lesson_id, Module.course_id == course_id)
        .first_or_404(description="Lesson not found")
    )


def read_direction():
    direction = (request.get_json() or {}).get("direction")
    if direction not in ("up", "down"):
        return None
    return direction


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------

@bp.route("/<int:course_id>/modules", methods=["POST"])
@jwt_required()
@role_required("admin")
def create_module(course_id):
    course = db.get_or_404(Course, course_id)
    data = request.get_json() or {}
    title = str(data.get("title") or "").strip()
    if not title:
        return jsonify({"error": "Module title is required"}), 400

    module = Module(course_id=course.id, title=title, order_index=next_order_index(course.modules))
    db.session.add(module)
    course.touch()
    db.session.commit()
    return jsonify(module_dict(module, include_answers=True)), 201


@bp.route("/<int:course_id>/modules/<int:module_id>", methods=["PATCH"])
@jwt_required()
@role_required("admin")
def update_module(course_id, module_id):
    module = get_module_or_404(course_id, module_id)
    data = request.get_json() or {}
    title = str(data.get("title") or "").strip()
    if not title:
        return jsonify({"error": "Module title is required"}), 400

    module.title = title
    module.course.touch()
    db.session.commit()
    return jsonify(module_dict(module, include_answers=True)), 200


@bp.route("/<int:course_id>/modules/<int:module_id>", methods=["DELETE"])
@jwt_required()
@role_required("admin")
def delete_module(course_id, module_id):
    module = get_module_or_404(course_id, module_id)
    course = module.course
    if len(course.modules) <= 1:
        return jsonify({"error": "A course must have at least one module"}), 400

    db.session.delete(module)
    db.session.flush()
    db.session.refresh(course)
    reindex(course.ordered_modules)
    recompute_duration(course)
    course.touch()
    db.session.commit()
    current_app.logger.info(f"Module {module_id} deleted from course {course_id}")
    return jsonify({"message": "Module deleted", "id": module_id}), 200


@bp.route("/<int:course_id>/modules/<int:module_id>/move", methods=["PATCH"])
@jwt_required()
@role_required("admin")
def move_module(course_id, module_id):
    module = get_module_or_404(course_id, module_id)
    direction = read_direction()
    if direction is None:
        return jsonify({"error": "direction must be 'up' or 'down'"}), 400

    course = module.course
    modules = course.ordered_modules
    reindex(move_item(modules, modules.index(module), direction))
    course.touch()
    db.session.commit()
    return jsonify({
        "modules": [{"id": m.id, "order_index": m.order_index} for m in course.ordered_modules]
    }), 200


# ---------------------------------------------------------------------------
# Lessons
# ---------------------------------------------------------------------------

@bp.route("/<int:course_id>/modules/<int:module_id>/lessons", methods=["POST"])
@jwt_required()
@role_required("admin")
def create_lesson(course_id, module_id):
    module = get_module_or_404(course_id, module_id)
    try:
        data = load_payload("Missing lesson data")
    except PayloadError as e:
        return jsonify({"error": str(e)}), 400

    fields, error = build_lesson_fields(data)
    if error:
        return jsonify({"error": error}), 400

    warnings = []
    video = request.files.get("video")
    if video and video.filename:
        upload_lesson_video(video, course_id, fields, warnings)

    lesson = Lesson(module_id=module.id, order_index=next_order_index(module.lessons), **fields)
    db.session.add(lesson)
    db.session.flush()
    course = module.course
    db.session.refresh(module)
    recompute_duration(course)
    course.touch()
    db.session.commit()

    return jsonify({"lesson": lesson_dict(lesson, include_answers=True), "warnings": warnings}), 201


@bp.route("/<int:course_id>/lessons/<int:lesson_id>", methods=["PATCH"])
@jwt_required()
@role_required("admin")
def update_lesson(course_id, lesson_id):
    lesson = get_lesson_or_404(course_id, lesson_id)
    try:
        data = load_payload("Missing lesson data")
    except PayloadError as e:
        return jsonify({"error": str(e)}), 400

    fields, error = build_lesson_fields(data, existing=lesson)
    if error:
        return jsonify({"error": error}), 400

    warnings = []
    video = request.files.get("video")
    if video and video.filename:
        upload_lesson_video(video, course_id, fields, warnings)

    for key, value in fields.items():
        setattr(lesson, key, value)
    course = lesson.module.course
    recompute_duration(course)
    course.touch()
    db.session.commit()

    return jsonify({"lesson": lesson_dict(lesson, include_answers=True), "warnings": warnings}), 200


@bp.route("/<int:course_id>/lessons/<int:lesson_id>", methods=["DELETE"])
@jwt_required()
@role_required("admin")
def delete_lesson(course_id, lesson_id):
    lesson = get_lesson_or_404(course_id, lesson_id)
    module = lesson.module
    course = module.course

    db.session.delete(lesson)
    db.session.flush()
    db.session.refresh(module)
    reindex(module.ordered_lessons)
    recompute_duration(course)
    course.touch()
    db.session.commit()
    return jsonify({"message": "Lesson deleted", "id": lesson_id}), 200


@bp.route("/<int:course_id>/lessons/<int:lesson_id>/move", methods=["PATCH"])
@jwt_required()
@role_required("admin")
def move_lesson(course_id, lesson_id):
    lesson = get_lesson_or_404(course_id, lesson_id)
    direction = read_direction()
    if direction is None:
        return jsonify({"error": "direction must be 'up' or 'down'"}), 400

    module = lesson.module
    lessons = module.ordered_lessons
    reindex(move_item(lessons, lessons.index(lesson), direction))
    module.course.touch()
    db.session.commit()
    return jsonify({
        "lessons": [{"id": l.id, "order_index": l.order_index} for l in module.ordered_lessons]
    }), 200
