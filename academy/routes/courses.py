from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from academy.extensions import db
from academy.models import Course, Enrollment
from academy.utils.auth import get_current_user, role_required
from academy.utils.s3_helper import storage
from academy.helpers.course_builder import (
    PayloadError, CourseSaveError, load_payload, validate_course_fields,
    apply_course_fields, create_course as build_course, save_course as rebuild_course,
)
from academy.helpers.serializers import course_summary, course_detail

bp = Blueprint("courses", __name__)


def wants_publish(data):
    flag = data.get("publish", request.args.get("publish", request.form.get("publish")))
    if isinstance(flag, str):
        return flag.lower() in ("true", "1", "yes")
    return bool(flag)


def save_error_response(e):
    return jsonify({
        "error": str(e),
        "course": course_summary(e.course) if e.course else None,
        "warnings": e.warnings,
    }), 500


@bp.route("/", methods=["GET"])
def list_courses():
    courses = (
        Course.query.filter_by(status="published")
        .order_by(Course.created_at.desc(), Course.id.desc())
        .all()
    )
    result = []
    for c in courses:
        result.append({
            **course_summary(c),
            "module_count": len(c.modules),
            "lesson_count": c.total_lessons,
        })
    return jsonify(result)


@bp.route("/admin", methods=["GET"])
@jwt_required()
@role_required("admin")
def list_courses_all():
    counts = dict(
        db.session.query(Enrollment.course_id, func.count(Enrollment.id))
        .group_by(Enrollment.course_id)
        .all()
    )
    courses = Course.query.order_by(Course.updated_at.desc(), Course.id.desc()).all()
    return jsonify([
        {**course_summary(c), "student_count": counts.get(c.id, 0)}
        for c in courses
    ])


@bp.route("/<int:course_id>", methods=["GET"])
@jwt_required(optional=True)
def get_course(course_id):
    course = db.get_or_404(Course, course_id)
    user = get_current_user()
    is_admin = bool(user and user.is_admin)

    if course.status == "draft" and not is_admin:
        return jsonify({"error": "Course not found"}), 404

    is_enrolled = False
    if user:
        is_enrolled = Enrollment.query.filter_by(
            user_id=user.id, course_id=course.id
        ).first() is not None

    response = course_detail(course, include_answers=is_admin)
    response["is_enrolled"] = is_enrolled
    return jsonify(response)


@bp.route("/", methods=["POST"])
@jwt_required()
@role_required("admin")
def create_course():
    try:
        data = load_payload()
    except PayloadError as e:
        return jsonify({"error": str(e)}), 400

    error = validate_course_fields(data, creating=True)
    if error:
        return jsonify({"error": error}), 400

    try:
        course, warnings = build_course(data, request.files, get_current_user(), wants_publish(data))
    except CourseSaveError as e:
        return save_error_response(e)

    return jsonify({
        "message": "Course created",
        "course": course_detail(course, include_answers=True),
        "warnings": warnings,
    }), 201


@bp.route("/<int:course_id>", methods=["PUT"])
@jwt_required()
@role_required("admin")
def save_course(course_id):
    """Course editor save: course fields plus the full module/lesson tree."""
    course = db.get_or_404(Course, course_id)
    try:
        data = load_payload()
    except PayloadError as e:
        return jsonify({"error": str(e)}), 400

    error = validate_course_fields(data)
    if error:
        return jsonify({"error": error}), 400

    try:
        course, warnings = rebuild_course(course, data, request.files, wants_publish(data))
    except CourseSaveError as e:
        return save_error_response(e)

    return jsonify({
        "message": "Course updated",
        "course": course_detail(course, include_answers=True),
        "warnings": warnings,
    }), 200


@bp.route("/<int:course_id>", methods=["PATCH"])
@jwt_required()
@role_required("admin")
def update_course(course_id):
    course = db.get_or_404(Course, course_id)
    data = request.get_json() or {}

    error = validate_course_fields(data)
    if error:
        return jsonify({"error": error}), 400

    apply_course_fields(course, data)
    if data.get("status") == "published" and course.published_at is None:
        course.publish()
    course.touch()
    db.session.commit()
    return jsonify(course_summary(course)), 200


@bp.route("/<int:course_id>/publish", methods=["PATCH"])
@jwt_required()
@role_required("admin")
def publish_course(course_id):
    course = db.get_or_404(Course, course_id)
    course.publish()
    course.touch()
    db.session.commit()
    current_app.logger.info(f"Course {course.id} published")

    return jsonify({
        "message": "Course published",
        "id": course.id,
        "status": course.status,
        "published_at": course.published_at.isoformat(),
    }), 200


@bp.route("/<int:course_id>", methods=["DELETE"])
@jwt_required()
@role_required("admin")
def delete_course(course_id):
    course = db.get_or_404(Course, course_id)
    urls = [course.thumbnail_url] + [l.video_url for l in course.lessons]
    db.session.delete(course)
    db.session.commit()
    current_app.logger.info(f"Course {course_id} deleted")

    # Only objects this bucket issued; external and YouTube URLs are left alone
    for key in filter(None, (storage.key_from_url(url) for url in urls)):
        storage.delete_file(key)

    return jsonify({
        "message": "Course deleted successfully",
        "id": course_id
    }), 200
