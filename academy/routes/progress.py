from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from academy.extensions import db
from academy.models import Progress, Lesson, Course, Enrollment
from academy.utils.auth import get_current_user
from academy.helpers.grading import grade_quiz
from academy.helpers.progress import (
    calculate_progress, get_user_progress, sync_enrollment_status, upsert_progress,
)

bp = Blueprint("progress", __name__)


class ProgressError(Exception):
    def __init__(self, message, status):
        super().__init__(message)
        self.status = status


@bp.errorhandler(ProgressError)
def handle_progress_error(e):
    return jsonify({"error": str(e)}), e.status


def load_lesson_for_user():
    """Resolve ``lesson_id`` from the JSON body and check the caller is enrolled."""
    user = get_current_user()
    if not user:
        raise ProgressError("User not found", 404)

    data = request.get_json() or {}
    lesson_id = data.get("lesson_id")
    if not lesson_id:
        raise ProgressError("Missing lesson_id", 400)

    lesson = db.session.get(Lesson, lesson_id)
    if not lesson:
        raise ProgressError("Lesson not found", 404)

    course = lesson.module.course
    enrolled = Enrollment.query.filter_by(user_id=user.id, course_id=course.id).first()
    if not enrolled:
        raise ProgressError("You are not enrolled in this course", 403)
    return user, lesson, course, data


@bp.route("/course/<int:course_id>", methods=["GET"])
@jwt_required()
def course_progress(course_id):
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404
    course = db.get_or_404(Course, course_id)

    return jsonify({
        "course_id": course.id,
        "summary": calculate_progress(course, user.id),
        "lessons": [p.to_dict() for p in get_user_progress(user.id, course)],
    })


@bp.route("/complete", methods=["POST"])
@jwt_required()
def mark_complete():
    user, lesson, course, _ = load_lesson_for_user()
    upsert_progress(user.id, lesson.id, completed=True)
    summary = sync_enrollment_status(user.id, course)
    return jsonify({"message": "Lesson marked as complete", "progress": summary}), 200


@bp.route("/uncomplete", methods=["POST"])
@jwt_required()
def uncomplete_lesson():
    user, lesson, course, _ = load_lesson_for_user()

    progress = Progress.query.filter_by(user_id=user.id, lesson_id=lesson.id).first()
    if not progress:
        return jsonify({"error": "Progress record not found"}), 404

    progress.completed = False
    db.session.commit()
    summary = sync_enrollment_status(user.id, course)
    return jsonify({"message": "Lesson marked as incomplete", "progress": summary}), 200


@bp.route("/watch-time", methods=["POST"])
@jwt_required()
def update_watch_time():
    user, lesson, _, data = load_lesson_for_user()
    try:
        seconds = int(data.get("seconds", 0))
    except (TypeError, ValueError):
        return jsonify({"error": "seconds must be a whole number"}), 400
    if seconds < 0:
        return jsonify({"error": "seconds cannot be negative"}), 400

    progress = upsert_progress(user.id, lesson.id, watch_time_seconds=seconds)
    return jsonify(progress.to_dict()), 200


@bp.route("/quiz", methods=["POST"])
@jwt_required()
def submit_quiz():
    user, lesson, course, data = load_lesson_for_user()
    if lesson.type != "quiz" or not lesson.questions:
        return jsonify({"error": "This lesson has no quiz"}), 400

    try:
        result = grade_quiz(
            lesson.quiz_data,
            data.get("answers") or {},
            current_app.config.get("DEFAULT_PASSING_SCORE", 70),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    fields = {"quiz_answers": result["answers"], "score": result["score"]}
    if result["passed"]:
        fields["completed"] = True
    upsert_progress(user.id, lesson.id, **fields)
    current_app.logger.info(
        f"User {user.id} scored {result['score']}% on lesson {lesson.id}"
    )

    summary = sync_enrollment_status(user.id, course)
    return jsonify({**result, "progress": summary}), 200


@bp.route("/assignment", methods=["POST"])
@jwt_required()
def submit_assignment():
    user, lesson, course, data = load_lesson_for_user()
    if lesson.type != "assignment":
        return jsonify({"error": "This lesson has no assignment"}), 400

    submission = str(data.get("submission") or "").strip()
    if not submission:
        return jsonify({"error": "Submission cannot be empty"}), 400

    upsert_progress(user.id, lesson.id, assignment_submission=submission, completed=True)
    summary = sync_enrollment_status(user.id, course)
    return jsonify({"message": "Assignment submitted", "progress": summary}), 200
