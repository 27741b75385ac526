from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import IntegrityError
from academy.extensions import db
from academy.models import Enrollment, Course
from academy.utils.auth import get_current_user
from academy.utils.mailer import mail_enabled, send_welcome_email
from academy.helpers.serializers import enrollment_dict

bp = Blueprint("enrollment", __name__)


def welcome(user, course):
    """Send the welcome email; a failure here never fails the enrollment."""
    if not mail_enabled():
        current_app.logger.warning("Mail is not configured; skipping welcome email")
        return False
    try:
        return send_welcome_email(user, course)
    except Exception as e:
        current_app.logger.error(f"Error sending welcome email to {user.email}: {e}")
        return False


@bp.route("/<int:course_id>", methods=["POST"])
@jwt_required()
def enroll_course(course_id):
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404

    course = db.session.get(Course, course_id)
    if not course or (course.status == "draft" and not user.is_admin):
        return jsonify({"error": "Course not found"}), 404

    if course.status == "locked":
        return jsonify({"error": "Course is locked"}), 403

    existing = Enrollment.query.filter_by(user_id=user.id, course_id=course.id).first()
    if existing:
        return jsonify({
            "message": "Already enrolled",
            "enrollment": enrollment_dict(existing, include_course=False),
        }), 200

    enrollment = Enrollment(user_id=user.id, course_id=course.id, status="active")
    db.session.add(enrollment)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent request enrolled first
        db.session.rollback()
        existing = Enrollment.query.filter_by(user_id=user.id, course_id=course.id).one()
        return jsonify({
            "message": "Already enrolled",
            "enrollment": enrollment_dict(existing, include_course=False),
        }), 200

    current_app.logger.info(f"User {user.id} enrolled in course {course.id}")
    email_sent = welcome(user, course)

    return jsonify({
        "message": "Enrollment successful",
        "enrollment": enrollment_dict(enrollment, include_course=False),
        "course_title": course.title,
        "email_sent": email_sent,
    }), 201


@bp.route("/", methods=["GET"])
@jwt_required()
def list_enrollments():
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404

    enrollments = (
        Enrollment.query.filter_by(user_id=user.id)
        .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
        .all()
    )
    return jsonify([enrollment_dict(e) for e in enrollments])


@bp.route("/<int:course_id>/status", methods=["GET"])
@jwt_required()
def enrollment_status(course_id):
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404

    enrollment = Enrollment.query.filter_by(user_id=user.id, course_id=course_id).first()
    return jsonify({
        "course_id": course_id,
        "is_enrolled": enrollment is not None,
        "status": enrollment.status if enrollment else None,
    })
