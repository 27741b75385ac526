from flask import Blueprint, jsonify, request, send_file, current_app, render_template
import io
from flask_jwt_extended import jwt_required
from academy.extensions import db
from academy.models import Enrollment, Course, Progress, Certificate
from academy.utils.auth import get_current_user
from academy.helpers.progress import calculate_progress
from academy.helpers.serializers import (
    course_summary, course_detail, lesson_dict, certificate_dict,
)

bp = Blueprint("students", __name__)


@bp.route("/dashboard", methods=["GET"])
@jwt_required()
def dashboard():
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404

    enrollments = (
        Enrollment.query.filter_by(user_id=user.id)
        .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
        .all()
    )

    courses = []
    for e in enrollments:
        if not e.course:
            continue
        progress_data = calculate_progress(e.course, user.id)
        courses.append({
            "enrollment_id": e.id,
            "status": e.status,
            "enrolled_at": e.enrolled_at.isoformat() if e.enrolled_at else None,
            "course": course_summary(e.course),
            "completed_lessons": progress_data["completed_lessons"],
            "total_lessons": progress_data["total_lessons"],
            "progress": progress_data["overall_percentage"],
        })

    completed = sum(1 for e in enrollments if e.status == "completed")
    return jsonify({
        "user": user.to_dict(),
        "courses": courses,
        "stats": {
            "enrolled": len(enrollments),
            "completed": completed,
            "in_progress": len(enrollments) - completed,
        },
    }), 200


@bp.route("/courses/<int:course_id>/learn", methods=["GET"])
@jwt_required()
def learn(course_id):
    """
    Learning view for one lesson of an enrolled course.

    ``?lesson=<id>`` picks the lesson; unknown or missing ids fall back to
    the first lesson of the course.
    """
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404

    course = db.session.get(Course, course_id)
    if not course:
        return jsonify({"error": "Course not found", "redirect": "/dashboard"}), 404

    enrollment = Enrollment.query.filter_by(user_id=user.id, course_id=course.id).first()
    if not enrollment:
        return jsonify({
            "error": "You are not enrolled in this course. Enroll to gain full access.",
            "redirect": f"/courses/{course.id}",
        }), 403

    lessons = course.lessons
    if not lessons:
        return jsonify({"error": "This course has no lessons yet", "redirect": "/dashboard"}), 404

    requested = request.args.get("lesson", type=int)
    index = next((i for i, l in enumerate(lessons) if l.id == requested), 0)
    current = lessons[index]

    progress_data = calculate_progress(course, user.id)
    row = Progress.query.filter_by(user_id=user.id, lesson_id=current.id).first()

    return jsonify({
        "course": course_detail(course),
        "enrollment_status": enrollment.status,
        "current_lesson": {
            **lesson_dict(current),
            "is_completed": bool(row and row.completed),
            "progress": row.to_dict() if row else None,
        },
        "module": {"id": current.module.id, "title": current.module.title},
        "position": {
            "index": index + 1,
            "total": len(lessons),
            "label": f"Lesson {index + 1} of {len(lessons)}",
        },
        "previous_lesson_id": lessons[index - 1].id if index > 0 else None,
        "next_lesson_id": lessons[index + 1].id if index + 1 < len(lessons) else None,
        "progress": progress_data,
        "can_complete_course": progress_data["overall_percentage"] == 100,
    }), 200


@bp.route("/certificates", methods=["GET"])
@jwt_required()
def list_certificates():
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404
    certificates = (
        Certificate.query.filter_by(user_id=user.id)
        .order_by(Certificate.issued_at.desc())
        .all()
    )
    return jsonify([certificate_dict(c) for c in certificates]), 200


@bp.route("/certificates/<int:certificate_id>/download", methods=["GET"])
@jwt_required()
def download_certificate(certificate_id):
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404
    certificate = Certificate.query.filter_by(
        id=certificate_id, user_id=user.id
    ).first_or_404(description="Certificate not found")

    from weasyprint import HTML

    html = render_template(
        "certificate.html",
        name=user.full_name,
        email=user.email,
        course=certificate.course.title,
        certificate_number=certificate.certificate_number,
        date=certificate.issued_at.strftime("%B %d, %Y"),
        site_url=current_app.config["SITE_URL"],
    )
    pdf = HTML(string=html).write_pdf()

    return send_file(
        io.BytesIO(pdf),
        download_name=f"certificate_{certificate.certificate_number}.pdf",
        as_attachment=True,
        mimetype="application/pdf"
    )
