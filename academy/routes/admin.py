from flask import Blueprint, jsonify, request, current_app
import secrets
import string
from flask_jwt_extended import jwt_required, create_access_token
from sqlalchemy import func
from academy.extensions import db
from academy.models import User, Course, Enrollment
from academy.models.user import ROLES
from academy.utils.auth import role_required
from academy.utils.mailer import mail_enabled, send_invite_email, send_custom_email
from academy.helpers.progress import calculate_progress
from academy.helpers.serializers import course_summary

bp = Blueprint("admin", __name__)

PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length=12):
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def profiles_with_counts(role=None, limit=None):
    """Profiles newest first, each with its enrollment count."""
    counts = (
        db.session.query(Enrollment.user_id, func.count(Enrollment.id).label("enrolled"))
        .group_by(Enrollment.user_id)
        .subquery()
    )
    query = (
        db.session.query(User, func.coalesce(counts.c.enrolled, 0))
        .outerjoin(counts, counts.c.user_id == User.id)
        .order_by(User.created_at.desc(), User.id.desc())
    )
    if role:
        query = query.filter(User.role == role)
    if limit:
        query = query.limit(limit)
    return [{**user.to_dict(), "enrolled_count": int(count)} for user, count in query.all()]


@bp.route("/overview", methods=["GET"])
@jwt_required()
@role_required("admin")
def analytics_overview():
    """Return the admin dashboard stats, recent students and recent courses"""
    total_students = User.query.filter_by(role="student").count()
    total_courses = Course.query.count()
    active_courses = Course.query.filter_by(status="published").count()
    total_enrollments = Enrollment.query.count()

    recent_courses = Course.query.order_by(Course.updated_at.desc(), Course.id.desc()).limit(4).all()

    return jsonify({
        "stats": {
            "total_students": total_students,
            "total_courses": total_courses,
            "active_courses": active_courses,
            "total_enrollments": total_enrollments,
        },
        "recent_students": profiles_with_counts(role="student", limit=5),
        "recent_courses": [course_summary(c) for c in recent_courses],
    }), 200


@bp.route("/students", methods=["GET"])
@jwt_required()
@role_required("admin")
def get_all_students():
    limit = request.args.get("limit", type=int)
    students = profiles_with_counts(role="student", limit=limit)
    return jsonify({"total_students": len(students), "students": students}), 200


@bp.route("/users", methods=["GET"])
@jwt_required()
@role_required("admin")
def get_all_profiles():
    return jsonify(profiles_with_counts()), 200


@bp.route("/users/<int:user_id>/role", methods=["PATCH"])
@jwt_required()
@role_required("admin")
def update_user_role(user_id):
    data = request.get_json() or {}
    role = data.get("role")
    if role not in ROLES:
        return jsonify({"error": f"Role must be one of {list(ROLES)}"}), 400

    user = db.get_or_404(User, user_id, description="User not found")
    user.role = role
    db.session.commit()
    current_app.logger.info(f"User {user.id} role set to {role}")
    return jsonify({"success": True, "user": user.to_dict()}), 200


@bp.route("/courses/<int:course_id>/students", methods=["GET"])
@jwt_required()
@role_required("admin")
def get_students_by_course(course_id):
    course = db.get_or_404(Course, course_id, description="Course not found")
    enrollments = (
        Enrollment.query.filter_by(course_id=course.id)
        .order_by(Enrollment.enrolled_at.desc())
        .all()
    )

    students = []
    for e in enrollments:
        progress_data = calculate_progress(course, e.user_id)
        students.append({
            "student_id": e.student.id,
            "full_name": e.student.full_name,
            "email": e.student.email,
            "status": e.status,
            "enrolled_at": e.enrolled_at.isoformat() if e.enrolled_at else None,
            "completed_lessons": progress_data["completed_lessons"],
            "total_lessons": progress_data["total_lessons"],
            "progress": progress_data["overall_percentage"],
        })
    return jsonify({
        "course_id": course.id,
        "total_students": len(students),
        "students": students
    }), 200


@bp.route("/courses/<int:course_id>/invite", methods=["POST"])
@jwt_required()
@role_required("admin")
def invite_user(course_id):
    """
    Enroll someone by email, creating their account when needed.

    New accounts get no password; their email links to ``/settings`` with an
    invite token so they can set one. Existing users get a link straight to
    the course.
    """
    course = db.session.get(Course, course_id)
    if not course:
        return jsonify({"error": "Course not found"}), 404

    data = request.get_json() or {}
    email = str(data.get("email") or "").strip().lower()
    full_name = str(data.get("full_name") or "").strip()
    if not email:
        return jsonify({"error": "Email is required"}), 400

    site_url = current_app.config["SITE_URL"]
    user = User.query.filter_by(email=email).first()
    is_new_user = user is None

    if is_new_user:
        user = User(full_name=full_name or email.split("@")[0], email=email, role="student")
        db.session.add(user)
        db.session.flush()
        token = create_access_token(
            identity=str(user.id),
            additional_claims={"role": user.role, "invite": True},
            expires_delta=current_app.config["INVITE_TOKEN_EXPIRES"],
        )
        action_link = f"{site_url}/settings?token={token}"
    else:
        action_link = f"{site_url}/learn/{course.id}"

    enrollment = Enrollment.query.filter_by(user_id=user.id, course_id=course.id).first()
    if enrollment is None:
        db.session.add(Enrollment(user_id=user.id, course_id=course.id, status="active"))
    db.session.commit()
    current_app.logger.info(f"Admin invite: user {user.id} enrolled in course {course.id}")

    if mail_enabled():
        try:
            send_invite_email(email, course.title, action_link, is_new_user)
        except Exception as e:
            current_app.logger.error(f"Failed to send invite email to {email}: {e}")
            return jsonify({
                "success": True,
                "message": "User enrolled, but email failed to send."
            }), 200

    return jsonify({
        "success": True,
        "message": "User created and invited!" if is_new_user else "User enrolled successfully!",
        "user": user.to_dict(),
    }), 201 if is_new_user else 200


@bp.route("/generate-password", methods=["GET"])
@jwt_required()
@role_required("admin")
def generate_password_route():
    return jsonify({"password": generate_password()}), 200


@bp.route("/emails/invite", methods=["POST"])
@jwt_required()
@role_required("admin")
def send_manual_invite():
    data = request.get_json() or {}
    email = str(data.get("email") or "").strip().lower()
    course_title = str(data.get("course_title") or "").strip()
    if not email or not course_title:
        return jsonify({"error": "Missing required fields"}), 400

    if not mail_enabled():
        return jsonify({"error": "Email service not configured"}), 503

    temp_password = data.get("temp_password") or generate_password()
    try:
        send_invite_email(
            email,
            course_title,
            f"{current_app.config['SITE_URL']}/login",
            is_new_user=True,
            user_name=data.get("name"),
            temp_password=temp_password,
            subject=f"Welcome to Academy: {course_title}",
        )
    except Exception as e:
        current_app.logger.error(f"Failed to send manual invite to {email}: {e}")
        return jsonify({"error": str(e) or "Failed to send email"}), 502

    return jsonify({"success": True, "message": "Invite email sent successfully"}), 200


@bp.route("/emails/custom", methods=["POST"])
@jwt_required()
@role_required("admin")
def send_custom():
    data = request.get_json() or {}
    to = str(data.get("to") or "").strip()
    subject = str(data.get("subject") or "").strip()
    content = str(data.get("content") or "").strip()
    if not all([to, subject, content]):
        return jsonify({"error": "Missing required fields"}), 400

    if not mail_enabled():
        return jsonify({"error": "Email service not configured"}), 503

    try:
        send_custom_email(to, subject, content)
    except Exception as e:
        current_app.logger.error(f"Failed to send custom email to {to}: {e}")
        return jsonify({"error": str(e) or "Failed to send email"}), 502

    return jsonify({"success": True, "message": "Email sent successfully"}), 200
