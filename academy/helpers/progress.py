"""Per-user progress aggregation.

Progress is never cached: every read sums the user's progress rows for the
course's lessons.
"""

import uuid
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from academy.extensions import db
from academy.models import Progress, Enrollment, Certificate
from academy.helpers.grading import percentage


def get_user_progress(user_id, course):
    """Progress rows for every lesson of ``course``."""
    lesson_ids = [lesson.id for lesson in course.lessons]
    if not lesson_ids:
        return []
    return Progress.query.filter(
        Progress.user_id == user_id,
        Progress.lesson_id.in_(lesson_ids)
    ).all()


def calculate_progress(course, user_id):
    rows = get_user_progress(user_id, course)
    completed_ids = {p.lesson_id for p in rows if p.completed}

    total_lessons = 0
    completed_lessons = 0
    module_progress = []

    for module in course.ordered_modules:
        lessons = module.ordered_lessons
        done = sum(1 for lesson in lessons if lesson.id in completed_ids)
        total_lessons += len(lessons)
        completed_lessons += done
        module_progress.append({
            "module_id": module.id,
            "module_title": module.title,
            "completed": done,
            "total": len(lessons),
            "percentage": percentage(done, len(lessons)),
        })

    return {
        "completed_lessons": completed_lessons,
        "completed_lesson_ids": sorted(completed_ids),
        "total_lessons": total_lessons,
        "overall_percentage": percentage(completed_lessons, total_lessons),
        "modules": module_progress,
    }


def upsert_progress(user_id, lesson_id, **fields):
    """Insert or update the single progress row for (user, lesson)."""
    fields.setdefault("last_watched_at", datetime.utcnow())

    progress = Progress.query.filter_by(user_id=user_id, lesson_id=lesson_id).first()
    if progress is None:
        progress = Progress(user_id=user_id, lesson_id=lesson_id)
        db.session.add(progress)
    for key, value in fields.items():
        setattr(progress, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        # Lost an insert race against the unique constraint; update the winner.
        db.session.rollback()
        progress = Progress.query.filter_by(user_id=user_id, lesson_id=lesson_id).one()
        for key, value in fields.items():
            setattr(progress, key, value)
        db.session.commit()
    return progress


def issue_certificate(user_id, course_id):
    certificate = Certificate.query.filter_by(user_id=user_id, course_id=course_id).first()
    if certificate:
        return certificate
    certificate = Certificate(
        user_id=user_id,
        course_id=course_id,
        certificate_number=f"CERT-{datetime.utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}",
    )
    db.session.add(certificate)
    return certificate


def sync_enrollment_status(user_id, course):
    """Move the enrollment between active and completed to match progress.

    Returns the fresh progress summary.
    """
    summary = calculate_progress(course, user_id)
    enrollment = Enrollment.query.filter_by(user_id=user_id, course_id=course.id).first()
    if enrollment is None:
        return summary

    finished = summary["total_lessons"] > 0 and summary["overall_percentage"] == 100
    if finished and enrollment.status == "active":
        enrollment.status = "completed"
        issue_certificate(user_id, course.id)
        db.session.commit()
    elif not finished and enrollment.status == "completed":
        enrollment.status = "active"
        db.session.commit()
    return summary
