from academy.helpers.media import (
    extract_youtube_id, format_lesson_duration, format_total_duration, youtube_thumbnail,
)


def _iso(value):
    return value.isoformat() if value else None


def course_summary(course):
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "thumbnail_url": course.thumbnail_url,
        "difficulty": course.difficulty,
        "category": course.category,
        "status": course.status,
        "duration_minutes": course.duration_minutes,
        "created_by": course.created_by,
        "created_at": _iso(course.created_at),
        "updated_at": _iso(course.updated_at),
        "published_at": _iso(course.published_at),
    }


def lesson_dict(lesson, include_answers=False):
    data = {
        "id": lesson.id,
        "module_id": lesson.module_id,
        "title": lesson.title,
        "description": lesson.description,
        "type": lesson.type,
        "video_url": lesson.video_url,
        "youtube_url": lesson.youtube_url,
        "content": lesson.content,
        "duration_seconds": lesson.duration_seconds,
        "duration": format_lesson_duration(lesson.duration_seconds),
        "order_index": lesson.order_index,
        "quiz_data": None,
        "assignment_data": lesson.assignment_data if lesson.type == "assignment" else None,
    }

    if lesson.type == "youtube":
        video_id = extract_youtube_id(lesson.youtube_url)
        data["youtube_id"] = video_id
        data["youtube_thumbnail"] = youtube_thumbnail(video_id) if video_id else None

    if lesson.type == "quiz" and lesson.quiz_data:
        questions = []
        for q in lesson.questions:
            question = {"id": q["id"], "question": q["question"], "options": q["options"]}
            if include_answers:
                question["correct_index"] = q["correct_index"]
            questions.append(question)
        data["quiz_data"] = {
            "questions": questions,
            "passing_score": lesson.quiz_data.get("passing_score"),
        }
    return data


def module_dict(module, include_answers=False):
    lessons = module.ordered_lessons
    return {
        "id": module.id,
        "course_id": module.course_id,
        "title": module.title,
        "order_index": module.order_index,
        "lesson_count": len(lessons),
        "lessons": [lesson_dict(l, include_answers) for l in lessons],
    }


def course_detail(course, include_answers=False):
    data = course_summary(course)
    total_seconds = course.total_duration_seconds
    data.update({
        "modules": [module_dict(m, include_answers) for m in course.ordered_modules],
        "module_count": len(course.modules),
        "lesson_count": course.total_lessons,
        "total_duration_seconds": total_seconds,
        "total_duration": format_total_duration(total_seconds),
    })
    return data


def enrollment_dict(enrollment, include_course=True):
    data = {
        "id": enrollment.id,
        "user_id": enrollment.user_id,
        "course_id": enrollment.course_id,
        "enrolled_at": _iso(enrollment.enrolled_at),
        "status": enrollment.status,
    }
    if include_course and enrollment.course:
        data["course"] = course_summary(enrollment.course)
    return data


def certificate_dict(certificate):
    return {
        "id": certificate.id,
        "course_id": certificate.course_id,
        "course_title": certificate.course.title if certificate.course else None,
        "certificate_number": certificate.certificate_number,
        "issued_at": _iso(certificate.issued_at),
    }
