"""
Lesson progress, quiz and assignment tests
"""

import pytest

from academy.extensions import db
from academy.models import Certificate, Enrollment, Lesson, Progress

QUIZ = {
    "questions": [
        {"id": "q1", "question": "2 + 2?", "options": ["3", "4"], "correct_index": 1},
        {"id": "q2", "question": "Capital of France?", "options": ["Paris", "Rome"], "correct_index": 0},
        {"id": "q3", "question": "Python is?", "options": ["A snake", "A language", "Both"],
         "correct_index": 2},
    ],
    "passing_score": 60,
}


@pytest.fixture
def enrolled(student, make_course, enroll):
    course = make_course(layout=(2, 1))
    enroll(student, course)
    return course


@pytest.fixture
def quiz_lesson(enrolled):
    lesson = enrolled.lessons[-1]
    lesson.type = "quiz"
    lesson.quiz_data = dict(QUIZ)
    db.session.commit()
    return lesson


def complete(client, headers, lesson_id):
    return client.post("/progress/complete", headers=headers, json={"lesson_id": lesson_id})


class TestCompletion:
    def test_mark_complete_upserts(self, client, student, auth_headers, enrolled):
        lesson = enrolled.lessons[0]

        first = complete(client, auth_headers(student), lesson.id)
        second = complete(client, auth_headers(student), lesson.id)

        assert first.status_code == second.status_code == 200
        assert Progress.query.filter_by(user_id=student.id, lesson_id=lesson.id).count() == 1
        summary = second.get_json()["progress"]
        assert summary["completed_lessons"] == 1
        assert summary["total_lessons"] == 3
        assert summary["overall_percentage"] == 33
        assert summary["completed_lesson_ids"] == [lesson.id]
        assert summary["modules"][0]["percentage"] == 50

    def test_requires_enrollment(self, client, make_user, auth_headers, enrolled):
        outsider = make_user(email="outsider@academy.test")

        response = complete(client, auth_headers(outsider), enrolled.lessons[0].id)

        assert response.status_code == 403
        assert Progress.query.count() == 0

    def test_unknown_lesson(self, client, student, auth_headers, enrolled):
        assert complete(client, auth_headers(student), 9999).status_code == 404

    def test_missing_lesson_id(self, client, student, auth_headers, enrolled):
        response = client.post("/progress/complete", headers=auth_headers(student), json={})
        assert response.status_code == 400

    def test_finishing_course_completes_enrollment(self, client, student, auth_headers, enrolled):
        for lesson in enrolled.lessons:
            response = complete(client, auth_headers(student), lesson.id)

        assert response.get_json()["progress"]["overall_percentage"] == 100
        enrollment = Enrollment.query.filter_by(user_id=student.id).one()
        assert enrollment.status == "completed"
        certificate = Certificate.query.filter_by(user_id=student.id).one()
        assert certificate.certificate_number.startswith("CERT-")

    def test_uncomplete_reopens_enrollment(self, client, student, auth_headers, enrolled):
        lessons = enrolled.lessons
        for lesson in lessons:
            complete(client, auth_headers(student), lesson.id)

        response = client.post("/progress/uncomplete", headers=auth_headers(student),
                               json={"lesson_id": lessons[0].id})

        assert response.status_code == 200
        assert response.get_json()["progress"]["overall_percentage"] == 67
        assert Enrollment.query.filter_by(user_id=student.id).one().status == "active"
        # the certificate already issued is kept
        assert Certificate.query.count() == 1

    def test_uncomplete_without_progress(self, client, student, auth_headers, enrolled):
        response = client.post("/progress/uncomplete", headers=auth_headers(student),
                               json={"lesson_id": enrolled.lessons[0].id})
        assert response.status_code == 404

    def test_watch_time(self, client, student, auth_headers, enrolled):
        lesson = enrolled.lessons[0]

        response = client.post("/progress/watch-time", headers=auth_headers(student),
                               json={"lesson_id": lesson.id, "seconds": 42})

        assert response.status_code == 200
        data = response.get_json()
        assert data["watch_time_seconds"] == 42
        assert data["completed"] is False
        assert data["last_watched_at"] is not None

    def test_negative_watch_time(self, client, student, auth_headers, enrolled):
        response = client.post("/progress/watch-time", headers=auth_headers(student),
                               json={"lesson_id": enrolled.lessons[0].id, "seconds": -1})
        assert response.status_code == 400

    def test_course_progress(self, client, student, auth_headers, enrolled):
        complete(client, auth_headers(student), enrolled.lessons[0].id)

        data = client.get(f"/progress/course/{enrolled.id}", headers=auth_headers(student)).get_json()

        assert data["summary"]["completed_lessons"] == 1
        assert [row["lesson_id"] for row in data["lessons"]] == [enrolled.lessons[0].id]


class TestQuiz:
    def submit(self, client, headers, lesson_id, answers):
        return client.post("/progress/quiz", headers=headers,
                           json={"lesson_id": lesson_id, "answers": answers})

    def test_passing_quiz_completes_lesson(self, client, student, auth_headers, quiz_lesson):
        response = self.submit(client, auth_headers(student), quiz_lesson.id,
                               {"q1": 1, "q2": 0, "q3": 0})

        assert response.status_code == 200
        data = response.get_json()
        assert data["score"] == 67
        assert data["passed"] is True
        assert [r["is_correct"] for r in data["results"]] == [True, True, False]

        progress = Progress.query.filter_by(user_id=student.id, lesson_id=quiz_lesson.id).one()
        assert progress.completed is True
        assert progress.score == 67
        assert progress.quiz_answers == [1, 0, 0]

    def test_failing_quiz_is_recorded_not_completed(self, client, student, auth_headers,
                                                    quiz_lesson):
        response = self.submit(client, auth_headers(student), quiz_lesson.id,
                               {"q1": 0, "q2": 1, "q3": 2})

        data = response.get_json()
        assert data["score"] == 33
        assert data["passed"] is False
        progress = Progress.query.filter_by(user_id=student.id, lesson_id=quiz_lesson.id).one()
        assert progress.completed is False
        assert progress.score == 33

    def test_all_questions_required(self, client, student, auth_headers, quiz_lesson):
        response = self.submit(client, auth_headers(student), quiz_lesson.id, {"q1": 1})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Please answer all questions before submitting."
        assert Progress.query.count() == 0

    def test_not_a_quiz(self, client, student, auth_headers, enrolled):
        response = self.submit(client, auth_headers(student), enrolled.lessons[0].id, {})
        assert response.status_code == 400


class TestAssignment:
    @pytest.fixture
    def assignment(self, enrolled):
        lesson = db.session.get(Lesson, enrolled.lessons[0].id)
        lesson.type = "assignment"
        lesson.assignment_data = {"prompt": "Write a haiku"}
        db.session.commit()
        return lesson

    def test_submission_completes_lesson(self, client, student, auth_headers, assignment):
        response = client.post("/progress/assignment", headers=auth_headers(student),
                               json={"lesson_id": assignment.id, "submission": "Old pond..."})

        assert response.status_code == 200
        progress = Progress.query.filter_by(user_id=student.id, lesson_id=assignment.id).one()
        assert progress.completed is True
        assert progress.assignment_submission == "Old pond..."

    def test_empty_submission(self, client, student, auth_headers, assignment):
        response = client.post("/progress/assignment", headers=auth_headers(student),
                               json={"lesson_id": assignment.id, "submission": "   "})

        assert response.status_code == 400
        assert Progress.query.count() == 0
