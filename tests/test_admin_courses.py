"""
Course authoring tests: multi-step create/save, modules, lessons and uploads
"""

import io
import json

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from academy.extensions import db
from academy.models import Course, Lesson, Module
from academy.utils.s3_helper import storage


def course_payload(**overrides):
    payload = {
        "title": "Flask in Depth",
        "description": "Build APIs",
        "difficulty": "intermediate",
        "category": "Backend",
        "modules": [
            {"title": "Basics", "lessons": [
                {"title": "Hello Flask", "type": "video"},
                {"title": "", "type": "reading"},
                {"title": "Routing notes", "type": "reading", "content": "# Routes"},
            ]},
            {"title": "Quiz time", "lessons": [
                {"title": "Check yourself", "type": "quiz", "quiz_data": {
                    "questions": [{"question": "Is Flask a framework?", "options": ["Yes", "No"],
                                   "correct_index": 0}],
                }},
            ]},
        ],
    }
    payload.update(overrides)
    return payload


def multipart(payload, **files):
    form = {"data": json.dumps(payload)}
    for field, (content, filename) in files.items():
        form[field] = (io.BytesIO(content), filename)
    return form


class TestCreateCourse:
    def test_creates_full_tree(self, client, admin, auth_headers, s3):
        form = multipart(
            course_payload(),
            thumbnail=(b"png-bytes", "cover.png"),
            module_0_lesson_0_video=(b"mp4-bytes", "hello.mp4"),
        )

        response = client.post("/courses/", headers=auth_headers(admin), data=form,
                               content_type="multipart/form-data")

        assert response.status_code == 201
        data = response.get_json()
        assert data["warnings"] == []
        course = data["course"]
        assert course["status"] == "draft"
        assert course["published_at"] is None
        assert course["created_by"] == admin.id
        assert "/thumbnails/" in course["thumbnail_url"]

        basics, quiz = course["modules"]
        assert (basics["order_index"], quiz["order_index"]) == (0, 1)
        # the titleless lesson is skipped
        assert [l["title"] for l in basics["lessons"]] == ["Hello Flask", "Routing notes"]
        video = basics["lessons"][0]
        assert f"course-videos/{course['id']}/" in video["video_url"]
        assert video["duration_seconds"] == 125
        assert course["duration_minutes"] == 2

        question = quiz["lessons"][0]["quiz_data"]["questions"][0]
        assert question["correct_index"] == 0
        assert question["id"]
        assert quiz["lessons"][0]["quiz_data"]["passing_score"] == 70
        assert len(s3.objects) == 2

    def test_publish_flag(self, client, admin, auth_headers, s3):
        response = client.post("/courses/?publish=true", headers=auth_headers(admin),
                               json=course_payload(modules=[]))

        course = response.get_json()["course"]
        assert course["status"] == "published"
        assert course["published_at"] is not None

    def test_upload_failures_become_warnings(self, client, admin, auth_headers, s3):
        s3.fail_uploads = True
        form = multipart(
            course_payload(),
            thumbnail=(b"png-bytes", "cover.png"),
            module_0_lesson_0_video=(b"mp4-bytes", "hello.mp4"),
        )

        response = client.post("/courses/", headers=auth_headers(admin), data=form,
                               content_type="multipart/form-data")

        assert response.status_code == 201
        data = response.get_json()
        assert any(w.startswith("Thumbnail upload failed") for w in data["warnings"])
        assert any(w.startswith("Video upload failed") for w in data["warnings"])
        assert data["course"]["thumbnail_url"] is None
        lesson = data["course"]["modules"][0]["lessons"][0]
        assert lesson["title"] == "Hello Flask"
        assert lesson["video_url"] is None

    def test_invalid_lesson_is_a_warning(self, client, admin, auth_headers, s3):
        payload = course_payload(modules=[{"title": "Only", "lessons": [
            {"title": "Broken quiz", "type": "quiz", "quiz_data": {
                "questions": [{"question": "One option?", "options": ["Only"], "correct_index": 0}],
            }},
            {"title": "Fine reading", "type": "reading"},
        ]}])

        response = client.post("/courses/", headers=auth_headers(admin), json=payload)

        data = response.get_json()
        assert response.status_code == 201
        assert data["warnings"] == [
            "Failed to create lesson 'Broken quiz': Question 1 needs at least two options"
        ]
        assert [l["title"] for l in data["course"]["modules"][0]["lessons"]] == ["Fine reading"]

    def test_module_failure_stops_save(self, client, admin, auth_headers, s3, monkeypatch):
        real_commit = Session.commit

        def failing_commit(session):
            if any(isinstance(obj, Module) for obj in session.new):
                raise SQLAlchemyError("disk full")
            real_commit(session)

        monkeypatch.setattr(Session, "commit", failing_commit)
        response = client.post("/courses/", headers=auth_headers(admin), json=course_payload())
        monkeypatch.undo()

        assert response.status_code == 500
        data = response.get_json()
        assert data["error"] == "Failed to save module 'Basics'"
        assert data["warnings"] == []
        assert data["course"]["title"] == "Flask in Depth"
        saved = db.session.get(Course, data["course"]["id"])
        assert saved is not None
        assert Module.query.filter_by(course_id=saved.id).count() == 0

    @pytest.mark.parametrize("overrides, message", [
        ({"title": "  "}, "Title is required"),
        ({"difficulty": "expert"}, "Difficulty must be one of"),
    ])
    def test_validation(self, client, admin, auth_headers, overrides, message):
        response = client.post("/courses/", headers=auth_headers(admin),
                               json=course_payload(**overrides))

        assert response.status_code == 400
        assert response.get_json()["error"].startswith(message)

    def test_invalid_json_in_form(self, client, admin, auth_headers):
        response = client.post("/courses/", headers=auth_headers(admin),
                               data={"data": "{not json"}, content_type="multipart/form-data")

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid JSON format"

    def test_students_cannot_create(self, client, student, auth_headers):
        response = client.post("/courses/", headers=auth_headers(student), json=course_payload())
        assert response.status_code == 403


class TestSaveCourse:
    def test_updates_creates_and_reorders(self, client, admin, auth_headers, make_course, s3):
        course = make_course(status="draft", layout=(2,))
        module = course.ordered_modules[0]
        first, second = module.ordered_lessons
        before = course.updated_at

        payload = {
            "title": "Renamed",
            "modules": [
                {"id": module.id, "title": "Renamed module", "lessons": [
                    {"id": second.id, "title": "Now first"},
                    {"id": first.id, "title": "Now second"},
                    {"title": "Brand new", "type": "reading", "content": "text"},
                ]},
                {"title": "Extra module", "lessons": []},
            ],
        }
        response = client.put(f"/courses/{course.id}", headers=auth_headers(admin), json=payload)

        assert response.status_code == 200
        data = response.get_json()["course"]
        assert data["title"] == "Renamed"
        assert data["status"] == "draft"
        assert [m["title"] for m in data["modules"]] == ["Renamed module", "Extra module"]
        lessons = data["modules"][0]["lessons"]
        assert [(l["id"], l["title"]) for l in lessons][:2] == [
            (second.id, "Now first"), (first.id, "Now second")
        ]
        assert [l["order_index"] for l in lessons] == [0, 1, 2]
        assert db.session.get(Course, course.id).updated_at >= before

    def test_publish_on_save(self, client, admin, auth_headers, make_course, s3):
        course = make_course(status="draft")

        response = client.put(f"/courses/{course.id}?publish=1", headers=auth_headers(admin),
                              json={"title": "Ready"})

        data = response.get_json()["course"]
        assert data["status"] == "published"
        assert data["published_at"] is not None

    def test_new_video_replaces_old(self, client, admin, auth_headers, make_course, s3):
        course = make_course(layout=(1,))
        module = course.ordered_modules[0]
        lesson = module.ordered_lessons[0]
        form = multipart(
            {"modules": [{"id": module.id, "title": module.title, "lessons": [
                {"id": lesson.id, "title": lesson.title}
            ]}]},
            module_0_lesson_0_video=(b"new-bytes", "v2.mp4"),
        )

        response = client.put(f"/courses/{course.id}", headers=auth_headers(admin), data=form,
                              content_type="multipart/form-data")

        assert response.status_code == 200
        updated = db.session.get(Lesson, lesson.id)
        assert updated.video_url.endswith("-v2.mp4")
        assert updated.duration_seconds == 125

    def test_foreign_lesson_id_is_skipped(self, client, admin, auth_headers, make_course, s3):
        course = make_course(layout=(1,))
        other = make_course(title="Other", layout=(1,))
        module = course.ordered_modules[0]
        stranger = other.lessons[0]

        response = client.put(f"/courses/{course.id}", headers=auth_headers(admin), json={
            "modules": [{"id": module.id, "title": "M", "lessons": [
                {"id": stranger.id, "title": "Hijack"}
            ]}]
        })

        assert response.get_json()["warnings"] == [f"Lesson {stranger.id} not found; skipped"]
        assert db.session.get(Lesson, stranger.id).title == "Lesson 1.1"


class TestCourseAdmin:
    def test_list_all_with_student_counts(self, client, admin, auth_headers, make_course,
                                          student, enroll):
        draft = make_course(title="Draft", status="draft")
        live = make_course(title="Live")
        enroll(student, live)

        data = client.get("/courses/admin", headers=auth_headers(admin)).get_json()

        counts = {c["title"]: c["student_count"] for c in data}
        assert counts == {"Draft": 0, "Live": 1}
        assert data[0]["id"] in (draft.id, live.id)

    def test_patch_fields(self, client, admin, auth_headers, make_course):
        course = make_course()

        response = client.patch(f"/courses/{course.id}", headers=auth_headers(admin),
                                json={"status": "locked", "category": "Data"})

        assert response.status_code == 200
        assert response.get_json()["status"] == "locked"
        assert response.get_json()["category"] == "Data"

    def test_patch_rejects_unknown_status(self, client, admin, auth_headers, make_course):
        course = make_course()

        response = client.patch(f"/courses/{course.id}", headers=auth_headers(admin),
                                json={"status": "archived"})
        assert response.status_code == 400

    def test_publish(self, client, admin, auth_headers, make_course):
        course = make_course(status="draft")

        response = client.patch(f"/courses/{course.id}/publish", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.get_json()["status"] == "published"
        assert db.session.get(Course, course.id).published_at is not None

    def test_delete_cascades(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(2, 2))

        response = client.delete(f"/courses/{course.id}", headers=auth_headers(admin))

        assert response.status_code == 200
        assert Course.query.count() == 0
        assert Module.query.count() == 0
        assert Lesson.query.count() == 0

    def test_delete_removes_stored_media(self, client, admin, auth_headers, make_course, s3):
        course = make_course(layout=(1,))
        uploaded = storage.upload_file(io.BytesIO(b"v"), "course-videos", filename="a.mp4",
                                       course_id=course.id)
        course.lessons[0].video_url = uploaded["file_url"]
        db.session.commit()

        client.delete(f"/courses/{course.id}", headers=auth_headers(admin))

        assert uploaded["file_key"] not in s3.objects


class TestModules:
    def test_create_appends(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1, 1))

        response = client.post(f"/courses/{course.id}/modules", headers=auth_headers(admin),
                               json={"title": "Finale"})

        assert response.status_code == 201
        assert response.get_json()["order_index"] == 2

    def test_rename(self, client, admin, auth_headers, make_course):
        course = make_course()
        module = course.ordered_modules[0]

        response = client.patch(f"/courses/{course.id}/modules/{module.id}",
                                headers=auth_headers(admin), json={"title": "Getting started"})

        assert response.get_json()["title"] == "Getting started"

    def test_cannot_delete_last_module(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1,))
        module = course.ordered_modules[0]

        response = client.delete(f"/courses/{course.id}/modules/{module.id}",
                                 headers=auth_headers(admin))

        assert response.status_code == 400
        assert db.session.get(Module, module.id) is not None

    def test_delete_reindexes(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1, 1, 1))
        first, second, third = course.ordered_modules
        ids = (second.id, third.id)

        response = client.delete(f"/courses/{course.id}/modules/{first.id}",
                                 headers=auth_headers(admin))

        assert response.status_code == 200
        remaining = Module.query.filter_by(course_id=course.id).order_by(Module.order_index).all()
        assert [(m.id, m.order_index) for m in remaining] == [(ids[0], 0), (ids[1], 1)]

    def test_move_swaps_with_neighbour(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1, 1))
        first, second = course.ordered_modules

        response = client.patch(f"/courses/{course.id}/modules/{first.id}/move",
                                headers=auth_headers(admin), json={"direction": "down"})

        assert [m["id"] for m in response.get_json()["modules"]] == [second.id, first.id]

    def test_move_at_boundary_is_noop(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1, 1))
        first, second = course.ordered_modules

        response = client.patch(f"/courses/{course.id}/modules/{first.id}/move",
                                headers=auth_headers(admin), json={"direction": "up"})

        assert response.status_code == 200
        assert [m["id"] for m in response.get_json()["modules"]] == [first.id, second.id]

    def test_bad_direction(self, client, admin, auth_headers, make_course):
        course = make_course()
        module = course.ordered_modules[0]

        response = client.patch(f"/courses/{course.id}/modules/{module.id}/move",
                                headers=auth_headers(admin), json={"direction": "left"})
        assert response.status_code == 400


class TestLessons:
    def test_create_reading_lesson(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(2,))
        module = course.ordered_modules[0]

        response = client.post(f"/courses/{course.id}/modules/{module.id}/lessons",
                               headers=auth_headers(admin),
                               json={"title": "Notes", "type": "reading", "content": "**bold**"})

        assert response.status_code == 201
        lesson = response.get_json()["lesson"]
        assert lesson["order_index"] == 2
        assert lesson["content"] == "**bold**"

    def test_create_with_uploaded_video(self, client, admin, auth_headers, make_course, s3):
        course = make_course(layout=(1,))
        module = course.ordered_modules[0]

        response = client.post(
            f"/courses/{course.id}/modules/{module.id}/lessons",
            headers=auth_headers(admin),
            data={"data": json.dumps({"title": "Demo"}), "video": (io.BytesIO(b"v"), "demo.mov")},
            content_type="multipart/form-data",
        )

        lesson = response.get_json()["lesson"]
        assert lesson["duration_seconds"] == 125
        assert lesson["video_url"].endswith("-demo.mov")
        assert db.session.get(Course, course.id).duration_minutes == (90 + 125) // 60

    @pytest.mark.parametrize("payload, message", [
        ({"title": "Q", "type": "quiz", "quiz_data": {"questions": []}},
         "A quiz needs at least one question"),
        ({"title": "Q", "type": "quiz", "quiz_data": {"questions": [
            {"question": "?", "options": ["a", "b"], "correct_index": 2}]}},
         "Question 1 has an invalid correct answer"),
        ({"title": "Q", "type": "quiz", "quiz_data": {"passing_score": 120, "questions": [
            {"question": "?", "options": ["a", "b"], "correct_index": 0}]}},
         "Passing score must be between 0 and 100"),
        ({"title": "A", "type": "assignment", "assignment_data": {"prompt": " "}},
         "An assignment needs a prompt"),
        ({"title": "Y", "type": "youtube", "youtube_url": "https://vimeo.com/123"},
         "A valid YouTube URL is required"),
        ({"title": "X", "type": "podcast"}, "Lesson type must be one of"),
        ({"type": "reading"}, "Lesson title is required"),
    ])
    def test_validation(self, client, admin, auth_headers, make_course, payload, message):
        course = make_course(layout=(1,))
        module = course.ordered_modules[0]

        response = client.post(f"/courses/{course.id}/modules/{module.id}/lessons",
                               headers=auth_headers(admin), json=payload)

        assert response.status_code == 400
        assert response.get_json()["error"].startswith(message)

    def test_update_lesson(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1,))
        lesson = course.lessons[0]

        response = client.patch(f"/courses/{course.id}/lessons/{lesson.id}",
                                headers=auth_headers(admin),
                                json={"title": "Retitled", "duration_seconds": 600})

        assert response.status_code == 200
        assert response.get_json()["lesson"]["title"] == "Retitled"
        assert db.session.get(Course, course.id).duration_minutes == 10

    def test_type_change_drops_quiz_data(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1,))
        lesson = course.lessons[0]
        url = f"/courses/{course.id}/lessons/{lesson.id}"
        client.patch(url, headers=auth_headers(admin), json={"type": "quiz", "quiz_data": {
            "questions": [{"question": "Ready?", "options": ["Yes", "No"], "correct_index": 0}],
        }})

        response = client.patch(url, headers=auth_headers(admin),
                                json={"type": "reading", "content": "# Notes"})

        assert response.status_code == 200
        assert response.get_json()["lesson"]["quiz_data"] is None
        assert db.session.get(Lesson, lesson.id).quiz_data is None

    def test_type_change_drops_assignment_data(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1,))
        lesson = course.lessons[0]
        url = f"/courses/{course.id}/lessons/{lesson.id}"
        client.patch(url, headers=auth_headers(admin),
                     json={"type": "assignment", "assignment_data": {"prompt": "Write it up"}})

        response = client.patch(url, headers=auth_headers(admin), json={"type": "video"})

        assert response.get_json()["lesson"]["assignment_data"] is None
        assert db.session.get(Lesson, lesson.id).assignment_data is None

    def test_lesson_from_other_course_is_404(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(1,))
        other = make_course(title="Other", layout=(1,))

        response = client.patch(f"/courses/{course.id}/lessons/{other.lessons[0].id}",
                                headers=auth_headers(admin), json={"title": "nope"})
        assert response.status_code == 404

    def test_delete_reindexes(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(3,))
        first, second, third = course.lessons

        response = client.delete(f"/courses/{course.id}/lessons/{first.id}",
                                 headers=auth_headers(admin))

        assert response.status_code == 200
        remaining = Lesson.query.order_by(Lesson.order_index).all()
        assert [(l.id, l.order_index) for l in remaining] == [(second.id, 0), (third.id, 1)]

    def test_move_up(self, client, admin, auth_headers, make_course):
        course = make_course(layout=(2,))
        first, second = course.lessons

        response = client.patch(f"/courses/{course.id}/lessons/{second.id}/move",
                                headers=auth_headers(admin), json={"direction": "up"})

        assert [l["id"] for l in response.get_json()["lessons"]] == [second.id, first.id]


class TestUploads:
    def test_video_upload(self, client, admin, auth_headers, s3):
        response = client.post(
            "/uploads/video", headers=auth_headers(admin),
            data={"file": (io.BytesIO(b"video"), "clip.mp4"), "course_id": "4"},
            content_type="multipart/form-data",
        )

        assert response.status_code == 201
        data = response.get_json()
        assert data["file_key"].startswith("course-videos/4/")
        assert data["duration_seconds"] == 125
        assert data["size"] == "2.00 KB"
        assert s3.objects[data["file_key"]]["extra"]["ContentType"] == "video/mp4"

    def test_thumbnail_rejects_wrong_type(self, client, admin, auth_headers, s3):
        response = client.post(
            "/uploads/thumbnail", headers=auth_headers(admin),
            data={"file": (io.BytesIO(b"x"), "notes.txt")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400

    def test_upload_failure(self, client, admin, auth_headers, s3):
        s3.fail_uploads = True

        response = client.post(
            "/uploads/thumbnail", headers=auth_headers(admin),
            data={"file": (io.BytesIO(b"x"), "cover.jpg")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 502
        assert "bucket unavailable" in response.get_json()["error"]

    def test_generate_upload_url(self, client, admin, auth_headers, s3):
        response = client.post("/uploads/generate-upload-url", headers=auth_headers(admin), json={
            "filename": "big lecture.mp4", "filetype": "video/mp4", "course_id": 9
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["file_key"].startswith("course-videos/9/")
        assert data["file_key"].endswith("-big_lecture.mp4")
        assert data["fields"]["key"] == data["file_key"]
        assert data["file_url"].endswith(data["file_key"])

    def test_generate_upload_url_rejects_type(self, client, admin, auth_headers, s3):
        response = client.post("/uploads/generate-upload-url", headers=auth_headers(admin), json={
            "filename": "cover.svg", "filetype": "image/svg+xml", "folder": "thumbnails"
        })
        assert response.status_code == 400

    def test_confirm_upload_attaches_video(self, client, admin, auth_headers, make_course, s3):
        course = make_course(layout=(1,))
        lesson = course.lessons[0]
        s3.objects["course-videos/1/123-big.mp4"] = {"body": b"data"}

        response = client.post("/uploads/confirm-upload", headers=auth_headers(admin), json={
            "lesson_id": lesson.id, "file_key": "course-videos/1/123-big.mp4", "duration": 61.6
        })

        assert response.status_code == 200
        updated = db.session.get(Lesson, lesson.id)
        assert updated.video_url.endswith("course-videos/1/123-big.mp4")
        assert updated.duration_seconds == 62

    def test_confirm_upload_requires_object(self, client, admin, auth_headers, make_course, s3):
        course = make_course()

        response = client.post("/uploads/confirm-upload", headers=auth_headers(admin), json={
            "course_id": course.id, "file_key": "thumbnails/missing.png"
        })
        assert response.status_code == 400
