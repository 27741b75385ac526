"""
Pytest configuration and fixtures for the academy API tests
"""

from datetime import datetime

import pytest
from botocore.exceptions import ClientError
from flask_jwt_extended import create_access_token

from academy import create_app
from academy.config import TestConfig
from academy.extensions import db, mail
from academy.models import Course, Enrollment, Lesson, Module, User
from academy.utils.s3_helper import storage


class FakeS3Client:
    """Records uploads in memory in place of a boto3 S3 client."""

    def __init__(self):
        self.objects = {}
        self.fail_uploads = False

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None):
        if self.fail_uploads:
            raise ClientError({"Error": {"Code": "500", "Message": "bucket unavailable"}}, "PutObject")
        self.objects[key] = {"bucket": bucket, "body": fileobj.read(), "extra": ExtraArgs}

    def generate_presigned_post(self, Bucket, Key, Fields=None, Conditions=None, ExpiresIn=3600):
        return {
            "url": f"https://{Bucket}.s3.amazonaws.com/",
            "fields": {"key": Key, **(Fields or {})},
            "conditions": Conditions,
        }

    def generate_presigned_url(self, operation, Params=None, ExpiresIn=3600):
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?signature=test"

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": len(self.objects[Key]["body"])}


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def s3(app):
    fake = FakeS3Client()
    storage._client = fake
    return fake


@pytest.fixture(autouse=True)
def no_video_probe(monkeypatch):
    """Skip ffmpeg probing; uploaded test videos are not real media."""
    monkeypatch.setattr(
        "academy.helpers.media.get_video_metadata", lambda path: (125, 2048)
    )


@pytest.fixture
def outbox(app):
    with mail.record_messages() as messages:
        yield messages


@pytest.fixture
def make_user(app):
    def _make(email="student@academy.test", role="student", password="secret123",
              full_name="Test Student"):
        user = User(full_name=full_name, email=email, role=role)
        if password:
            user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def student(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@academy.test", role="admin", full_name="Site Admin")


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def make_course(app, admin):
    """Build a course; ``layout`` gives the number of lessons per module."""
    def _make(title="Python Basics", status="published", layout=(2, 1),
              difficulty="beginner", lesson_seconds=90):
        course = Course(title=title, difficulty=difficulty, status=status, created_by=admin.id)
        if status == "published":
            course.published_at = datetime.utcnow()
        db.session.add(course)
        for mi, count in enumerate(layout):
            module = Module(title=f"Module {mi + 1}", order_index=mi)
            course.modules.append(module)
            for li in range(count):
                module.lessons.append(Lesson(
                    title=f"Lesson {mi + 1}.{li + 1}",
                    type="video",
                    video_url=f"https://cdn.academy.test/{mi}-{li}.mp4",
                    duration_seconds=lesson_seconds,
                    order_index=li,
                ))
        db.session.commit()
        return course
    return _make


@pytest.fixture
def enroll(app):
    def _enroll(user, course, status="active"):
        enrollment = Enrollment(user_id=user.id, course_id=course.id, status=status)
        db.session.add(enrollment)
        db.session.commit()
        return enrollment
    return _enroll
