from academy.extensions import db
from sqlalchemy.ext.mutable import MutableDict
from datetime import datetime

LESSON_TYPES = ("video", "quiz", "reading", "youtube", "assignment")


class Lesson(db.Model):
    __tablename__ = "lesson"

    id = db.Column(db.Integer, primary_key=True)
    module_id = db.Column(
        db.Integer, db.ForeignKey("module.id", ondelete="CASCADE"), nullable=False
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.Enum(*LESSON_TYPES, name="lesson_type"), nullable=False, default="video")

    video_url = db.Column(db.String(500), nullable=True)
    youtube_url = db.Column(db.String(500), nullable=True)
    content = db.Column(db.Text, nullable=True)  # markdown for reading lessons
    duration_seconds = db.Column(db.Integer, nullable=False, default=0)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    # {"questions": [{"id", "question", "options", "correct_index"}], "passing_score"}
    quiz_data = db.Column(MutableDict.as_mutable(db.JSON), nullable=True)
    # {"prompt": str}
    assignment_data = db.Column(MutableDict.as_mutable(db.JSON), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    module = db.relationship("Module", back_populates="lessons")
    progress = db.relationship(
        "Progress", back_populates="lesson", cascade="all, delete-orphan"
    )

    @property
    def course_id(self):
        return self.module.course_id if self.module else None

    @property
    def questions(self):
        return (self.quiz_data or {}).get("questions") or []
