from academy.extensions import db
from datetime import datetime


class Progress(db.Model):
    __tablename__ = "progress"
    __table_args__ = (
        db.UniqueConstraint("user_id", "lesson_id", name="uq_progress_user_lesson"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    lesson_id = db.Column(db.Integer, db.ForeignKey("lesson.id", ondelete="CASCADE"), nullable=False)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    watch_time_seconds = db.Column(db.Integer, nullable=False, default=0)
    last_watched_at = db.Column(db.DateTime, default=datetime.utcnow)
    quiz_answers = db.Column(db.JSON, nullable=True)  # selected option index per question
    assignment_submission = db.Column(db.Text, nullable=True)
    score = db.Column(db.Integer, nullable=True)

    student = db.relationship("User", back_populates="progress")
    lesson = db.relationship("Lesson", back_populates="progress")

    def to_dict(self):
        return {
            "id": self.id,
            "lesson_id": self.lesson_id,
            "completed": self.completed,
            "watch_time_seconds": self.watch_time_seconds,
            "last_watched_at": self.last_watched_at.isoformat() if self.last_watched_at else None,
            "quiz_answers": self.quiz_answers,
            "assignment_submission": self.assignment_submission,
            "score": self.score,
        }


class Certificate(db.Model):
    __tablename__ = "certificate"
    __table_args__ = (
        db.UniqueConstraint("user_id", "course_id", name="uq_certificate_user_course"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id", ondelete="CASCADE"), nullable=False)
    certificate_number = db.Column(db.String(40), unique=True, nullable=False)
    issued_at = db.Column(db.DateTime, default=datetime.utcnow)

    student = db.relationship("User", back_populates="certificates")
    course = db.relationship("Course", back_populates="certificates")
