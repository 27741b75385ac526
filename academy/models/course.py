from academy.extensions import db
from datetime import datetime

DIFFICULTIES = ("beginner", "intermediate", "advanced")
COURSE_STATUSES = ("draft", "published", "locked")


class Course(db.Model):
    __tablename__ = "course"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    thumbnail_url = db.Column(db.String(500), nullable=True)
    difficulty = db.Column(db.Enum(*DIFFICULTIES, name="course_difficulty"), nullable=False)
    category = db.Column(db.String(120), nullable=True)
    status = db.Column(
        db.Enum(*COURSE_STATUSES, name="course_status"), nullable=False, default="draft"
    )
    duration_minutes = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)
    published_at = db.Column(db.DateTime, nullable=True)

    author = db.relationship("User")
    modules = db.relationship(
        "Module",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Module.order_index",
    )
    enrollments = db.relationship(
        "Enrollment", back_populates="course", cascade="all, delete-orphan"
    )
    certificates = db.relationship(
        "Certificate", back_populates="course", cascade="all, delete-orphan"
    )

    @property
    def ordered_modules(self):
        return sorted(self.modules, key=lambda m: (m.order_index, m.id or 0))

    @property
    def lessons(self):
        """All lessons flattened in module order, then lesson order."""
        return [lesson for module in self.ordered_modules for lesson in module.ordered_lessons]

    @property
    def total_lessons(self):
        return sum(len(module.lessons) for module in self.modules)

    @property
    def total_duration_seconds(self):
        return sum(lesson.duration_seconds or 0 for lesson in self.lessons)

    def publish(self):
        self.status = "published"
        self.published_at = datetime.utcnow()

    def touch(self):
        self.updated_at = datetime.utcnow()


class Module(db.Model):
    __tablename__ = "module"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(
        db.Integer, db.ForeignKey("course.id", ondelete="CASCADE"), nullable=False
    )
    title = db.Column(db.String(200), nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    course = db.relationship("Course", back_populates="modules")
    lessons = db.relationship(
        "Lesson",
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="Lesson.order_index",
    )

    @property
    def ordered_lessons(self):
        return sorted(self.lessons, key=lambda l: (l.order_index, l.id or 0))
