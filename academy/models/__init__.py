from .user import User
from .course import Course, Module
from .lesson import Lesson
from .enrollment import Enrollment
from .progress import Progress, Certificate

__all__ = [
    "User",
    "Course",
    "Module",
    "Lesson",
    "Enrollment",
    "Progress",
    "Certificate",
]
