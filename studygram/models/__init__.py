"""Database models for the study platform."""
from studygram.models.database import Base, init_db
from studygram.models.user import User
from studygram.models.course import Course, CourseFile
from studygram.models.study_session import AssessmentAttempt, StudySession
from studygram.models.billing import SubscriptionPlan, UsageStat
from studygram.models.progress import Achievement, GroupMember, UserProgress, XpActivity

__all__ = [
    "Base",
    "init_db",
    "User",
    "Course",
    "CourseFile",
    "StudySession",
    "AssessmentAttempt",
    "SubscriptionPlan",
    "UsageStat",
    "UserProgress",
    "Achievement",
    "XpActivity",
    "GroupMember",
]
