"""
Study session and assessment attempt models.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from studygram.models.database import Base, JSONType, new_id


class StudySession(Base):
    __tablename__ = "study_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # minutes
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    activity_type = Column(String, nullable=False)  # reading, practice, review, assessment
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    course = relationship("Course")

    def __repr__(self):
        return f"<StudySession(user_id='{self.user_id}', activity='{self.activity_type}')>"


class AssessmentAttempt(Base):
    __tablename__ = "assessment_attempts"

    id = Column(String(36), primary_key=True, default=new_id)
    assessment_id = Column(String(36), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    answers = Column(JSONType, nullable=True)
    score = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    time_taken = Column(Integer, nullable=True)  # seconds
    completed_at = Column(DateTime(timezone=True), server_default=func.now())
