"""
Course and uploaded course file models.
"""
from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from studygram.models.database import Base, new_id


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    semester = Column(String, nullable=True)
    professor = Column(String, nullable=True)
    file_count = Column(Integer, nullable=False, default=0)
    total_size = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    files = relationship("CourseFile", back_populates="course", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Course(name='{self.name}', subject='{self.subject}')>"


class CourseFile(Base):
    __tablename__ = "course_files"

    id = Column(String(36), primary_key=True, default=new_id)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    file_type = Column(String, nullable=True)
    file_size = Column(BigInteger, nullable=False, default=0)
    file_url = Column(String, nullable=False)
    processed = Column(Boolean, nullable=False, default=False)
    upload_date = Column(DateTime(timezone=True), server_default=func.now())

    course = relationship("Course", back_populates="files")
