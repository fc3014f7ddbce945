"""
Gamification models: XP/level progress, achievements and XP activity log.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from studygram.models.database import Base, JSONType, new_id


class UserProgress(Base):
    __tablename__ = "user_progress"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    level = Column(Integer, nullable=False, default=1)
    xp = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    total_study_time = Column(Integer, nullable=False, default=0)
    achievements = Column(JSONType, nullable=True)  # list of unlocked achievement names
    last_activity = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<UserProgress(user_id='{self.user_id}', level={self.level}, xp={self.xp})>"


class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    icon = Column(String, nullable=True)
    category = Column(String, nullable=False)  # study, social, streak, course, assessment
    requirements = Column(JSONType, nullable=False)
    xp_reward = Column(Integer, nullable=False, default=0)
    badge_color = Column(String, nullable=True)


class XpActivity(Base):
    __tablename__ = "xp_activities"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_type = Column(String, nullable=False)
    xp_earned = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class GroupMember(Base):
    __tablename__ = "group_members"

    id = Column(String(36), primary_key=True, default=new_id)
    group_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False, default="member")  # admin, moderator, member
    joined_at = Column(DateTime(timezone=True), server_default=func.now())
