from sqlalchemy.orm import declarative_base
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    PrimaryKeyConstraint,
    String,
)


Base = declarative_base()


class Team(Base):
    __tablename__ = 'teams'

    name = Column(String(255), primary_key=True)


class User(Base):
    __tablename__ = 'users'

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    team_name = Column(String(255), ForeignKey('teams.name'), nullable=True)
    is_active = Column(Boolean(), nullable=False, default=True)

    __table_args__ = (
        Index('idx_users_team_active', 'team_name', 'is_active'),
    )


class PullRequest(Base):
    __tablename__ = 'pull_requests'

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    author_id = Column(String(255), ForeignKey('users.id'), nullable=False, index=True)
    status = Column(String(16), nullable=False, default='OPEN', index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    merged_at = Column(DateTime(timezone=True), nullable=True)


class ReviewAssignment(Base):
    __tablename__ = 'review_assignments'

    pr_id = Column(String(255), ForeignKey('pull_requests.id', ondelete='CASCADE'), nullable=False)
    reviewer_id = Column(String(255), ForeignKey('users.id'), nullable=False, index=True)

    __table_args__ = (
        PrimaryKeyConstraint('pr_id', 'reviewer_id'),
    )
