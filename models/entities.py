"""Domain values passed between the service layer and the repositories."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class PRStatus(str, Enum):
    OPEN = "OPEN"
    MERGED = "MERGED"


@dataclass
class User:
    id: str
    username: str
    team_name: Optional[str] = None
    is_active: bool = True


@dataclass
class Team:
    name: str
    members: List[User] = field(default_factory=list)


@dataclass
class PullRequest:
    id: str
    name: str
    author_id: str
    status: PRStatus = PRStatus.OPEN
    reviewers: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None


@dataclass
class UserStats:
    user_id: str
    created_pr_count: int = 0
    reviewed_pr_count: int = 0
    merged_pr_count: int = 0


@dataclass
class PRStats:
    total: int = 0
    open: int = 0
    merged: int = 0
    avg_reviewers: float = 0.0


@dataclass
class Reassignment:
    pr_id: str
    old_reviewer_id: str
    # None when the reviewer was dropped without a replacement
    new_reviewer_id: Optional[str] = None


@dataclass
class DeactivationResult:
    team_name: str
    deactivated_users: List[str] = field(default_factory=list)
    reassignments: List[Reassignment] = field(default_factory=list)
