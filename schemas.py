from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from models.entities import PullRequest, User


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


class TeamMember(BaseModel):
    user_id: str
    username: str
    is_active: bool


class TeamRequest(BaseModel):
    team_name: str
    members: List[TeamMember]


class TeamResponse(BaseModel):
    team_name: str
    members: List[TeamMember]


class TeamCreateResponse(BaseModel):
    team: TeamResponse


class UserResponse(BaseModel):
    user_id: str
    username: str
    team_name: Optional[str] = None
    is_active: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            user_id=user.id,
            username=user.username,
            team_name=user.team_name,
            is_active=user.is_active,
        )


class UserUpdateResponse(BaseModel):
    user: UserResponse


class SetIsActiveRequest(BaseModel):
    user_id: str
    is_active: bool


class PullRequestShort(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: str


class PullRequestResponse(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: str
    assigned_reviewers: List[str]
    createdAt: Optional[datetime] = None
    mergedAt: Optional[datetime] = None

    @classmethod
    def from_pr(cls, pr: PullRequest) -> "PullRequestResponse":
        return cls(
            pull_request_id=pr.id,
            pull_request_name=pr.name,
            author_id=pr.author_id,
            status=pr.status.value,
            assigned_reviewers=pr.reviewers,
            createdAt=pr.created_at,
            mergedAt=pr.merged_at,
        )


class PullRequestCreateRequest(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str


class PullRequestCreateResponse(BaseModel):
    pr: PullRequestResponse


class PullRequestMergeRequest(BaseModel):
    pull_request_id: str


class PullRequestMergeResponse(BaseModel):
    pr: PullRequestResponse


class PullRequestReassignRequest(BaseModel):
    pull_request_id: str
    old_user_id: str


class PullRequestReassignResponse(BaseModel):
    pr: PullRequestResponse
    # null when the reviewer was removed without a replacement
    replaced_by: Optional[str] = None


class GetReviewResponse(BaseModel):
    user_id: str
    pull_requests: List[PullRequestShort]


class UserStatsResponse(BaseModel):
    user_id: str
    created_pr_count: int
    reviewed_pr_count: int
    merged_pr_count: int


class PRStatsResponse(BaseModel):
    total: int
    open: int
    merged: int
    avg_reviewers: float


class BulkDeactivateRequest(BaseModel):
    team_name: str


class DeactivateMembersRequest(BaseModel):
    user_ids: List[str] = Field(default_factory=list)


class ReassignmentInfo(BaseModel):
    pr_id: str
    old_reviewer_id: str
    new_reviewer_id: Optional[str] = None


class BulkDeactivateResponse(BaseModel):
    team_name: str
    deactivated_users: List[str]
    reassignments: List[ReassignmentInfo]


class HealthResponse(BaseModel):
    status: str
