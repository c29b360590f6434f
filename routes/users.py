from fastapi import APIRouter, Depends, status, Query
from schemas import (
    SetIsActiveRequest, UserUpdateResponse, UserResponse, GetReviewResponse,
    PullRequestShort, UserStatsResponse, ErrorResponse
)
from routes.deps import get_service
from routes.errors import http_error, internal_error
from services.errors import ServiceError
from services.service import Service


router = APIRouter(prefix="/users")


@router.post("/setIsActive", status_code=status.HTTP_200_OK,
                   summary="Установить флаг активности пользователя",
                   response_model=UserUpdateResponse,
                   responses={404: {"model": ErrorResponse}})
async def setIsActive(request: SetIsActiveRequest, service: Service = Depends(get_service)):
    try:
        user = await service.set_user_active(request.user_id, request.is_active)
        return UserUpdateResponse(user=UserResponse.from_user(user))
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)


@router.get("/getReview", status_code=status.HTTP_200_OK,
                  summary="Получить PR'ы, где пользователь назначен ревьювером",
                  response_model=GetReviewResponse,
                  responses={404: {"model": ErrorResponse}})
async def getReview(user_id: str = Query(..., description="Идентификатор пользователя"),
                    service: Service = Depends(get_service)):
    try:
        prs = await service.get_user_review_prs(user_id)
        return GetReviewResponse(
            user_id=user_id,
            pull_requests=[
                PullRequestShort(
                    pull_request_id=pr.id,
                    pull_request_name=pr.name,
                    author_id=pr.author_id,
                    status=pr.status.value
                )
                for pr in prs
            ]
        )
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)


@router.get("/stats", status_code=status.HTTP_200_OK,
              summary="Статистика пользователя по PR",
              response_model=UserStatsResponse,
              responses={404: {"model": ErrorResponse}})
async def stats(user_id: str = Query(..., description="Идентификатор пользователя"),
                service: Service = Depends(get_service)):
    try:
        user_stats = await service.get_user_stats(user_id)
        return UserStatsResponse(
            user_id=user_stats.user_id,
            created_pr_count=user_stats.created_pr_count,
            reviewed_pr_count=user_stats.reviewed_pr_count,
            merged_pr_count=user_stats.merged_pr_count
        )
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)
