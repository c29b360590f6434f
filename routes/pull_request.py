from fastapi import APIRouter, Depends, status
from schemas import (
    PullRequestCreateRequest, PullRequestCreateResponse,
    PullRequestMergeRequest, PullRequestMergeResponse,
    PullRequestReassignRequest, PullRequestReassignResponse,
    PullRequestResponse, PRStatsResponse,
    ErrorResponse
)
from routes.deps import get_service
from routes.errors import http_error, internal_error
from services.errors import ServiceError
from services.service import Service


router = APIRouter(prefix="/pullRequest")


@router.post("/create", status_code=status.HTTP_201_CREATED,
                summary="Создать PR и автоматически назначить до 2 ревьюверов из команды автора",
                response_model=PullRequestCreateResponse,
                responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def create(request: PullRequestCreateRequest, service: Service = Depends(get_service)):
    try:
        pr = await service.create_pr(
            request.pull_request_id,
            request.pull_request_name,
            request.author_id
        )
        return PullRequestCreateResponse(pr=PullRequestResponse.from_pr(pr))
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)


@router.post("/merge", status_code=status.HTTP_200_OK,
                summary="Пометить PR как MERGED (идемпотентная операция)",
                response_model=PullRequestMergeResponse,
                responses={404: {"model": ErrorResponse}})
async def merge(request: PullRequestMergeRequest, service: Service = Depends(get_service)):
    try:
        pr = await service.merge_pr(request.pull_request_id)
        return PullRequestMergeResponse(pr=PullRequestResponse.from_pr(pr))
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)


@router.post("/reassign", status_code=status.HTTP_200_OK,
                summary="Переназначить конкретного ревьювера на другого из его команды",
                response_model=PullRequestReassignResponse,
                responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def reassign(request: PullRequestReassignRequest, service: Service = Depends(get_service)):
    try:
        pr, replaced_by = await service.reassign_reviewer(
            request.pull_request_id,
            request.old_user_id
        )
        return PullRequestReassignResponse(
            pr=PullRequestResponse.from_pr(pr),
            replaced_by=replaced_by
        )
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)


@router.get("/stats", status_code=status.HTTP_200_OK,
               summary="Агрегированная статистика по PR",
               response_model=PRStatsResponse)
async def stats(service: Service = Depends(get_service)):
    try:
        pr_stats = await service.get_pr_stats()
        return PRStatsResponse(
            total=pr_stats.total,
            open=pr_stats.open,
            merged=pr_stats.merged,
            avg_reviewers=pr_stats.avg_reviewers
        )
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)
