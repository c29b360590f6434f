from fastapi import APIRouter, Depends, status, Query
from schemas import (
    TeamRequest, TeamCreateResponse, TeamResponse, TeamMember,
    BulkDeactivateRequest, BulkDeactivateResponse, DeactivateMembersRequest,
    ReassignmentInfo, ErrorResponse
)
from models.entities import DeactivationResult, Team, User
from routes.deps import get_service
from routes.errors import http_error, internal_error
from services.errors import ServiceError
from services.service import Service


router = APIRouter()


def _team_response(team: Team) -> TeamResponse:
    return TeamResponse(
        team_name=team.name,
        members=[
            TeamMember(user_id=m.id, username=m.username, is_active=m.is_active)
            for m in team.members
        ]
    )


def _deactivation_response(result: DeactivationResult) -> BulkDeactivateResponse:
    return BulkDeactivateResponse(
        team_name=result.team_name,
        deactivated_users=result.deactivated_users,
        reassignments=[
            ReassignmentInfo(
                pr_id=r.pr_id,
                old_reviewer_id=r.old_reviewer_id,
                new_reviewer_id=r.new_reviewer_id
            )
            for r in result.reassignments
        ]
    )


@router.post("/team/add", status_code=status.HTTP_201_CREATED,
                  summary="Создать команду с участниками (создаёт/обновляет пользователей)",
                  response_model=TeamCreateResponse,
                  responses={400: {"model": ErrorResponse}})
async def add(request: TeamRequest, service: Service = Depends(get_service)):
    team = Team(
        name=request.team_name,
        members=[
            User(id=m.user_id, username=m.username, team_name=request.team_name, is_active=m.is_active)
            for m in request.members
        ]
    )
    try:
        created = await service.add_team(team)
        return TeamCreateResponse(team=_team_response(created))
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)


@router.get("/team/get", status_code=status.HTTP_200_OK,
                 summary="Получить команду с участниками",
                 response_model=TeamResponse,
                 responses={404: {"model": ErrorResponse}})
async def get(team_name: str = Query(..., description="Уникальное имя команды"),
              service: Service = Depends(get_service)):
    try:
        team = await service.get_team(team_name)
        return _team_response(team)
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)


@router.post("/team/bulkDeactivate", status_code=status.HTTP_200_OK,
                  summary="Массовая деактивация пользователей команды с безопасным переназначением ревьюверов",
                  response_model=BulkDeactivateResponse,
                  responses={404: {"model": ErrorResponse}})
async def bulk_deactivate(request: BulkDeactivateRequest, service: Service = Depends(get_service)):
    try:
        result = await service.deactivate_team(request.team_name)
        return _deactivation_response(result)
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)


@router.patch("/teams/{team_name}/deactivate-members", status_code=status.HTTP_200_OK,
                   summary="Деактивировать выбранных участников команды и переназначить их PR",
                   response_model=BulkDeactivateResponse,
                   responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def deactivate_members(team_name: str, request: DeactivateMembersRequest,
                             service: Service = Depends(get_service)):
    try:
        result = await service.deactivate_users_and_reassign(team_name, request.user_ids)
        return _deactivation_response(result)
    except ServiceError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(e)
