from fastapi import Request

from services.service import Service


def get_service(request: Request) -> Service:
    return request.app.state.service
