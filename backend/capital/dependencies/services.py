from fastapi import Request

from capital.core.cache import RedisCache
from capital.services.economy import EconomyService


def get_cache(request: Request) -> RedisCache:
    return request.app.state.cache


def get_economy_service(request: Request) -> EconomyService:
    return request.app.state.economy
