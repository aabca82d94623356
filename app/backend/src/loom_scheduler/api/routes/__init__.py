from fastapi import APIRouter

from . import history, loom, resources, rules, system

api_router = APIRouter()

api_router.include_router(system.router, prefix="/system", tags=["system"])
api_router.include_router(rules.router, prefix="/rules", tags=["rules"])
api_router.include_router(resources.router, prefix="/resources", tags=["resources"])
api_router.include_router(loom.router, prefix="/loom", tags=["loom"])
api_router.include_router(history.router, prefix="/history", tags=["history"])
