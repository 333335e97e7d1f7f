from fastapi import APIRouter

from kys_portal.modules.applications import review_router as reviews_router
from kys_portal.modules.applications import router as applications_router
from kys_portal.modules.audit import router as audit_router
from kys_portal.modules.auth import router as auth_router

api_router = APIRouter()

api_router.include_router(auth_router)
api_router.include_router(applications_router)
api_router.include_router(reviews_router)
api_router.include_router(audit_router)
