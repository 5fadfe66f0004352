from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import require_admin
from api.routes import conflicts, parameters, routines, subjects, workspaces


api_router = APIRouter()

# Sign-in lives with the identity provider; every route here needs an admin token.
_protected = [Depends(require_admin)]
api_router.include_router(routines.router, prefix="/routines", tags=["routines"], dependencies=_protected)
api_router.include_router(subjects.router, prefix="/subjects", tags=["subjects"], dependencies=_protected)
api_router.include_router(parameters.router, prefix="/parameters", tags=["parameters"], dependencies=_protected)
api_router.include_router(conflicts.router, prefix="/conflicts", tags=["conflicts"], dependencies=_protected)
api_router.include_router(workspaces.router, prefix="/workspaces", tags=["workspaces"], dependencies=_protected)
