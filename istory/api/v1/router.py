from fastapi import APIRouter

from istory.api.v1.endpoints import admin, analysis, metadata, verification

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(analysis.router, prefix="/ai", tags=["Analysis"])
api_router.include_router(metadata.router, prefix="/stories", tags=["Metadata"])
api_router.include_router(verification.router, prefix="/verification", tags=["Verification"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

__all__ = ["api_router"]
