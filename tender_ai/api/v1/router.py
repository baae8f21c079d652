from fastapi import APIRouter

from tender_ai.api.v1.endpoints import (
    chat,
    compliance,
    documents,
    drafts,
    feedback,
    jobs,
    knowledge,
    outline,
    projects,
    settings,
)

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(projects.router, prefix="/projects", tags=["Projects"])
api_router.include_router(documents.router, prefix="/projects", tags=["Documents"])
api_router.include_router(jobs.router, prefix="/projects", tags=["Jobs"])
api_router.include_router(knowledge.router, prefix="/projects", tags=["Knowledge"])
api_router.include_router(outline.router, prefix="/projects", tags=["Outline"])
api_router.include_router(drafts.router, prefix="/projects", tags=["Drafts"])
api_router.include_router(chat.router, prefix="/projects", tags=["Chat"])
api_router.include_router(compliance.router, prefix="/projects", tags=["Compliance"])
api_router.include_router(feedback.router, prefix="/projects", tags=["Feedback"])
api_router.include_router(settings.router, prefix="/settings", tags=["Settings"])

__all__ = ["api_router"]
