"""
Progress router.

Endpoints for:
- Page completion (XP award) and page start
- Module and topic unlock checks
- Module progress and topic overview
- XP totals
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from progression.api.deps import (
    get_completion_coordinator,
    get_current_user_id,
    get_dashboard_service,
)
from progression.core.errors import ProgressionError
from progression.services import CompletionCoordinator, DashboardService, ModuleProgress

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class CompletionResponse(BaseModel):
    """Response model for a page completion."""

    page_id: str
    xp_earned: int
    new_total_xp: int
    unlocked_module_ids: List[str] = Field(default_factory=list)
    awarded: bool


class PageProgressResponse(BaseModel):
    """Response model for a progress row."""

    page_id: str
    status: str
    xp_earned: int
    started_at: Optional[datetime]
    completed_at: Optional[datetime]


class UnlockResponse(BaseModel):
    """Response model for an unlock check."""

    node_id: str
    is_unlocked: bool


class ModuleProgressResponse(BaseModel):
    """Response model for module progress."""

    module_id: str
    total_pages: int
    completed_pages: int
    percent: Optional[float] = Field(None, description="Null when the module has no pages")
    xp_available: int
    xp_earned: int
    is_complete: bool

    @classmethod
    def from_progress(cls, progress: ModuleProgress) -> "ModuleProgressResponse":
        return cls(
            module_id=progress.module_id,
            total_pages=progress.total_pages,
            completed_pages=progress.completed_pages,
            percent=progress.percent,
            xp_available=progress.xp_available,
            xp_earned=progress.xp_earned,
            is_complete=progress.is_complete,
        )


class ModuleStateResponse(BaseModel):
    """A module within a topic overview."""

    module_id: str
    title: str
    sort_order: int
    unlock_policy: str
    is_unlocked: bool
    progress: ModuleProgressResponse


class XPResponse(BaseModel):
    """Response model for XP totals."""

    user_id: str
    total_xp: int


# ========================================
# Completion
# ========================================


@router.post("/pages/{page_id}/complete", response_model=CompletionResponse)
def complete_page(
    page_id: str,
    user_id: str = Depends(get_current_user_id),
    coordinator: CompletionCoordinator = Depends(get_completion_coordinator),
) -> CompletionResponse:
    """Mark a page completed; XP is awarded once no matter how often this is called."""
    try:
        result = coordinator.complete_page(user_id, page_id)
    except ProgressionError:
        raise
    except Exception as exc:
        logger.exception(f"Failed to complete page {page_id}")
        raise HTTPException(status_code=500, detail=str(exc))

    return CompletionResponse(
        page_id=page_id,
        xp_earned=result.xp_earned,
        new_total_xp=result.new_total_xp,
        unlocked_module_ids=result.unlocked_module_ids,
        awarded=result.awarded,
    )


@router.post("/pages/{page_id}/start", response_model=PageProgressResponse)
def start_page(
    page_id: str,
    user_id: str = Depends(get_current_user_id),
    coordinator: CompletionCoordinator = Depends(get_completion_coordinator),
) -> PageProgressResponse:
    """Mark a page in progress (no-op for completed pages)."""
    try:
        progress = coordinator.start_page(user_id, page_id)
    except ProgressionError:
        raise
    except Exception as exc:
        logger.exception(f"Failed to start page {page_id}")
        raise HTTPException(status_code=500, detail=str(exc))

    return PageProgressResponse(
        page_id=progress.page_id,
        status=progress.status,
        xp_earned=progress.xp_earned,
        started_at=progress.started_at,
        completed_at=progress.completed_at,
    )


# ========================================
# Unlocks
# ========================================


@router.get("/modules/{module_id}/unlocked", response_model=UnlockResponse)
def module_unlocked(
    module_id: str,
    user_id: str = Depends(get_current_user_id),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> UnlockResponse:
    """Whether the module is open for the caller. Unknown modules are locked."""
    return UnlockResponse(
        node_id=module_id, is_unlocked=dashboard.is_module_unlocked(user_id, module_id)
    )


@router.get("/topics/{topic_id}/unlocked", response_model=UnlockResponse)
def topic_unlocked(
    topic_id: str,
    user_id: str = Depends(get_current_user_id),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> UnlockResponse:
    """Whether the topic is open for the caller. Unknown topics are locked."""
    return UnlockResponse(
        node_id=topic_id, is_unlocked=dashboard.is_topic_unlocked(user_id, topic_id)
    )


@router.get("/topics/{topic_id}/modules", response_model=List[ModuleStateResponse])
def topic_modules(
    topic_id: str,
    user_id: str = Depends(get_current_user_id),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> List[ModuleStateResponse]:
    """Every module of the topic with lock state and progress."""
    return [
        ModuleStateResponse(
            module_id=state.module_id,
            title=state.title,
            sort_order=state.sort_order,
            unlock_policy=state.unlock_policy,
            is_unlocked=state.is_unlocked,
            progress=ModuleProgressResponse.from_progress(state.progress),
        )
        for state in dashboard.get_topic_unlock_states(user_id, topic_id)
    ]


# ========================================
# Dashboard
# ========================================


@router.get("/modules/{module_id}", response_model=ModuleProgressResponse)
def module_progress(
    module_id: str,
    user_id: str = Depends(get_current_user_id),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> ModuleProgressResponse:
    """Page and XP counts for a module."""
    return ModuleProgressResponse.from_progress(dashboard.get_module_progress(user_id, module_id))


@router.get("/xp", response_model=XPResponse)
def total_xp(
    user_id: str = Depends(get_current_user_id),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> XPResponse:
    """The caller's XP total."""
    return XPResponse(user_id=user_id, total_xp=dashboard.get_user_total_xp(user_id))
