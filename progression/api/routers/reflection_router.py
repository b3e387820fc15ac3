"""Reflection router: save and read the caller's note on a page."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from progression.api.deps import get_current_user_id, get_reflection_store
from progression.core.errors import ProgressionError
from progression.db.models import Reflection
from progression.services import ReflectionStore

router = APIRouter()


class ReflectionRequest(BaseModel):
    """Request model for saving a reflection."""

    text: str = Field("", description="Reflection text; replaces any previous text")


class ReflectionResponse(BaseModel):
    """Response model for a stored reflection."""

    page_id: str
    text: str
    word_count: int
    updated_at: datetime

    @classmethod
    def from_row(cls, reflection: Reflection) -> "ReflectionResponse":
        return cls(
            page_id=reflection.page_id,
            text=reflection.text,
            word_count=reflection.word_count,
            updated_at=reflection.updated_at,
        )


@router.put("/pages/{page_id}", response_model=ReflectionResponse)
def save_reflection(
    page_id: str,
    request: ReflectionRequest,
    user_id: str = Depends(get_current_user_id),
    store: ReflectionStore = Depends(get_reflection_store),
) -> ReflectionResponse:
    try:
        reflection = store.save_reflection(user_id, page_id, request.text)
    except ProgressionError:
        raise
    except Exception as exc:
        logger.exception(f"Failed to save reflection on page {page_id}")
        raise HTTPException(status_code=500, detail=str(exc))
    return ReflectionResponse.from_row(reflection)


@router.get("/pages/{page_id}", response_model=ReflectionResponse)
def get_reflection(
    page_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ReflectionStore = Depends(get_reflection_store),
) -> ReflectionResponse:
    return ReflectionResponse.from_row(store.get_reflection(user_id, page_id))
