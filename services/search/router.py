"""
services/search/router.py
Student-facing slot search and the subject list used by every dropdown.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.search.queries import list_subjects, search_availability
from shared.schemas.schemas import AvailabilitySearchResult, SubjectResponse

router = APIRouter(tags=["Search"])


@router.get("/search/availability", response_model=List[AvailabilitySearchResult])
async def search_open_slots(
    subject: Optional[str] = Query(None, description="Exact subject name"),
    tutor_name: Optional[str] = Query(None, alias="tutorName", description="Part of the tutor's name"),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    time: Optional[str] = Query(None, description="HH:MM, must fall inside the slot"),
    db: AsyncSession = Depends(get_db),
):
    """
    Open slots matching all given filters, ordered by date then start time.
    No match is an empty list.
    """
    return await search_availability(
        db,
        subject=subject,
        tutor_name=tutor_name,
        on_date=date,
        at_time=time,
    )


@router.get("/subjects", response_model=List[SubjectResponse])
async def get_subjects(db: AsyncSession = Depends(get_db)):
    return await list_subjects(db)
