from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from readowl.database import get_db
from readowl.schemas.ranking import HomeResponse, RankingResponse
from readowl.services import banner_service, home_service
from readowl.utils.timing import utcnow

router = APIRouter(tags=["home"])


@router.get("/home", response_model=HomeResponse)
def home(db: Session = Depends(get_db)):
    """Banners plus the four carousels; carousels come from the ranking cache when fresh."""
    return HomeResponse(
        banners=banner_service.list_banners(db),
        carousels=home_service.get_home_carousels(db),
        generated_at=utcnow(),
    )


@router.get("/rankings/{kind}", response_model=RankingResponse)
def rankings(
    kind: str,
    window_days: Optional[int] = Query(None, ge=1, le=365),
    limit: Optional[int] = Query(None, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Compute one ranking live: trending, popular or top_rated."""
    if kind not in home_service.RANKING_KINDS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown ranking. Must be one of: {', '.join(home_service.RANKING_KINDS)}",
        )
    window, items = home_service.rank_books(db, kind, window_days=window_days, limit=limit)
    return RankingResponse(kind=kind, window_days=window, items=items)
