"""
Home page banners. Anyone can read them; only admins replace the set.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
import logging

from readowl.core.auth import get_admin_user
from readowl.database import get_db
from readowl.models import User
from readowl.schemas.banner import BannerList, BannerPayload
from readowl.services import banner_service, home_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/banners", tags=["banners"])


@router.get("", response_model=BannerList)
def get_banners(db: Session = Depends(get_db)):
    return BannerList(banners=banner_service.list_banners(db))


@router.put("", status_code=status.HTTP_204_NO_CONTENT)
def replace_banners(
    payload: BannerPayload,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    banner_service.replace_banners(db, admin, payload.banners)
    home_service.invalidate()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
