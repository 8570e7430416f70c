import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from readowl.models import Banner, User
from readowl.schemas.banner import BannerItem
from readowl.utils.instrumentation import log_event

logger = logging.getLogger(__name__)


def list_banners(db: Session) -> List[BannerItem]:
    """Banners by display order. A database failure yields an empty list so the home page still renders."""
    try:
        rows = db.query(Banner).order_by(Banner.order, Banner.created_at).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to load banners: %s", str(e), exc_info=True)
        return []
    return [BannerItem.model_validate(row) for row in rows]


def replace_banners(db: Session, admin: User, banners: List[BannerItem]) -> int:
    """Swap the whole banner set in one transaction."""
    try:
        db.query(Banner).delete(synchronize_session=False)
        db.add_all([
            Banner(name=item.name, image_url=item.image_url, link_url=item.link_url, order=item.order)
            for item in banners
        ])
        log_event(db, "banners_replaced", user_id=admin.id, properties={"count": len(banners)})
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Banners replaced by %s: %d items", admin.id, len(banners))
    return len(banners)
