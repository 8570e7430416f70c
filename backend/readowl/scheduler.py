"""
Background scheduler for periodic tasks like refreshing the home rankings.

Uses APScheduler to run tasks in the background.
"""
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session
from readowl.core.config import settings
from readowl.database import SessionLocal
from readowl.services.home_service import refresh_carousels
from readowl.utils.instrumentation import log_event_best_effort

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def refresh_rankings_job():
    """
    Scheduled job to recompute the home carousels into the ranking cache.
    Runs every RANKING_REFRESH_MINUTES.
    """
    logger.info("Running ranking refresh job")

    db: Session = SessionLocal()
    try:
        carousels = refresh_carousels(db)
        sizes = {
            "trending": len(carousels.trending),
            "popular": len(carousels.popular),
            "top_rated": len(carousels.top_rated),
            "recent": len(carousels.recent),
        }
        logger.info("Ranking refresh job completed: %s", sizes)
    except Exception as e:
        logger.exception("Ranking refresh job failed: %s", e)
        return
    finally:
        db.close()

    log_event_best_effort("rankings_refreshed", properties=sizes)


def start_scheduler():
    """
    Start the background scheduler with all configured jobs.
    Call this from the FastAPI startup event.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return

    logger.info("Starting background scheduler")
    scheduler = BackgroundScheduler()

    scheduler.add_job(
        refresh_rankings_job,
        trigger=IntervalTrigger(minutes=settings.RANKING_REFRESH_MINUTES),
        id="refresh_home_rankings",
        name="Refresh home page rankings",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Background scheduler started (ranking refresh every %d min)", settings.RANKING_REFRESH_MINUTES)


def stop_scheduler():
    """
    Stop the background scheduler.
    Call this from the FastAPI shutdown event.
    """
    global scheduler

    if scheduler is not None:
        logger.info("Stopping background scheduler")
        scheduler.shutdown()
        scheduler = None
