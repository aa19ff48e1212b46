from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from sharebox.config import LEDGER_AUDIT_INTERVAL_MINUTES
from sharebox.db import ensure_connection
from sharebox.services.ledger import reconcile


def run_ledger_audit(engine, logger) -> list[dict]:
    if not ensure_connection():
        logger.warning("event=ledger_audit_skipped reason=database_unreachable")
        return []
    with Session(engine) as session:
        corrections = reconcile(session)
    if corrections:
        logger.warning("event=ledger_audit_corrected users=%s", len(corrections))
    else:
        logger.info("event=ledger_audit_clean")
    return corrections


def start_ledger_auditor(engine, logger):
    scheduler = BackgroundScheduler()

    def _job():
        try:
            run_ledger_audit(engine, logger)
        except OperationalError as e:
            logger.error("Database connection error in ledger audit: %s", str(e))
        except Exception as e:
            logger.error("Unexpected error in ledger audit: %s", str(e))

    scheduler.add_job(_job, "interval", minutes=LEDGER_AUDIT_INTERVAL_MINUTES)
    scheduler.start()
    return scheduler
