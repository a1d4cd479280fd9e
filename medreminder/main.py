import asyncio
import logging
import sys
from typing import Optional

from medreminder.core.config import Settings, settings as default_settings
from medreminder.reminders.service import create_app

logger = logging.getLogger(__name__)


def configure_logging(settings: Optional[Settings] = None, log_file: Optional[str] = None) -> None:
    settings = settings or default_settings
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


async def run_once(settings: Optional[Settings] = None) -> None:
    """Cold-start the subsystem, run the startup rollover and report plan status."""
    app = create_app(settings=settings, alert=lambda message: logger.warning(f"ALERT: {message}"))
    async with app:
        await app.wait_idle()
        plans = await app.plans.list_plans()
        logger.info(f"📋 {len(plans)} medicine plan(s)")
        for plan in plans:
            state = "active" if plan.is_active else "inactive"
            logger.info(
                f"📋 #{plan.id} {plan.name} {plan.dosage} at {plan.notification_time} "
                f"({plan.food_timing.value} food) - {plan.duration} day(s) left, {state}"
            )
        await app.scheduler.get_scheduled_notifications()


def main() -> None:
    configure_logging()
    asyncio.run(run_once())


if __name__ == "__main__":
    main()
