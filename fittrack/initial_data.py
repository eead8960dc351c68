import asyncio
import logging

from fittrack.config import settings
from fittrack.core.logging_config import setup_logging
from fittrack.database import AsyncSessionLocal, create_tables
from fittrack.models import MetricType
from fittrack.storage import SqlStorage, Storage

logger = logging.getLogger(__name__)

# Development accounts; the first one is what AUTH_MODE=dev signs in as
DEV_USERS = [
    {"id": settings.DEV_USER_ID, "username": settings.DEV_USERNAME, "name": settings.DEV_USER_NAME},
    {"id": "dev-user-2", "username": "testuser", "name": "Test User"},
]

SAMPLE_EXERCISES = [
    # Strength
    ("Bench Press", MetricType.WEIGHT, "lbs"),
    ("Squat", MetricType.WEIGHT, "lbs"),
    ("Deadlift", MetricType.WEIGHT, "lbs"),
    ("Overhead Press", MetricType.WEIGHT, "lbs"),
    ("Barbell Row", MetricType.WEIGHT, "lbs"),
    ("Dumbbell Curl", MetricType.WEIGHT, "lbs"),
    # Bodyweight
    ("Push-ups", MetricType.COUNT, "reps"),
    ("Pull-ups", MetricType.COUNT, "reps"),
    ("Dips", MetricType.COUNT, "reps"),
    ("Sit-ups", MetricType.COUNT, "reps"),
    ("Burpees", MetricType.COUNT, "reps"),
    # Cardio
    ("Running", MetricType.DISTANCE, "miles"),
    ("Cycling", MetricType.DISTANCE, "miles"),
    ("Swimming", MetricType.DISTANCE, "meters"),
    ("Plank", MetricType.DURATION, "seconds"),
    ("Jump Rope", MetricType.DURATION, "seconds"),
]


async def seed_data(storage: Storage) -> dict[str, int]:
    """Create the dev users and the sample exercise catalog. Rows that already exist are left alone."""
    created = {"users": 0, "exercises": 0}

    for dev_user in DEV_USERS:
        if await storage.get_user(dev_user["id"]):
            logger.info("User already exists: %s", dev_user["id"])
            continue
        await storage.upsert_user(dev_user["id"], username=dev_user["username"], name=dev_user["name"])
        created["users"] += 1
        logger.info("Created user: %s (%s)", dev_user["name"], dev_user["id"])

    for name, metric_type, unit in SAMPLE_EXERCISES:
        if await storage.get_exercise_by_name(name):
            logger.info("Exercise already exists: %s", name)
            continue
        await storage.create_exercise(name=name, metric_type=metric_type, unit=unit)
        created["exercises"] += 1
        logger.info("Created exercise: %s (%s)", name, metric_type.value)

    return created


async def seed_database() -> dict[str, int]:
    if settings.database_mode != "postgres":
        await create_tables()
    async with AsyncSessionLocal() as session:
        created = await seed_data(SqlStorage(session))
    logger.info("Seeding complete: %d user(s), %d exercise(s) created", created["users"], created["exercises"])
    return created


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(seed_database())


if __name__ == "__main__":
    main()
