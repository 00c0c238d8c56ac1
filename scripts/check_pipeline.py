import asyncio

from sqlalchemy import func, select

from app.clock import utcnow
from app.database import async_session_maker
from app.models.artifact import GeneratedArtifact
from app.services.job_queue import JobQueue


async def check_pipeline():
    print("Checking generation pipeline state...")
    if not async_session_maker:
        print("Database not configured.")
        return

    async with async_session_maker() as db:
        counts = await JobQueue(db).count_by_status()
        if not counts:
            print("No generation requests found.")
        for status, count in sorted(counts.items()):
            print(f"Requests {status}: {count}")

        now = utcnow()
        result = await db.execute(
            select(func.count())
            .select_from(GeneratedArtifact)
            .where(GeneratedArtifact.release_at <= now)
            .where(GeneratedArtifact.notification_sent.is_(False))
        )
        print(f"Released artifacts awaiting notification: {result.scalar_one()}")

        result = await db.execute(
            select(func.count())
            .select_from(GeneratedArtifact)
            .where(GeneratedArtifact.release_at > now)
        )
        print(f"Artifacts still held back: {result.scalar_one()}")

if __name__ == "__main__":
    asyncio.run(check_pipeline())
