import asyncio
import os
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from padel_ladder.db import normalize_database_url
from padel_ladder.entities import DEFAULT_SETTINGS
from padel_ladder.models import LeagueSettings

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
DATABASE_URL = normalize_database_url(DATABASE_URL)

engine = create_async_engine(DATABASE_URL, echo=False, pool_pre_ping=True)
Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _restriction_date() -> date:
    raw = os.getenv("CHALLENGE_RESTRICTION_DATE")
    if not raw:
        return DEFAULT_SETTINGS.challenge_restriction_date
    return date.fromisoformat(raw)


async def main():
    async with Session() as s:
        existing = (await s.execute(select(LeagueSettings))).scalars().first()
        if existing is None:
            s.add(
                LeagueSettings(
                    id=1,
                    challenge_restriction_date=_restriction_date(),
                    max_position_difference=int(
                        os.getenv(
                            "MAX_POSITION_DIFFERENCE",
                            DEFAULT_SETTINGS.max_position_difference,
                        )
                    ),
                )
            )
            await s.commit()
            print("Seeded league settings")
        else:
            print("League settings already present; nothing to seed")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
