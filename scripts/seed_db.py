"""Script to seed sample doctor and patient profiles for local development.

Prints a bearer token per profile so the API can be exercised without the
identity provider.
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

from sqlalchemy import delete

from medibook.core.security import create_access_token
from medibook.database import AsyncSessionLocal, engine
from medibook.models import appointments, doctors, earnings, metadata, patients, schedule_days

SAMPLE_DOCTORS = [
    {
        "full_name": "Dr. Rajesh Kumar",
        "specialization": "Cardiology",
        "consultation_fee": 1500,
        "availability": [
            {"day": "Monday", "start_time": "09:00", "end_time": "17:00"},
            {"day": "Wednesday", "start_time": "09:00", "end_time": "17:00"},
            {"day": "Friday", "start_time": "09:00", "end_time": "14:00"},
        ],
    },
    {
        "full_name": "Dr. Nisha Patel",
        "specialization": "Dermatology",
        "consultation_fee": 1200,
        "availability": [
            {"day": "Monday", "start_time": "10:00", "end_time": "18:00"},
            {"day": "Tuesday", "start_time": "10:00", "end_time": "18:00"},
            {"day": "Thursday", "start_time": "10:00", "end_time": "18:00"},
        ],
    },
]

SAMPLE_PATIENTS = ["Amit Singh", "Priya Mehta"]


async def seed_db() -> None:
    """Replace all scheduling data with sample profiles."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    async with AsyncSessionLocal() as session:
        for table in (earnings, appointments, schedule_days, patients, doctors):
            await session.execute(delete(table))

        tokens: list[tuple[str, str, str]] = []

        for sample in SAMPLE_DOCTORS:
            user_id = uuid4()
            await session.execute(
                doctors.insert().values(
                    id=uuid4(),
                    user_id=user_id,
                    is_available_for_consultation=True,
                    **sample,
                )
            )
            tokens.append(("doctor", sample["full_name"], str(user_id)))

        for full_name in SAMPLE_PATIENTS:
            user_id = uuid4()
            await session.execute(
                patients.insert().values(id=uuid4(), user_id=user_id, full_name=full_name)
            )
            tokens.append(("patient", full_name, str(user_id)))

        await session.commit()

    await engine.dispose()

    print("✓ Database seeded successfully!")
    for role, name, user_id in tokens:
        token = create_access_token({"sub": user_id, "role": role}, timedelta(days=7))
        print(f"\n{role:<8} {name}\n  {token}")


if __name__ == "__main__":
    asyncio.run(seed_db())
