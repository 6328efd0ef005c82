"""
Initialize database tables and optionally seed courses

Usage:
    python init_db.py                  # create tables
    python init_db.py courses.csv      # create tables, upsert "id,name" rows
"""
import asyncio
import csv
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from course_archive.core.config import settings
from course_archive.core.database import Base
from course_archive.models import Course


async def init_db(courses_csv: str = None):
    """Create all tables in database"""
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=True
    )
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✅ Database tables created successfully")
    
    if courses_csv:
        session_maker = async_sessionmaker(engine, expire_on_commit=False)
        with open(courses_csv, newline="", encoding="utf-8") as f:
            rows = [row for row in csv.reader(f) if row and row[0].strip()]
        async with session_maker() as session:
            for row in rows:
                course_id = row[0].strip().upper()
                name = row[1].strip() if len(row) > 1 else None
                await session.merge(Course(id=course_id, name=name))
            await session.commit()
        print(f"✅ Seeded {len(rows)} courses")
    
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db(sys.argv[1] if len(sys.argv) > 1 else None))
