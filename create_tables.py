import asyncio

from fileshare.database import create_all, close_engine


async def create_tables():
    await create_all()
    await close_engine()
    print("Tables created successfully!")


asyncio.run(create_tables())
