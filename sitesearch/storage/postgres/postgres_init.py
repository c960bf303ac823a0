from loguru import logger
from tortoise import Tortoise

from sitesearch.utils.db_utils import to_tortoise_url

MODEL_MODULES = ["sitesearch.storage.models"]


async def init_database(database_url: str, *, generate_schemas: bool = True) -> None:
    """
    Connect Tortoise to the configured database and create/verify the tables.
    """
    db_url = to_tortoise_url(database_url)

    logger.info("Initializing database and ORM models...")

    await Tortoise.init(
        db_url=db_url,
        modules={"models": MODEL_MODULES},
    )

    if generate_schemas:
        await Tortoise.generate_schemas(safe=True)
        logger.info("Database tables created or verified.")


async def close_database() -> None:
    await Tortoise.close_connections()
