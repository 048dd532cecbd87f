import os
from contextlib import asynccontextmanager

from tortoise import Tortoise

from helper.ai_logging import ai_info, init_logger
from helper.config import DEFAULT_DATABASE_URL, get_settings

MODEL_MODULES = [
    'models.user',
    'models.organization',
    'models.chat',
    'models.message',
]


def build_tortoise_config(db_url: str, with_aerich: bool = True) -> dict:
    modules = (['aerich.models'] if with_aerich else []) + MODEL_MODULES
    return {
        'connections': {
            'default': db_url
        },
        'apps': {
            'models': {
                'models': modules,
                'default_connection': 'default'
            },
        },
    }


# read by aerich (see [tool.aerich] in pyproject.toml)
TORTOISE_CONFIG = build_tortoise_config(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL))


async def init_orm(config: dict = None, generate_schemas: bool = True):
    await Tortoise.init(config=config or TORTOISE_CONFIG)
    if generate_schemas:
        # In prod, rely on aerich migrations; safe=True leaves existing tables alone.
        await Tortoise.generate_schemas(safe=True)


async def close_orm():
    await Tortoise.close_connections()


@asynccontextmanager
async def lifespan(app):
    # local import: aerich loads this module only for TORTOISE_CONFIG
    from services.bootstrap import build_services

    settings = get_settings()
    init_logger(to_file=settings.log_to_file)
    await init_orm(build_tortoise_config(settings.database_url))
    ai_info("lifespan.start", {"db": settings.database_url.split("://", 1)[0], "provider": settings.llm_provider})
    build_services(app, settings)
    try:
        yield
    finally:
        await close_orm()
        ai_info("lifespan.stop")
