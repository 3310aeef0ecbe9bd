import os

import dotenv
from loguru import logger

from companion.configuration.config import Config
from companion.configuration.inject import ConfigStore, get_config_provider
from companion.utility import configure_logging

dotenv.load_dotenv(dotenv_path=os.getenv("ENV_FILE", ".env"))

ENV_PREFIX: str = "TEACHER_COMPANION"


async def setup_config_store(filename: str = "config.yml") -> None:

    config_file: str = os.getenv("CONFIG_FILE", filename)
    store: ConfigStore = ConfigStore.get_instance()

    if store.is_configured():
        return

    store.configure_context(source=config_file, env_filename=os.getenv("ENV_FILE", ".env"), env_prefix=ENV_PREFIX)

    assert store.is_configured(), "Config Store failed to configure properly"

    cfg: Config = store.config()
    if not cfg:
        raise ValueError("Config Store did not return a config")

    cfg.update({"runtime:config_file": config_file})

    configure_logging(cfg.get("logging") or {})

    logger.info("Config Store initialized successfully.")


def get_config() -> Config:
    """Get the active configuration, failing loudly if setup has not run"""
    provider = get_config_provider()
    if not provider.is_configured():
        raise ValueError("Config Store is not configured")
    return provider.get_config()
