from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from companion.api.router import router
from companion.configuration import ConfigProvider, get_config_provider, setup_config_store

app = FastAPI(title="Teacher Companion Service")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

app.include_router(router)


@app.on_event("startup")
async def startup():
    try:
        logger.info("Starting up application...")
        await setup_config_store()

        provider: ConfigProvider = get_config_provider()
        if not provider.is_configured():
            raise RuntimeError("Configuration setup failed")

        logger.info(f"Using LLM provider '{provider.get_config().get('llm:provider', default='openai')}'")
        logger.info("Application startup completed successfully")

    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise
