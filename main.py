import importlib
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.logging_config import setup_logging
from config.settings import settings
from models.index import import_all_models, init_db
from utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

setup_logging()
import_all_models()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        init_db()
        logger.info("Database tables ensured")
    if settings.SCHEDULER_ENABLED:
        from scripts.scheduler import shutdown_scheduler, start_scheduler
        start_scheduler()
    yield
    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()


app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)
# CORS: use our parsed list
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Authorization", "Content-Type"],
)
register_error_handlers(app)


#load all routes
def load_routes(directory: Path):
    routers = []
    for item in sorted(directory.rglob("*_routes.py")):
        dotted = "api." + ".".join(item.relative_to(directory).with_suffix("").parts)
        module = importlib.import_module(dotted)
        if hasattr(module, "router"):
            routers.append(module.router)
    return routers


for router in load_routes(Path(__file__).parent / "api"):
    app.include_router(router, prefix=settings.API_PREFIX)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/")
def home():
    return {"message": f"Welcome to {settings.APP_NAME}"}


# ✅ Add this block to run locally
if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", settings.PORT))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=settings.DEBUG)
