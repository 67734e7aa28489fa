import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from matchplan.database import engine, init_db
from matchplan.db_schema_patch import ensure_schema
from matchplan.routes import corrections, editor, runtime, schedule, standings, teams, tournaments

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = "Matchplan Tournament API"
APP_VERSION = "0.1.0"

app = FastAPI(title=APP_NAME, version=APP_VERSION)

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(teams.router, prefix="/api", tags=["teams"])
app.include_router(schedule.router, prefix="/api", tags=["schedule"])
# Live results: start + score, recomputes standings and placements
app.include_router(runtime.router, prefix="/api", tags=["runtime"])
app.include_router(editor.router, prefix="/api", tags=["editor"])
app.include_router(corrections.router, prefix="/api", tags=["corrections"])
app.include_router(standings.router, prefix="/api", tags=["standings"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    ensure_schema(engine)
    logger.info("%s %s started with %s routes", APP_NAME, APP_VERSION, len(app.routes))


@app.get("/api/health")
def health_check():
    return {"app_name": APP_NAME, "version": APP_VERSION, "status": "healthy"}
