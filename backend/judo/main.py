import logging
import os
import subprocess
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from judo.config import get_config
from judo.database import init_db
from judo.errors import TournamentError
from judo.routes import bouts, brackets, configuration, live, mats, pools, standings, teams

logger = logging.getLogger(__name__)

app = FastAPI(title="Judo Tournament API")


# Get build info
def get_build_info():
    """Get git commit hash or build timestamp"""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=os.path.dirname(os.path.dirname(__file__)),
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass

    # Fallback to build timestamp
    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()

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


@app.exception_handler(TournamentError)
async def tournament_error_handler(request: Request, exc: TournamentError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(teams.router, prefix="/api", tags=["roster"])
app.include_router(bouts.router, prefix="/api", tags=["bouts"])
app.include_router(pools.router, prefix="/api", tags=["pools"])
app.include_router(standings.router, prefix="/api", tags=["standings"])
app.include_router(brackets.router, prefix="/api", tags=["brackets"])
app.include_router(mats.router, prefix="/api", tags=["mats"])
app.include_router(configuration.router, prefix="/api", tags=["config"])

# Live spectator feed (WebSocket)
app.include_router(live.router, prefix="/api", tags=["live"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    config = get_config()
    logger.info("%s started (build %s, %d mats max)", config.name, BUILD_HASH, config.tatamis.nombre_max)


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {"app_name": "Judo Tournament API", "build_hash": BUILD_HASH, "status": "healthy"}
