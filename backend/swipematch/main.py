from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from swipematch.core.config import CORS_ORIGINS, PORT
from swipematch.core.db import Database, db, get_database
from swipematch.core.errors import StorageError, SwipeMatchError
from swipematch.routers import match

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Swipe Match API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.exception_handler(SwipeMatchError)
async def swipe_match_error_handler(request: Request, exc: SwipeMatchError):
    # Errors raised from dependencies, outside the routers' own handling
    if isinstance(exc, StorageError):
        logger.error(f"💥 Storage failure on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code,
                            content={"detail": {"error": "Something went wrong. Please try again."}})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"💥 Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500,
                        content={"detail": {"error": "Something went wrong. Please try again."}})


@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Starting Swipe Match API...")
    await db.ensure_indexes()
    logger.info("✅ Database indexes ensured")

    logger.info("📋 === REGISTERED ROUTES ===")
    for route in app.routes:
        if hasattr(route, "path") and hasattr(route, "methods"):
            logger.info(f"   {sorted(route.methods)[0]:6} {route.path}")
    logger.info("✨ Swipe Match API is ready!")


@app.get("/")
async def root():
    return {"message": "Welcome to the Swipe Match API"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/debug")
async def debug_info(database: Database = Depends(get_database)):
    """Connection status of MongoDB and Redis"""
    return {"api_status": "running", **await database.status()}


app.include_router(
    match.router,
    prefix="/api/match",
    tags=["match"]
)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
