from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import time
import logging

from ekskul_recommender.config import settings
from ekskul_recommender.web.routes import recommend

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Ekstrakurikuler Recommender API",
    description="API gợi ý ekstrakurikuler cho học sinh dựa trên ratings và questionnaire",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def slow_request_middleware(request: Request, call_next):
    """Log requests chậm (> 5s), ví dụ generate cho nhiều users."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    if process_time > 5:
        logger.warning(
            f"Slow request: {request.method} {request.url.path} "
            f"took {process_time:.2f}s"
        )

    return response


# Include routers
app.include_router(recommend.router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Ekstrakurikuler Recommender API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "recommender-api"}
