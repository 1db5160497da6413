"""
Script để chạy FastAPI application.
"""
import logging
import os

import uvicorn

if __name__ == "__main__":
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))

    # Chỉ dùng reload trong development
    is_development = os.getenv("ENVIRONMENT", "development").lower() == "development"

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    uvicorn.run(
        "ekskul_recommender.main:app",
        host=host,
        port=port,
        reload=is_development,
        log_level="info"
    )
