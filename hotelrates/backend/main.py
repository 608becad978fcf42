"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from hotelrates.backend.core.config import settings
from hotelrates.backend.core.logging import setup_logging
from hotelrates.backend.db.init_db import init_db
from hotelrates.backend.api import rates


# Setup logging
setup_logging(settings.log_level)

# Initialize database
init_db()

# Create FastAPI app
app = FastAPI(
    title="Hotel Rate Engine API",
    description="Nightly rate calculation and yield management",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rates.router, prefix="/api", tags=["rates"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Hotel Rate Engine API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
