"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from threadcraft.core.config import settings
from threadcraft.core.logging import setup_logging
from threadcraft.api.routes import billing, clerk, content, health, users

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="ThreadCraft API",
    description="Social content generation backed by points and subscriptions",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(billing.router)
app.include_router(clerk.router)
app.include_router(content.router)
app.include_router(users.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "ThreadCraft API", "version": "1.0.0"}
