# main.py

from fastapi import FastAPI

# Routers
from routers.health import router as health_router
from routers.webhook import router as webhook_router
from routers.deploy import router as deploy_router

app = FastAPI(
    title="Business Card Deploy",
    description="Builds the business card page and publishes it to a deploy branch",
    version="1.0.0",
)

app.include_router(health_router)
app.include_router(webhook_router)
app.include_router(deploy_router)
