from fastapi import FastAPI
from estiba_dashboard.api import dashboard, premium, users
from estiba_dashboard.config import settings
from estiba_dashboard.db.postgrest import PostgrestClient
from estiba_dashboard.middleware.logging import logging_middleware
from prometheus_client import make_asgi_app
import structlog

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ]
)

app = FastAPI(title="Portal Estiba Admin API")


@app.on_event("startup")
async def startup():
    app.state.row_source = PostgrestClient.from_settings(settings)
    await app.state.row_source.connect()


@app.on_event("shutdown")
async def shutdown():
    await app.state.row_source.close()

app.middleware("http")(logging_middleware)

app.include_router(dashboard.router, tags=["dashboard"])
app.include_router(users.router, tags=["users"])
app.include_router(premium.router, tags=["premium"])

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

@app.get("/health")
async def health():
    return {"status": "healthy"}
