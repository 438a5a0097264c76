# file: main.py

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import CORS_ORIGINS, LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from app.controllers.auth import router as auth_router
from app.controllers.notification import router as notification_router
from app.controllers.realtime import router as realtime_router
from app.database.connection import init_db
from app.services.realtime import manager

app = FastAPI(title="Notifications API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes look the push channel up here; leaving it unset just disables pushes.
app.state.realtime = manager

app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(notification_router, prefix="/api/notifications", tags=["notifications"])
app.include_router(realtime_router, tags=["realtime"])


@app.get("/")
async def root():
    return {"message": "Notifications API is running"}

@app.on_event("startup")
async def startup_event():
    await init_db()
