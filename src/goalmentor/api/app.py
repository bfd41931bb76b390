"""
FastAPI application for the goal mentor.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import router

# Configure logging to show INFO from goalmentor modules
logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")
logging.getLogger("goalmentor").setLevel(logging.INFO)

app = FastAPI(
    title="Goal Mentor",
    description="Conversational mentor that walks users through their goal plans",
    version="0.1.0",
)

# CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {"message": "Goal Mentor API", "docs": "/docs"}
