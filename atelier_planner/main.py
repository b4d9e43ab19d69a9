import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from atelier_planner.api import router
from atelier_planner.config import get_settings

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

#  python -m uvicorn atelier_planner.main:app --reload --port 9000 run this
app = FastAPI(title="Atelier Planner")

# --- Allow the special-week web application access ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"message": "Atelier Planner is running!"}


app.include_router(router)
