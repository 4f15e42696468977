import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from formforge.config import settings
from formforge.routers.forms import router as forms_router
from formforge.routers.records import router as records_router


def configure_logging(level: str = settings.LOG_LEVEL):
    """Console logging for the API process."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    if not any(isinstance(h, logging.StreamHandler) for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        root_logger.addHandler(console_handler)


configure_logging()

app = FastAPI(title="FormForge Backend (FastAPI + Mongo)")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(forms_router)
app.include_router(records_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
