import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from anamnesis.api import router as api_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("anamnesis")

app = FastAPI(
    title="Anamnesis GPT",
    version="0.1.0"
)

# CORS – open while the client app is served from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/ping")
def ping():
    return {"status": "ok"}


@app.on_event("startup")
def startup_event():
    logger.info("Anamnesis backend started (sessions: in-memory)")


@app.on_event("shutdown")
def shutdown_event():
    logger.info("Anamnesis backend stopped")


# ======================
# API ROUTES
# ======================
app.include_router(api_router, prefix="/api")
