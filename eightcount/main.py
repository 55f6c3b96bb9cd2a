"""FastAPI application - serves the analysis API."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eightcount.api.upload import router as upload_router

app = FastAPI(title="Eightcount", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(upload_router, prefix="/api")


@app.get("/api/health")
async def health():
    return {"status": "ok"}


def run():
    import uvicorn
    from eightcount.config import settings
    uvicorn.run(
        "eightcount.main:app",
        host=settings.host,
        port=settings.port,
    )
