import logging

from fastapi import FastAPI

from api import activities
from config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

if not settings.is_model_configured:
    logger.warning("GEMINI_API_KEY is not set, generation requests will fail")

app = FastAPI(title="Trip activity planner")
app.include_router(activities.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
