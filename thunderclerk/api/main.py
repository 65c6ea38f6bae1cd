"""ThunderClerk HTTP service: the mail add-on's entry point into the pipeline."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from thunderclerk.api.routes.analysis import router as analysis_router
from thunderclerk.api.routes.extraction import router as extraction_router
from thunderclerk.config import get_settings

app = FastAPI(
    title="ThunderClerk API",
    description="Turn emails into calendar events, tasks and contacts with a local LLM",
    version="0.1.0",
)

# The add-on calls from a moz-extension:// origin; local tooling from localhost.
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"moz-extension://.*|http://localhost:\d+|http://127\.0\.0\.1:\d+",
    allow_credentials=False,
    allow_methods=["POST", "GET"],
    allow_headers=["*"],
)

app.include_router(extraction_router)
app.include_router(analysis_router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness plus the configured model, so the add-on can show what it talks to."""
    return {"status": "healthy", "model": get_settings().ollama_model}


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
