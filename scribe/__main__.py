import uvicorn

from scribe.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "scribe.main:create_app", factory=True, host=settings.host, port=settings.port
    )
