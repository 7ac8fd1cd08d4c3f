import uvicorn

from content_hub.config import settings


def main():
    uvicorn.run(
        "content_hub.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
