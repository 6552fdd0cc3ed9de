import uvicorn

from app.config import settings


if __name__ == "__main__":
    # log_config=None keeps the JSON logging set up in app.main
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT, log_config=None)
