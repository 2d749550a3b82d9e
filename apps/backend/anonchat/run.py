import uvicorn
from .config import get_settings  # ensures .env is loaded

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "anonchat.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=(settings.ENV == "development"),
    )
