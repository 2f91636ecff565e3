import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # Remote API settings
    api_base_url: str = os.getenv("BOOKS_API_BASE_URL", "https://jsonplaceholder.typicode.com")
    collection_path: str = os.getenv("BOOKS_COLLECTION_PATH", "/posts")
    request_timeout: float = float(os.getenv("BOOKS_REQUEST_TIMEOUT", "10"))

    # Client-side display cap applied on every full reload
    list_cap: int = int(os.getenv("BOOKS_LIST_CAP", "20"))

    # Web UI settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Books CRUD App")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")

    @property
    def collection_url(self) -> str:
        return self.api_base_url.rstrip("/") + "/" + self.collection_path.strip("/")


settings = Settings()
