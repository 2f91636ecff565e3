import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from book import Book
from config import settings
from library import BookStore
from services.http_client import BooksAPIError, BooksClient, NotFound
from utils.validators import BookForm, ValidationError

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

# Form field names on the wire differ from the model attribute for the owner
WIRE_FIELD_NAMES = {"owner_id": "userId"}


# --- Models ---
class BookModel(BaseModel):
    id: int
    title: str
    body: str
    userId: int

    @staticmethod
    def from_book(book: Book) -> "BookModel":
        return BookModel(**book.to_dict())


class DraftModel(BaseModel):
    # Left loose so bad values reach the form rules and come back as field errors
    title: Any = ""
    body: Any = ""
    userId: Any = 1


class StateModel(BaseModel):
    books: List[BookModel]
    is_loading: bool
    is_submitting: bool
    deleting_id: Optional[int] = None
    last_error: Optional[str] = None


def create_app(client_factory: Callable[[], BooksClient] = BooksClient) -> FastAPI:
    """Build the web app. One store lives for the whole process, owned by ``app.state``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = client_factory()
        app.state.store = BookStore(client)
        try:
            yield
        finally:
            await client.close()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(BooksAPIError)
    async def remote_error_handler(request: Request, exc: BooksAPIError):
        logger.warning("%s %s failed against the remote API: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        errors = {WIRE_FIELD_NAMES.get(k, k): v for k, v in exc.errors.items()}
        return JSONResponse(status_code=422, content={"errors": errors})

    # --- Pages ---
    @app.get("/", include_in_schema=False)
    async def index():
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/health")
    async def health(store: BookStore = Depends(get_store)):
        """Lightweight health check; does not reach the remote API."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_books": len(store.books),
            "remote": store.client.base_url,
        }

    # --- Store intents ---
    @app.get("/api/state", response_model=StateModel)
    async def get_state(store: BookStore = Depends(get_store)):
        return store.snapshot().to_dict()

    @app.post("/api/reload", response_model=StateModel)
    async def reload_books(store: BookStore = Depends(get_store)):
        """Reload the list; on failure the stale list is returned with a 502."""
        ok = await store.reload()
        state = store.snapshot().to_dict()
        if not ok:
            return JSONResponse(status_code=502, content={"detail": store.last_error, "state": state})
        return state

    @app.get("/api/books/{book_id}", response_model=BookModel)
    async def get_book(book_id: int, store: BookStore = Depends(get_store)):
        return BookModel.from_book(await store.fetch(book_id))

    @app.post("/api/books", response_model=BookModel, status_code=201)
    async def add_book(payload: DraftModel, store: BookStore = Depends(get_store)):
        draft = _draft_from_payload(payload)
        return BookModel.from_book(await store.add(draft))

    @app.put("/api/books/{book_id}", response_model=BookModel)
    async def update_book(book_id: int, payload: DraftModel, store: BookStore = Depends(get_store)):
        draft = _draft_from_payload(payload)
        return BookModel.from_book(await store.edit(book_id, draft))

    @app.delete("/api/books/{book_id}", status_code=204)
    async def delete_book(book_id: int, store: BookStore = Depends(get_store)):
        await store.remove(book_id)
        return Response(status_code=204)

    return app


def get_store(request: Request) -> BookStore:
    """Dependency handing routes the process-wide store."""
    return request.app.state.store


def _draft_from_payload(payload: DraftModel):
    form = BookForm()
    values: Dict[str, object] = {"title": payload.title, "body": payload.body, "owner_id": payload.userId}
    for name, value in values.items():
        form.set_field(name, value)
    return form.submit()


app = create_app()
