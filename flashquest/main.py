from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from flashquest.core.config import CORS_ORIGINS, STATIC_DIR
from flashquest.db.base import Base, engine
from flashquest.auth.models import User, Subject, UserSubject  # noqa: F401  Import so create_all picks them up
from flashquest.flashcards.models import Flashcard, SavedFlashcard  # noqa: F401
from flashquest.progress.models import UserProgress  # noqa: F401

from flashquest.auth.routes import router as auth_router
from flashquest.flashcards.routes import router as flashcard_router
from flashquest.progress.routes import router as progress_router
from flashquest.api.routes import router as api_router


app = FastAPI(title="FlashQuest", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
)

# Mount static files directory
if STATIC_DIR.exists():
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR), html=True), name="static")
else:
    print(f"[STATIC] {STATIC_DIR} not found, static files disabled", flush=True)

# Create database tables (still useful in dev; in production prefer Alembic)
Base.metadata.create_all(bind=engine)

# Include routers
app.include_router(auth_router)
app.include_router(flashcard_router)
app.include_router(progress_router)
app.include_router(api_router)


# Redirect root to the front-end entry page
@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/static/index.html")
