import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import AUTO_CREATE_TABLES, CORS_ORIGINS
from database import init_db
from routes.auth_routes import router as auth_router
from routes.friend_routes import router as friend_router
from routes.message_routes import router as message_router
from routes.socket_routes import router as socket_router
from services.errors import ChatError, Internal
from services.event_router import get_event_router
from supabase_client import is_supabase_configured

logger = logging.getLogger(__name__)

app = FastAPI(title="Chat Backend")

# Configure CORS (cookie auth needs explicit origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    if isinstance(exc, Internal):
        logger.error(f"{request.method} {request.url.path} failed", exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(auth_router)
app.include_router(message_router)
app.include_router(friend_router)
app.include_router(socket_router)


@app.get("/api/health-check")
async def health():
    return {
        "status": "ok",
        "online": len(get_event_router().presence),
        "storage_configured": is_supabase_configured(),
    }


@app.on_event("startup")
def _create_tables():
    if AUTO_CREATE_TABLES:
        try:
            init_db()
        except Exception as e:
            logger.error(f"Database init failed: {e}")
            raise


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
