import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from starlette.middleware.base import BaseHTTPMiddleware
from library_ledger.config import settings
from library_ledger.database import engine, Base, SessionLocal
from library_ledger.exceptions import LibraryError
from library_ledger.routes import auth, book, users, issues, requests, fines
from library_ledger.seed import seed_sample_data
from library_ledger.services.suggestion_service import suggestion_service

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log incoming requests."""
    async def dispatch(self, request: Request, call_next):
        auth_header = request.headers.get("Authorization")
        client_ip = request.client.host if request.client else "unknown"
        logger.info(f"{request.method} {request.url.path} - IP: {client_ip} - Auth: {'Present' if auth_header else 'Missing'}")

        response = await call_next(request)
        return response

Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager to seed data and manage the suggestion client."""
    if settings.seed_sample_data:
        db = SessionLocal()
        try:
            seed_sample_data(db)
        finally:
            db.close()

    logger.info("Starting suggestion service client...")
    await suggestion_service.start()

    yield

    logger.info("Stopping suggestion service client...")
    await suggestion_service.close()


app = FastAPI(
    title="Library Ledger API",
    description="Backend API for library issuing, returns, requests and overdue fines",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Logging middleware (last, to log everything)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(auth.router)
app.include_router(book.router)
app.include_router(users.router)
app.include_router(issues.router)
app.include_router(requests.router)
app.include_router(fines.router)

@app.get("/")
async def root():
    return {"message": "Library Ledger API", "version": "1.0.0"}

@app.get("/api/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "library_ledger.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
