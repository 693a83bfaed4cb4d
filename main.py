from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
from scam_registry.routers import auth
from scam_registry.core.config import settings
from scam_registry.core.logging import configure_logging


def create_app() -> FastAPI:
    """Build the development auth gateway"""
    configure_logging()

    app = FastAPI(
        title=f"{settings.APP_NAME} Auth Gateway",
        description=settings.DESCRIPTION,
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth.router, prefix=f"{settings.API_PREFIX}/auth", tags=["authentication"])

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": {"message": "Invalid request", "code": "validation_error", "details": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]}
            }
        )

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": f"Welcome to the {settings.APP_NAME} auth gateway",
            "version": settings.VERSION
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": settings.APP_NAME}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=3001,
        reload=settings.DEBUG
    )
