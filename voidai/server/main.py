import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CORS_ORIGINS
from voidai.server.routers.admin_routes import admin_router
from voidai.server.routers.auth_routes import auth_router
from voidai.server.routers.generation_routes import generation_router
from voidai.server.routers.me_routes import me_router
from voidai.server.routers.payment_routes import payment_router
from voidai.server.routers.video_routes import video_router
from voidai.services.database import get_database_service
from voidai.services.errors import InvalidInput, VoidAIError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_database_service().create_all()
    yield
    get_database_service().dispose()


app = FastAPI(title="Void AI", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,  # Allows requests from these origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods (GET, POST, etc.)
    allow_headers=["*"],  # Allows all headers
)


@app.exception_handler(VoidAIError)
async def handle_service_error(request: Request, exc: VoidAIError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = InvalidInput("Invalid input", details=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/", tags=["root"])
def root():
    return {"message": "success"}


# Include the routers in the main app with a prefix
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(generation_router, prefix="/api", tags=["generation"])
app.include_router(video_router, prefix="/api/videos", tags=["videos"])
app.include_router(me_router, prefix="/api", tags=["me"])
app.include_router(payment_router, prefix="/api", tags=["payments"])
app.include_router(admin_router, prefix="/api/admin", tags=["admin"])

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
