from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import (
    UserStore,
    authenticate_user,
    change_password,
    find_or_create_google_user,
    get_current_user,
    get_user_store,
    issue_tokens,
    refresh_tokens,
    register_user,
    to_user_response,
    verify_google_id_token,
)
from .config import ACCOUNT_DELETE_RATE_LIMIT, AUTH_RATE_LIMIT, CORS_ORIGINS
from .database import database
from .errors import InvalidCredentialsError, StorageError, UserExistsError
from .logger import get_logger
from .models import (
    USERNAME_PATTERN,
    ApiResponse,
    ChangePasswordRequest,
    DeletedResults,
    Difficulty,
    GoogleAuthRequest,
    PaginatedResults,
    RefreshTokenRequest,
    ResultsQuery,
    TestResult,
    TestResultCreate,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
    UserStats,
    UserUpdate,
)
from .rate_limiter import rate_limiter
from .results_service import ResultsService, get_results_service
from .storage.csv_export import csv_exporter

logger = get_logger(__name__)

EXPORT_LIMIT = 1000
LEADERBOARD_MAX_LIMIT = 50

auth_rate_limit = rate_limiter.rate_limit_dependency(
    *AUTH_RATE_LIMIT, scope="auth",
    message="Too many authentication attempts. Please try again later.",
)
account_delete_rate_limit = rate_limiter.rate_limit_dependency(
    *ACCOUNT_DELETE_RATE_LIMIT, scope="account-delete",
    message="Too many account deletion attempts. Please try again later.",
)

UsernameQuery = Query(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database.connect()
    yield
    database.disconnect()


def _error_response(status_code: int, error: str, details=None, headers=None) -> JSONResponse:
    content = {"success": False, "error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, "Validation failed", jsonable_encoder(exc.errors()))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _error_response(400, "Validation failed",
                               jsonable_encoder(exc.errors(include_url=False)))

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(500, "Internal server error")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


def create_app() -> FastAPI:
    app = FastAPI(title="Typespeed API", version="1.0.0", lifespan=lifespan)

    # CORS middleware to allow the React frontend to connect
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    register_routes(app)
    return app


def _require_self(user_id: int, current_user: dict):
    if current_user["id"] != user_id:
        raise HTTPException(status_code=403, detail="You can only modify your own account")


def register_routes(app: FastAPI):

    @app.get("/")
    async def root():
        return {"message": "Typespeed API", "version": "1.0.0"}

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    # Test results

    @app.post("/api/tests", response_model=ApiResponse[TestResult], status_code=status.HTTP_201_CREATED)
    async def create_test_result(result: TestResultCreate,
                                 service: ResultsService = Depends(get_results_service)):
        """Save a new test result"""
        saved = service.create_result(result)
        return ApiResponse(data=saved, message="Test result saved successfully")

    @app.get("/api/tests", response_model=ApiResponse[PaginatedResults])
    async def list_test_results(
        username: str = UsernameQuery,
        limit: int = Query(50, ge=1, le=1000),
        offset: int = Query(0, ge=0),
        difficulty: Optional[Difficulty] = Query(None),
        start_date: Optional[datetime] = Query(None),
        end_date: Optional[datetime] = Query(None),
        service: ResultsService = Depends(get_results_service),
    ):
        """Get test results for a user"""
        query = ResultsQuery(username=username, limit=limit, offset=offset, difficulty=difficulty,
                             start_date=start_date, end_date=end_date)
        return ApiResponse(data=service.list_results(query))

    @app.get("/api/tests/stats/{username}", response_model=ApiResponse[UserStats])
    async def get_user_stats(username: str = Path(..., min_length=3, max_length=20),
                             service: ResultsService = Depends(get_results_service)):
        """Get aggregate statistics for a user"""
        stats = service.get_user_stats(username)
        if stats is None:
            raise HTTPException(status_code=404, detail="No test results found for this user")
        return ApiResponse(data=stats)

    @app.get("/api/tests/leaderboard", response_model=ApiResponse[List[TestResult]])
    async def get_leaderboard(difficulty: Optional[Difficulty] = Query(None),
                              limit: int = Query(10, ge=1, le=LEADERBOARD_MAX_LIMIT),
                              service: ResultsService = Depends(get_results_service)):
        """Best results across all users"""
        return ApiResponse(data=service.get_leaderboard(difficulty, limit))

    @app.delete("/api/tests", response_model=ApiResponse[DeletedResults])
    async def delete_test_results(username: str = UsernameQuery,
                                  current_user: dict = Depends(get_current_user),
                                  service: ResultsService = Depends(get_results_service)):
        """Delete all test results for the signed-in user"""
        if current_user["username"].lower() != username.lower():
            raise HTTPException(status_code=403, detail="You can only delete your own results")
        deleted = service.delete_user_results(current_user["username"])
        return ApiResponse(data=DeletedResults(
            deleted=deleted,
            message=f"Deleted {deleted} test results for user {current_user['username']}",
        ))

    @app.get("/api/tests/export")
    async def export_test_results(username: str = UsernameQuery,
                                  service: ResultsService = Depends(get_results_service)):
        """Download a user's history as CSV"""
        page = service.list_results(ResultsQuery(username=username, limit=EXPORT_LIMIT, offset=0))
        return Response(
            content=csv_exporter.render(page.data),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{csv_exporter.filename(username)}"'},
        )

    # Authentication

    @app.post("/api/auth/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED,
              dependencies=[Depends(auth_rate_limit)])
    async def register(user_data: UserRegister, store: UserStore = Depends(get_user_store)):
        """Register a new user"""
        try:
            user = register_user(user_data, store)
        except UserExistsError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return issue_tokens(user)

    @app.post("/api/auth/login", response_model=TokenResponse, dependencies=[Depends(auth_rate_limit)])
    async def login(user_data: UserLogin, store: UserStore = Depends(get_user_store)):
        """Login and get access and refresh tokens"""
        user = authenticate_user(user_data.username, user_data.password, store)
        if not user:
            logger.warning("Failed login for %s", user_data.username)
            raise HTTPException(
                status_code=401,
                detail="Incorrect username or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        logger.info("User %s logged in", user["username"])
        return issue_tokens(user)

    @app.post("/api/auth/google", response_model=TokenResponse, dependencies=[Depends(auth_rate_limit)])
    async def google_login(request: GoogleAuthRequest, store: UserStore = Depends(get_user_store)):
        """Sign in (or sign up) with a Google ID token"""
        try:
            claims = verify_google_id_token(request.id_token)
            user = find_or_create_google_user(claims, store)
        except InvalidCredentialsError as e:
            raise HTTPException(status_code=401, detail=str(e))
        except UserExistsError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return issue_tokens(user)

    @app.post("/api/auth/refresh", response_model=TokenResponse, dependencies=[Depends(auth_rate_limit)])
    async def refresh(request: RefreshTokenRequest, store: UserStore = Depends(get_user_store)):
        """Exchange a refresh token for a new token pair"""
        try:
            return refresh_tokens(request.refresh_token, store)
        except InvalidCredentialsError as e:
            raise HTTPException(status_code=401, detail=str(e))

    @app.get("/api/auth/me", response_model=UserResponse)
    async def get_current_user_info(current_user: dict = Depends(get_current_user)):
        """Get current authenticated user info"""
        return to_user_response(current_user)

    @app.post("/api/auth/change-password", response_model=ApiResponse[UserResponse])
    async def change_user_password(request: ChangePasswordRequest,
                                   current_user: dict = Depends(get_current_user),
                                   store: UserStore = Depends(get_user_store)):
        try:
            change_password(current_user, request.current_password, request.new_password, store)
        except InvalidCredentialsError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ApiResponse(data=to_user_response(current_user), message="Password changed successfully")

    # Users

    @app.patch("/api/users/{user_id}", response_model=ApiResponse[UserResponse])
    async def update_user(user_id: int, update: UserUpdate,
                          current_user: dict = Depends(get_current_user),
                          store: UserStore = Depends(get_user_store)):
        """Set or clear the profile picture URL"""
        _require_self(user_id, current_user)
        user = store.set_profile_picture(user_id, update.profile_picture)
        return ApiResponse(data=to_user_response(user), message="Profile updated successfully")

    @app.delete("/api/users/{user_id}", response_model=ApiResponse[DeletedResults],
                dependencies=[Depends(account_delete_rate_limit)])
    async def delete_account(user_id: int,
                             current_user: dict = Depends(get_current_user),
                             store: UserStore = Depends(get_user_store),
                             service: ResultsService = Depends(get_results_service)):
        """Delete the signed-in account together with all of its test results"""
        _require_self(user_id, current_user)
        # results and account go together or not at all
        with store.client.transaction():
            deleted = service.delete_user_results(current_user["username"])
            store.delete_user(user_id)
        logger.info("Deleted account %s and %d test results", current_user["username"], deleted)
        return ApiResponse(data=DeletedResults(
            deleted=deleted,
            message=f"Account {current_user['username']} deleted",
        ))


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    logger.info("Starting server on %s:%s", host, port)
    uvicorn.run("typespeed.main:app", host=host, port=port, log_level="info")
