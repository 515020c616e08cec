from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Generic, List, Literal, Optional, TypeVar
from datetime import datetime

Difficulty = Literal["easy", "medium", "hard"]
DIFFICULTIES = ("easy", "medium", "hard")

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"
RESERVED_USERNAMES = {"admin", "root", "api", "test", "null", "undefined", "system"}

T = TypeVar("T")


def validate_password_strength(password: str) -> str:
    if not any(c.isupper() for c in password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        raise ValueError("Password must contain at least one number")
    return password


class TestResultCreate(BaseModel):
    """Result of one completed typing test, as submitted by the client"""
    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN,
                          description="Owner of the result")
    wpm: float = Field(..., ge=0, le=500, description="Words per minute")
    cpm: float = Field(..., ge=0, le=2500, description="Correct characters per minute")
    accuracy: float = Field(..., ge=0, le=100, description="Accuracy percentage")
    total_time: int = Field(..., ge=1, description="Test duration actually used (seconds)")
    difficulty: Difficulty = Field(..., description="Text difficulty tier")
    total_characters: int = Field(..., ge=1, description="Characters typed")
    correct_characters: int = Field(..., ge=0, description="Characters typed correctly")
    incorrect_characters: int = Field(..., ge=0, description="Characters typed incorrectly")
    test_text: Optional[str] = Field(None, description="Source text of the test")

    @model_validator(mode="after")
    def check_character_counts(self):
        if self.correct_characters + self.incorrect_characters > self.total_characters:
            raise ValueError("correct_characters + incorrect_characters cannot exceed total_characters")
        return self


class TestResult(BaseModel):
    """Stored test result"""
    id: int
    username: str
    wpm: float
    cpm: float
    accuracy: float
    total_time: int
    difficulty: Difficulty
    total_characters: int
    correct_characters: int
    incorrect_characters: int
    test_text: Optional[str] = None
    created_at: str


class ResultsQuery(BaseModel):
    """Filters and paging for a user's result history"""
    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    limit: int = Field(50, ge=1, le=1000)
    offset: int = Field(0, ge=0)
    difficulty: Optional[Difficulty] = None
    start_date: Optional[datetime] = Field(None, description="Inclusive lower bound on created_at")
    end_date: Optional[datetime] = Field(None, description="Inclusive upper bound on created_at")


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    limit: int
    offset: int
    has_more: bool = Field(..., alias="hasMore")


class PaginatedResults(BaseModel):
    data: List[TestResult]
    pagination: Pagination


class ImprovementTrend(BaseModel):
    wpm_change: float = 0
    accuracy_change: float = 0


class DifficultyBreakdown(BaseModel):
    easy: int = 0
    medium: int = 0
    hard: int = 0


class UserStats(BaseModel):
    """Aggregate statistics over all of a user's results"""
    username: str
    total_tests: int
    average_wpm: float
    average_accuracy: float
    best_wpm: float
    best_accuracy: float
    total_time_spent: int
    improvement_trend: ImprovementTrend
    difficulty_breakdown: DifficultyBreakdown


class DeletedResults(BaseModel):
    deleted: int
    message: str


class ApiResponse(BaseModel, Generic[T]):
    """Envelope used by every JSON endpoint"""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class UserRegister(BaseModel):
    """User registration request"""
    model_config = ConfigDict(extra="forbid")

    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8, description="User password")

    @field_validator("username")
    @classmethod
    def username_not_reserved(cls, value: str) -> str:
        if value.lower() in RESERVED_USERNAMES:
            raise ValueError("This username is reserved and cannot be used")
        return value

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return validate_password_strength(value)


class UserLogin(BaseModel):
    """User login request"""
    model_config = ConfigDict(extra="forbid")

    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=1, description="User password")


class GoogleAuthRequest(BaseModel):
    id_token: str = Field(..., min_length=1, description="Google ID token")


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return validate_password_strength(value)


class UserUpdate(BaseModel):
    """Profile changes; a null profile_picture removes the picture"""
    model_config = ConfigDict(extra="forbid")

    profile_picture: Optional[str] = Field(..., max_length=2048, pattern=r"^https?://")


class UserResponse(BaseModel):
    """User response model"""
    id: int
    username: str
    profile_picture: Optional[str] = None
    created_at: str


class TokenResponse(BaseModel):
    """Token response model"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
