"""
Startup Dashboard - Pydantic Schema Models

Organized by domain for use across routers.
"""

from schemas.auth import (  # noqa: F401
    SignupRequest,
    LoginRequest,
    TokenResponse,
    ForgotPasswordRequest,
    ResetPasswordRequest,
)
from schemas.company import (  # noqa: F401
    CompanyCreate,
    CompanyInfoUpdate,
    JoinRequest,
    QuarterCreate,
    MaskUpdate,
)
from schemas.users import (  # noqa: F401
    UserResponse,
    UserUpdate,
)
