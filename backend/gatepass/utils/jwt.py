"""JWT Token Validation for bearer tokens issued by the login service"""
from typing import Any, Dict, List, Optional

import jwt

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

logger = get_logger(__name__)


def _as_branch_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [b.strip() for b in value.split(",") if b.strip()]
    return [str(b) for b in value if b]


class JWTValidator:
    """Validates tokens and maps claims onto an ActorContext"""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a JWT

        Args:
            token: Bearer token (with or without 'Bearer ' prefix)

        Returns:
            Decoded token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        options = {"verify_exp": True, "verify_aud": bool(settings.jwt_audience)}

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=settings.jwt_audience or None,
                options=options
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidAudienceError:
            logger.warning("Invalid token audience")
            raise AuthenticationError("Invalid token audience")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError("Invalid token")

    def get_actor_context(self, token: str) -> ActorContext:
        """
        Extract actor context from a validated token

        The login service has used both camelCase and snake_case claim
        names over time; both are accepted.
        """
        claims = self.validate_token(token)

        service_no = claims.get("service_no") or claims.get("serviceNo") or claims.get("sub")
        role = claims.get("role") or "User"
        branches = _as_branch_list(claims.get("branches"))

        try:
            return ActorContext(
                service_no=str(service_no) if service_no else None,
                role=role,
                branches=branches,
                name=claims.get("name"),
                email=claims.get("email") or None
            )
        except ValueError as e:
            logger.warning(f"Token claims rejected: {e}")
            raise AuthenticationError("Token claims are invalid")

    def issue_token(self, claims: Dict[str, Any]) -> str:
        """Sign claims with the shared secret (used by tooling and tests)"""
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)


# Global validator instance
_jwt_validator: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """Get global JWT validator instance"""
    global _jwt_validator
    if _jwt_validator is None:
        _jwt_validator = JWTValidator()
    return _jwt_validator


def get_current_user(authorization: str) -> ActorContext:
    """
    Get current user from authorization header

    Args:
        authorization: Authorization header value

    Returns:
        ActorContext
    """
    return get_jwt_validator().get_actor_context(authorization)
