"""Backend client dependencies for FastAPI."""
from collections.abc import Iterator
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from assessment.config import API_TOKEN
from assessment.services.analytics_service import AnalyticsService
from assessment.services.backend_client import BackendClient
from assessment.services.transport import ApiTransport, StaticTokenProvider

# Bearer token forwarded to the backend
security = HTTPBearer(auto_error=False)


def get_backend(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Iterator[BackendClient]:
    """Backend client authenticated with the caller's token.

    Falls back to the configured service token.

    Raises:
        HTTPException: 401 if neither token is available.
    """
    token = credentials.credentials if credentials is not None else API_TOKEN
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    transport = ApiTransport(token_provider=StaticTokenProvider(token))
    try:
        yield BackendClient(transport)
    finally:
        transport.close()


def get_analytics_service(
    backend: Annotated[BackendClient, Depends(get_backend)],
) -> AnalyticsService:
    return AnalyticsService(backend)
