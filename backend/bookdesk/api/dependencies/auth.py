# backend/bookdesk/api/dependencies/auth.py
"""
Authentication dependencies.

Builds the TenantContext for a request from the bearer token. The
organization id comes only from verified claims; nothing in the request
body or query string can change it.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
import jwt
from sqlalchemy.orm import Session

from ...auth import decode_access_token
from ...core.config import settings
from ...core.enums import RoleName
from ...core.exceptions import ForbiddenException, UnauthorizedException
from ...core.tenant import TenantContext
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


def get_tenant_context(
    token: Optional[str] = Depends(oauth2_scheme_optional),
    db: Session = Depends(get_db),
) -> TenantContext:
    """
    Resolve the acting organization, user and role.

    Raises:
        HTTPException: 401 for missing/invalid credentials or unknown
            organizations, 403 for suspended organizations
    """
    if not token:
        raise UnauthorizedException("Not authenticated").to_http_exception()

    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError as e:
        logger.info(f"Rejected bearer token: {str(e)}")
        raise UnauthorizedException("Could not validate credentials").to_http_exception()

    user_id = str(payload["sub"])
    organization_id = str(payload["org_id"])
    try:
        role = RoleName(payload["role"])
    except ValueError:
        raise UnauthorizedException(
            "Unknown role in credentials", details={"role": payload["role"]}
        ).to_http_exception()

    organization = RepositoryFactory.create_organization_repository(db).get_by_id(
        organization_id, load_relationships=False
    )
    if organization is None:
        raise UnauthorizedException("Unknown organization").to_http_exception()
    if organization.is_suspended:
        raise ForbiddenException(
            "Organization is suspended", details={"organization_id": organization_id}
        ).to_http_exception()

    return TenantContext.with_timeout(
        organization_id=organization_id,
        user_id=user_id,
        role=role,
        timeout_seconds=settings.request_timeout_seconds,
    )
