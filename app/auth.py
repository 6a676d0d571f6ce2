import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import FIREBASE_PROJECT_ID
from .database import get_db
from .models import User
from .permissions import Actor, Decision, UserRole, can_manage_webhooks

logger = logging.getLogger(__name__)

security = HTTPBearer()

GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)
TENANT_HEADER = "x-tenant-id"

# Cache for Google's public keys
_cached_keys: Optional[dict] = None


@dataclass
class AuthContext:
    """Authenticated caller, their data session and the tenant the request is scoped to"""

    user: User
    db: Session
    tenant_id: str

    @property
    def actor(self) -> Actor:
        profile = self.user.provider_profile
        return Actor(
            user_id=self.user.id,
            role=self.user.role,
            provider_id=profile.id if profile else None,
        )


def _b64url_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


async def get_google_public_keys(force_refresh: bool = False) -> Optional[dict]:
    """Fetch Google's public keys for Firebase token verification"""
    global _cached_keys
    if _cached_keys and not force_refresh:
        return _cached_keys

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(GOOGLE_CERTS_URL)
        if response.status_code == 200:
            _cached_keys = response.json()
            logger.info(f"✅ Fetched {len(_cached_keys)} Google public keys")
            return _cached_keys
        logger.error(f"❌ Failed to fetch Google public keys: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Google public keys: {e}")
    return None


async def verify_firebase_token(token: str) -> dict:
    """Verify a Firebase ID token's RS256 signature and standard claims"""
    if not FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    parts = token.split(".")
    if len(parts) != 3:
        raise HTTPException(status_code=401, detail="Invalid token format")
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = json.loads(_b64url_decode(header_b64))
        payload = json.loads(_b64url_decode(payload_b64))
        signature = _b64url_decode(signature_b64)
    except (ValueError, json.JSONDecodeError) as e:
        raise HTTPException(status_code=401, detail="Invalid token encoding") from e

    kid = header.get("kid")
    if header.get("alg") != "RS256" or not kid:
        raise HTTPException(status_code=401, detail="Invalid token header")

    public_keys = await get_google_public_keys()
    if not public_keys or kid not in public_keys:
        logger.warning(f"⚠️ Key ID {kid} not cached, refreshing Google public keys")
        public_keys = await get_google_public_keys(force_refresh=True)
        if not public_keys or kid not in public_keys:
            raise HTTPException(status_code=401, detail="Unable to verify token signature")

    cert = load_pem_x509_certificate(public_keys[kid].encode())
    try:
        cert.public_key().verify(
            signature,
            f"{header_b64}.{payload_b64}".encode(),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except InvalidSignature as e:
        logger.warning("🚫 Firebase token signature mismatch")
        raise HTTPException(status_code=401, detail="Invalid token signature") from e

    now = int(time.time())
    if payload.get("exp", 0) < now:
        raise HTTPException(status_code=401, detail="Token expired")
    if payload.get("aud") != FIREBASE_PROJECT_ID:
        raise HTTPException(status_code=401, detail="Invalid token audience")
    if payload.get("iss") != f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}":
        raise HTTPException(status_code=401, detail="Invalid token issuer")

    return payload


def resolve_tenant(request: Request, user: User) -> str:
    """
    Tenant the request operates on.

    The x-tenant-id header may only differ from the user's own tenant for root admins.
    """
    requested = (request.headers.get(TENANT_HEADER) or "").strip()
    if not requested or requested == user.tenant_id:
        return user.tenant_id
    if user.role == UserRole.ROOT_ADMIN.value:
        return requested
    logger.warning(f"🚫 User {user.id} attempted cross-tenant access to {requested}")
    raise HTTPException(status_code=403, detail="Tenant access denied")


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Authenticate the caller from a Firebase bearer token"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    claims = await verify_firebase_token(credentials.credentials)
    firebase_uid = claims.get("sub") or claims.get("user_id")
    if not firebase_uid:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims)}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()
    if not user:
        logger.warning(f"⚠️ No account for Firebase UID {firebase_uid}")
        raise HTTPException(status_code=403, detail="Account not provisioned")

    tenant_id = resolve_tenant(request, user)
    logger.debug(f"✅ User authenticated: {user.email} (tenant={tenant_id}, role={user.role})")
    return AuthContext(user=user, db=db, tenant_id=tenant_id)


async def require_admin(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if can_manage_webhooks(ctx.actor) is Decision.DENY:
        raise HTTPException(status_code=403, detail="Admin access required")
    return ctx
