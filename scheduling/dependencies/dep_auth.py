from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from scheduling.models.mod_auth import CallerContext, UserRole, TokenData
from scheduling.configuration.config import Config
import httpx
from datetime import datetime, timezone

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

# Signing keys, fetched once per process
_jwks_cache = {}

def _tenant_base_url() -> str:
    return f"https://{Config.AZURE_ENTRAID_TENANT_SUBDOMAIN}.b2clogin.com/{Config.AZURE_ENTRAID_TENANT_ID}"

async def get_jwks():
    """
    Fetch and cache the JSON Web Key Set (JWKS) from Microsoft Entra External ID.
    The JWKS contains the public keys used to verify the JWT tokens.
    """
    if "keys" not in _jwks_cache:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{_tenant_base_url()}/discovery/v2.0/keys")
            response.raise_for_status()
            _jwks_cache.update(response.json())
    return _jwks_cache

async def get_key(kid: str):
    """Get the public key matching the key ID from the JWKS"""
    jwks = await get_jwks()
    for key in jwks["keys"]:
        if key["kid"] == kid:
            return key
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unable to verify credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

def _role_from_claims(payload: dict) -> UserRole:
    for role in payload.get("roles", []):
        try:
            return UserRole(role)
        except ValueError:
            continue
    return UserRole.TRAINEE

async def verify_token(token: str) -> TokenData:
    """
    Verify the JWT token and extract its claims.
    Raises HTTPException if token is invalid.
    """
    try:
        header = jwt.get_unverified_header(token)
        key = await get_key(header["kid"])
        payload = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=Config.AZURE_ENTRAID_CLIENT_ID,
            issuer=f"{_tenant_base_url()}/v2.0/"
        )
        token_data = TokenData(
            id=payload.get("oid"),
            email=payload.get("email"),
            name=payload.get("name"),
            role=_role_from_claims(payload),
            exp=payload.get("exp")
        )
        if token_data.exp and datetime.now(timezone.utc).timestamp() > token_data.exp:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return token_data
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_current_user(token: str = Depends(oauth2_scheme)) -> CallerContext:
    """
    Caller context built from the bearer token.
    Every scheduling endpoint receives it and hands it to the service layer.
    """
    token_data = await verify_token(token)
    return CallerContext(
        id=token_data.id,
        email=token_data.email,
        name=token_data.name,
        role=token_data.role
    )

def get_current_scheduler(current_user: CallerContext = Depends(get_current_user)) -> CallerContext:
    """Dependency for endpoints that change schedules: admins and coordinators only"""
    if current_user.role not in [UserRole.ADMIN, UserRole.COORDINATOR]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to perform this action"
        )
    return current_user
