from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from jobdesk.config import SECRET_KEY, ALGO
from jobdesk.db import database
from jobdesk.errors import (
    AlreadyApprovedError,
    DuplicateClientError,
    InvalidTenantError,
    JobDeskError,
    NotFoundError,
    TransactionFailedError,
)
from jobdesk.store import DocumentStore, validate_tenant_id

_bearer = HTTPBearer()
_store = DocumentStore(database)


async def get_current_user(creds: HTTPAuthorizationCredentials = Depends(_bearer)):
    token = creds.credentials
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGO])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    sub = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    if not sub or not tenant_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    try:
        tenant_id = validate_tenant_id(str(tenant_id))
    except InvalidTenantError:
        raise HTTPException(status_code=401, detail="Invalid tenant in token")
    return {"sub": sub, "tenant_id": tenant_id}


def get_store() -> DocumentStore:
    return _store


def to_http(exc: JobDeskError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (AlreadyApprovedError, DuplicateClientError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, InvalidTenantError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, TransactionFailedError):
        return HTTPException(status_code=503, detail="Concurrent update, try again")
    return HTTPException(status_code=500, detail="Internal error")
