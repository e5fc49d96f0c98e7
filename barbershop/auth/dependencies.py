import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from barbershop.auth import jwt_handler
from barbershop.models.provider import Provider
from barbershop.routes.common import get_db

security = HTTPBearer()


def get_current_provider(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Provider:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    if payload.get("role") != jwt_handler.PROVIDER_ROLE:
        raise HTTPException(status_code=401, detail="Invalid token role")

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    provider = db.query(Provider).filter(Provider.id == int(subject)).first()
    if provider is None or not provider.is_active:
        raise HTTPException(status_code=401, detail="Provider not found")
    return provider
