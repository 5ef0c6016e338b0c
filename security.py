from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import get_settings
from database import RecordStore, get_db
from errors import UnauthorizedError
from schemas import User, collection_name

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error off so a missing header comes back as our own 401 body
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedError("Invalid token")
    if not payload.get("sub"):
        raise UnauthorizedError("Invalid token")
    return payload


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Database = Depends(get_db)):
    if not token:
        raise UnauthorizedError()
    payload = decode_access_token(token)
    try:
        oid = ObjectId(payload["sub"])
    except (InvalidId, TypeError):
        raise UnauthorizedError("Invalid token")

    user = RecordStore(db, collection_name(User)).find_one({"_id": oid})
    if not user:
        raise UnauthorizedError("User not found")
    return user


async def require_auth_if_enabled(token: Optional[str] = Depends(oauth2_scheme), db: Database = Depends(get_db)):
    """Gate record routes when REQUIRE_AUTH is set; otherwise they stay open."""
    if get_settings().REQUIRE_AUTH:
        await get_current_user(token, db)
