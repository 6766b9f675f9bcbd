import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
import store
from config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    CORS_ORIGINS,
    DEBUG,
    LOG_LEVEL,
    SECRET_KEY,
)
from database import engine, get_db
from errors import (
    AuthError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    register_error_handlers,
)
from grouping import group_by_month
from models import PersonalAccessToken, User
from oauth import get_identity_verifier
from schemas import (
    AuthResponse,
    GoogleExchange,
    MonthGroupList,
    SummaryResponse,
    TransactionCreate,
    TransactionCreated,
    TransactionList,
    TransactionResponse,
    UserCreate,
    UserLogin,
    UserResponse,
    UserUpdate,
)
from summary import summarize_for_user

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("ledger-api")


def resolve_secret_key(secret: str, debug: bool) -> str:
    """Signing key for bearer tokens; only debug runs may start without one."""
    if secret:
        return secret
    if not debug:
        raise RuntimeError("SECRET_KEY must be set (or run with DEBUG=true for a throwaway key)")
    logger.warning("SECRET_KEY is not set, using a random key for this debug run")
    return secrets.token_urlsafe(32)


SECRET_KEY = resolve_secret_key(SECRET_KEY, DEBUG)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Ledger API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

register_error_handlers(app)


# ----------------------------
# AUTH
# ----------------------------

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str):
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str):
    return pwd_context.verify(password, hashed)


def create_access_token(db: Session, user: User, name: str = "authToken") -> str:
    """Sign a bearer token for ``user`` and record it so it can be revoked on its own."""
    jti = uuid4().hex
    claims = {"sub": str(user.id), "jti": jti}
    if ACCESS_TOKEN_EXPIRE_MINUTES > 0:
        claims["exp"] = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    db.add(PersonalAccessToken(user_id=user.id, name=name, jti=jti))
    db.commit()
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


@dataclass
class AuthContext:
    """The authenticated caller of one request and the token they presented."""

    user: User
    token: PersonalAccessToken


def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> AuthContext:
    if credentials is None:
        raise AuthError("Unauthenticated")

    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise AuthError("Invalid or expired token")

    jti = payload.get("jti")
    subject = payload.get("sub")
    if not jti or not subject:
        raise AuthError("Invalid or expired token")

    token = db.query(PersonalAccessToken).filter(PersonalAccessToken.jti == jti).first()
    if not token or str(token.user_id) != subject:
        raise AuthError("Invalid or expired token")

    token.last_used_at = datetime.utcnow()
    db.commit()
    return AuthContext(user=token.user, token=token)


def get_current_user(ctx: AuthContext = Depends(get_auth_context)) -> User:
    return ctx.user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(
        func.lower(User.email) == email.strip().lower()
    ).first()
    if not user or not verify_password(password, user.hashed_password):
        raise AuthError("Invalid login details")
    return user


def _email_taken(db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    q = db.query(User).filter(func.lower(User.email) == email)
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return q.first() is not None


def _user_payload(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


@app.post("/register", response_model=AuthResponse)
def register(user: UserCreate, db: Session = Depends(get_db)):
    normalized_email = user.email.strip().lower()

    if _email_taken(db, normalized_email):
        raise ValidationError("The email has already been taken")

    new_user = User(
        name=user.name,
        email=normalized_email,
        hashed_password=hash_password(user.password)
    )
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent registration claimed the email between the check and the insert
        db.rollback()
        raise ValidationError("The email has already been taken")
    db.refresh(new_user)
    logger.info("Registered user %s", new_user.id)

    token = create_access_token(db, new_user)
    return {
        "status": "success",
        "message": "Registered successfully",
        "user": _user_payload(new_user),
        "token": token,
        "type": "bearer"
    }


@app.post("/login", response_model=AuthResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    try:
        user = authenticate(db, credentials.email, credentials.password)
    except AuthError:
        logger.info("Failed login attempt")
        raise

    token = create_access_token(db, user)
    logger.info("User %s logged in", user.id)
    return {
        "status": "success",
        "message": "Logged in successfully",
        "user": _user_payload(user),
        "token": token,
        "type": "bearer"
    }


@app.post("/logout")
def logout(
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    # only the presented token is revoked, other sessions stay signed in
    db.delete(ctx.token)
    db.commit()
    logger.info("User %s logged out", ctx.user.id)
    return {"status": "success", "message": "Logged out successfully"}


@app.get("/user", response_model=UserResponse)
def current_user_profile(current_user: User = Depends(get_current_user)):
    return current_user


@app.post("/auth/google-exchange")
def google_exchange(
    body: GoogleExchange,
    db: Session = Depends(get_db),
    verify=Depends(get_identity_verifier)
):
    if not body.token:
        raise ValidationError("No token provided")

    claims = verify(body.token)
    if not claims:
        raise AuthError("Invalid ID token")

    email = claims["email"].strip().lower()
    user = db.query(User).filter(func.lower(User.email) == email).first()

    if user is None:
        user = User(
            name=claims.get("name") or email.split("@")[0],
            email=email,
            # placeholder password, the account signs in through Google
            hashed_password=hash_password(secrets.token_urlsafe(16)),
            google_id=claims.get("sub"),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created user %s from Google sign-in", user.id)
    elif not user.google_id and claims.get("sub"):
        user.google_id = claims["sub"]
        db.commit()

    token = create_access_token(db, user, name="google")
    return {
        "status": "success",
        "token": token,
        "type": "bearer",
        "user": _user_payload(user)
    }


# ----------------------------
# USERS
# ----------------------------

def _get_user_for(ctx: AuthContext, user_id: int, db: Session) -> User:
    if ctx.user.id != user_id and ctx.user.role != "admin":
        raise ForbiddenError()

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


@app.get("/users/show/{user_id}")
def show_user(
    user_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    return {"data": _user_payload(_get_user_for(ctx, user_id, db))}


@app.put("/users/update/{user_id}")
def update_user(
    user_id: int,
    data: UserUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    user = _get_user_for(ctx, user_id, db)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes:
        email = changes["email"].strip().lower()
        if _email_taken(db, email, exclude_id=user.id):
            raise ValidationError("The email has already been taken")
        user.email = email
    if "name" in changes:
        user.name = changes["name"]
    if "password" in changes:
        user.hashed_password = hash_password(changes["password"])

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("The email has already been taken")
    db.refresh(user)
    logger.info("User %s updated by %s", user.id, ctx.user.id)
    return {"data": _user_payload(user)}


@app.delete("/users/delete/{user_id}")
def delete_user(
    user_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    user = _get_user_for(ctx, user_id, db)
    payload = _user_payload(user)

    db.delete(user)
    db.commit()
    logger.info("User %s deleted by %s", user_id, ctx.user.id)
    return {"message": "User deleted successfully", "user": {"data": payload}}


# ----------------------------
# TRANSACTIONS
# ----------------------------

@app.get("/transactions/summary", response_model=SummaryResponse)
def transactions_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return summarize_for_user(db, current_user.id).as_dict()


@app.get("/transactions", response_model=TransactionList)
def get_transactions(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    transactions = store.list_by_user(
        db, current_user.id, search=search, category=category, month=month
    )
    return {"status": "success", "transactions": transactions}


@app.get("/transactions/categories")
def get_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"status": "success", "categories": store.list_categories(db, current_user.id)}


@app.get("/transactions/months", response_model=MonthGroupList)
def get_transactions_by_month(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    groups = group_by_month(store.list_by_user(db, current_user.id))
    return {
        "status": "success",
        "groups": [
            {
                "key": group.key,
                "year": group.year,
                "month": group.month,
                "expanded": group.expanded,
                "summary": group.summary().as_dict(),
                "transactions": list(group.transactions),
            }
            for group in groups
        ],
    }


@app.post("/transactions", response_model=TransactionCreated, status_code=201)
def add_transaction(
    txn: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    transaction = store.create_transaction(db, current_user.id, txn.model_dump())
    logger.info("User %s added %s transaction %s", current_user.id, transaction.type, transaction.id)
    return {
        "status": "success",
        "message": "Transaction created successfully",
        "transaction": TransactionResponse.model_validate(transaction),
    }


@app.get("/health")
def health():
    return {"status": "ok"}
