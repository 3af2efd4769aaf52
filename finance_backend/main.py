import logging
import smtplib
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Header, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from finance_backend.ai_client import AiClient, AiRequestFailed, AiUnavailable
from finance_backend.ai_service import FinanceAssistant
from finance_backend.notifications import SmtpNotifier
from finance_backend.recap_engine import build_monthly_recap, current_month_range
from finance_backend.records import TransactionRecord, ensure_utc
from finance_backend.security import (
    RESET_TOKEN_TTL,
    decode_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    issue_access_token,
    verify_password,
)
from finance_backend.settings import (
    AiSettings,
    JwtSettings,
    SmtpSettings,
    configure_logging,
    env_str,
)

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Catatan Keuangan API")

frontend_origin = env_str("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

database_url = env_str("DATABASE_URL", "sqlite:///./finance.db")
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(database_url, connect_args=connect_args)
metadata = MetaData()

JWT_SETTINGS = JwtSettings.from_env()
AI_CLIENT = AiClient(AiSettings.from_env())
NOTIFIER = SmtpNotifier(SmtpSettings.from_env())

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("full_name", String(150), nullable=False),
    Column("email", String(255), unique=True, nullable=False),
    Column("hashed_password", String(255), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("name", String(100), nullable=False),
    Column("description", String(250)),
    Column("is_income", Boolean, nullable=False, default=False),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("category_id", Integer, ForeignKey("categories.id"), nullable=False),
    Column("description", String(250)),
    Column("amount", Numeric(18, 2), nullable=False),
    Column("date", DateTime, nullable=False),
    Column("is_income", Boolean, nullable=False, default=False),
)

password_reset_tokens = Table(
    "password_reset_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("token_hash", String(64), nullable=False, index=True),
    Column("expires_at", DateTime, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("used_at", DateTime),
)


@app.on_event("startup")
def init_db() -> None:
    metadata.create_all(engine)
    logger.info("Database schema ready at %s", engine.url.render_as_string(hide_password=True))


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterPayload(CamelModel):
    full_name: str = Field(min_length=1, max_length=150)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6)


class LoginPayload(CamelModel):
    email: str
    password: str


class ForgotPasswordPayload(CamelModel):
    email: str = Field(min_length=3, max_length=255)


class ResetPasswordPayload(CamelModel):
    new_password: str = Field(min_length=6)
    confirm_password: str
    token: str = Field(min_length=1)


class UserResponse(CamelModel):
    id: int
    full_name: str
    email: str
    created_at: datetime | None = None


class AuthResponse(CamelModel):
    token: str
    user: UserResponse


class CategoryPayload(CamelModel):
    name: str = Field(max_length=100)
    description: str | None = Field(None, max_length=250)
    is_income: bool = False
    user_id: int

    @classmethod
    def validate_payload(cls, payload: "CategoryPayload") -> "CategoryPayload":
        payload.name = payload.name.strip()
        payload.description = payload.description.strip() if payload.description else None
        if not payload.name:
            raise ValueError("Category name required.")
        return payload


class CategoryResponse(CamelModel):
    id: int
    name: str
    description: str | None = None
    is_income: bool
    user_id: int


class TransactionPayload(CamelModel):
    description: str | None = Field(None, max_length=250)
    amount: Decimal
    date: datetime
    is_income: bool = False
    user_id: int
    category_id: int

    @classmethod
    def validate_payload(cls, payload: "TransactionPayload") -> "TransactionPayload":
        payload.description = payload.description.strip() if payload.description else None
        if payload.amount < 0:
            raise ValueError("Amount must not be negative.")
        return payload


class TransactionResponse(CamelModel):
    id: int
    description: str | None = None
    amount: Decimal
    date: datetime
    is_income: bool
    user_id: int
    category_id: int


class AiInsightPayload(CamelModel):
    user_id: int = Field(gt=0)
    start: datetime | None = Field(None, alias="from")
    end: datetime | None = Field(None, alias="to")


class AiChatPayload(CamelModel):
    user_id: int = Field(gt=0)
    question: str = Field(min_length=3)


class AiRecommendationPayload(CamelModel):
    user_id: int = Field(gt=0)
    focus: str | None = Field(None, max_length=120)


class AiDigestPayload(CamelModel):
    user_id: int = Field(gt=0)
    period: str = Field("daily", pattern="^(daily|weekly)$")
    reference_date: datetime | None = None


class AiMessageResponse(CamelModel):
    content: str


ASSISTANT_NOT_CONFIGURED = "AI service is not configured. Set the API key, base URL, and model first."


def api_response(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    elif isinstance(data, list):
        data = [
            item.model_dump(by_alias=True) if isinstance(item, BaseModel) else item
            for item in data
        ]
    content = {
        "success": status_code < 400,
        "statusCode": status_code,
        "message": message,
        "data": data,
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return api_response(str(exc.detail), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return api_response("Invalid request.", data=exc.errors(), status_code=400)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_storage(value: datetime) -> datetime:
    return ensure_utc(value).replace(tzinfo=None)


def normalize_email(value: str) -> str:
    return value.strip().lower()


def get_current_user_id(authorization: str | None) -> int:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing bearer token.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Missing bearer token.")
    try:
        claims = decode_access_token(token.strip(), JWT_SETTINGS)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    try:
        user_id = int(claims["sub"])
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Invalid or expired token.") from exc
    with engine.begin() as conn:
        result = conn.execute(
            select(users.c.id).where(users.c.id == user_id, users.c.is_active.is_(True))
        )
        if not result.first():
            raise HTTPException(status_code=401, detail="Invalid or expired token.")
    return user_id


def ensure_owner(current_user_id: int, requested_user_id: int | None) -> int:
    if requested_user_id is None:
        raise HTTPException(status_code=400, detail="Parameter userId is required.")
    if requested_user_id <= 0:
        raise HTTPException(status_code=400, detail="Parameter userId is required.")
    if requested_user_id != current_user_id:
        raise HTTPException(status_code=403, detail="You can only access your own records.")
    return requested_user_id


def map_user(row) -> UserResponse:
    return UserResponse(
        id=row["id"],
        full_name=row["full_name"],
        email=row["email"],
        created_at=row["created_at"],
    )


def map_category(row) -> CategoryResponse:
    return CategoryResponse(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        is_income=row["is_income"],
        user_id=row["user_id"],
    )


def map_transaction(row) -> TransactionResponse:
    return TransactionResponse(
        id=row["id"],
        description=row["description"],
        amount=row["amount"],
        date=ensure_utc(row["date"]),
        is_income=row["is_income"],
        user_id=row["user_id"],
        category_id=row["category_id"],
    )


def category_belongs_to_user(conn, category_id: int, user_id: int) -> bool:
    result = conn.execute(
        select(categories.c.id).where(
            categories.c.id == category_id, categories.c.user_id == user_id
        )
    )
    return result.first() is not None


def category_in_use(conn, category_id: int) -> bool:
    result = conn.execute(
        select(transactions.c.id).where(transactions.c.category_id == category_id).limit(1)
    )
    return result.first() is not None


def fetch_transaction_records(
    user_id: int, start: datetime, end: datetime, limit: int | None = None
) -> list[TransactionRecord]:
    join_stmt = transactions.outerjoin(
        categories, transactions.c.category_id == categories.c.id
    )
    stmt = (
        select(transactions, categories.c.name.label("category_name"))
        .select_from(join_stmt)
        .where(
            transactions.c.user_id == user_id,
            transactions.c.date >= to_storage(start),
            transactions.c.date <= to_storage(end),
        )
        .order_by(transactions.c.date.desc(), transactions.c.id.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    with engine.begin() as conn:
        rows = conn.execute(stmt).mappings().all()
    return [
        TransactionRecord(
            date=ensure_utc(row["date"]),
            amount=row["amount"],
            is_income=row["is_income"],
            category_name=row["category_name"],
            description=row["description"],
            id=row["id"],
            user_id=row["user_id"],
            category_id=row["category_id"],
        )
        for row in rows
    ]


ASSISTANT = FinanceAssistant(client=AI_CLIENT, transaction_source=fetch_transaction_records)


def run_assistant(action: Callable[[], str], message: str) -> JSONResponse:
    if not AI_CLIENT.is_configured:
        raise HTTPException(status_code=503, detail=ASSISTANT_NOT_CONFIGURED)
    try:
        content = action()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except AiRequestFailed as exc:
        raise HTTPException(status_code=502, detail=f"Failed to contact AI provider: {exc}") from exc
    except AiUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return api_response(message, AiMessageResponse(content=content))


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/api/auth/register")
def register(payload: RegisterPayload) -> JSONResponse:
    email = normalize_email(payload.email)
    full_name = payload.full_name.strip()
    if not email or not full_name:
        raise HTTPException(status_code=400, detail="Full name and email required.")

    stmt = (
        insert(users)
        .values(
            full_name=full_name,
            email=email,
            hashed_password=hash_password(payload.password),
            is_active=True,
        )
        .returning(users.c.id, users.c.full_name, users.c.email, users.c.created_at)
    )
    try:
        with engine.begin() as conn:
            existing = conn.execute(select(users.c.id).where(users.c.email == email)).first()
            if existing:
                raise HTTPException(status_code=409, detail="Email is already registered.")
            row = conn.execute(stmt).mappings().first()
    except IntegrityError as exc:
        logger.warning("Registration failed for email %s", email)
        raise HTTPException(status_code=409, detail="Email is already registered.") from exc
    except HTTPException:
        logger.warning("Registration failed for email %s", email)
        raise

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create user.")
    return api_response("Registration successful.", map_user(row), status_code=201)


@app.post("/api/auth/login")
def login(payload: LoginPayload) -> JSONResponse:
    email = normalize_email(payload.email)
    with engine.begin() as conn:
        row = conn.execute(
            select(users).where(users.c.email == email, users.c.is_active.is_(True))
        ).mappings().first()

    if not row or not verify_password(payload.password, row["hashed_password"]):
        raise HTTPException(status_code=401, detail="Incorrect email or password.")

    try:
        token = issue_access_token(row, JWT_SETTINGS)
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return api_response("Login successful.", AuthResponse(token=token, user=map_user(row)))


@app.post("/api/auth/forgot-password")
def forgot_password(payload: ForgotPasswordPayload) -> JSONResponse:
    email = normalize_email(payload.email)
    accepted_message = "If the email is registered, a reset token has been sent."
    now = to_storage(utc_now())
    with engine.begin() as conn:
        user = conn.execute(
            select(users.c.id, users.c.email).where(
                users.c.email == email, users.c.is_active.is_(True)
            )
        ).mappings().first()
        if not user:
            logger.info("Password reset requested for non-registered email %s", email)
            return api_response(accepted_message)

        conn.execute(
            update(password_reset_tokens)
            .where(
                password_reset_tokens.c.user_id == user["id"],
                password_reset_tokens.c.used_at.is_(None),
                password_reset_tokens.c.expires_at >= now,
            )
            .values(used_at=now)
        )
        raw_token = generate_reset_token()
        expires_at = now + RESET_TOKEN_TTL
        token_id = conn.execute(
            insert(password_reset_tokens)
            .values(
                user_id=user["id"],
                token_hash=hash_reset_token(raw_token),
                expires_at=expires_at,
            )
            .returning(password_reset_tokens.c.id)
        ).scalar_one()

    try:
        NOTIFIER.send_password_reset_token(user["email"], raw_token, expires_at)
    except (smtplib.SMTPException, OSError) as exc:
        with engine.begin() as conn:
            conn.execute(
                update(password_reset_tokens)
                .where(password_reset_tokens.c.id == token_id)
                .values(used_at=to_storage(utc_now()))
            )
        raise HTTPException(status_code=500, detail="Failed to send password reset email.") from exc

    return api_response(accepted_message)


@app.post("/api/auth/reset-password")
def reset_password(payload: ResetPasswordPayload) -> JSONResponse:
    if payload.new_password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Password confirmation does not match.")

    token_hash = hash_reset_token(payload.token.strip().upper())
    now = to_storage(utc_now())
    invalid_message = "Password reset token is invalid or has expired."
    join_stmt = password_reset_tokens.join(users, password_reset_tokens.c.user_id == users.c.id)
    with engine.begin() as conn:
        row = conn.execute(
            select(
                password_reset_tokens.c.id,
                password_reset_tokens.c.user_id,
                password_reset_tokens.c.expires_at,
                password_reset_tokens.c.used_at,
                users.c.is_active,
            )
            .select_from(join_stmt)
            .where(password_reset_tokens.c.token_hash == token_hash)
        ).mappings().first()
        if not row or row["used_at"] is not None or not row["is_active"]:
            raise HTTPException(status_code=400, detail=invalid_message)
        if to_storage(row["expires_at"]) < now:
            raise HTTPException(status_code=400, detail=invalid_message)

        conn.execute(
            update(users)
            .where(users.c.id == row["user_id"])
            .values(hashed_password=hash_password(payload.new_password))
        )
        conn.execute(
            update(password_reset_tokens)
            .where(password_reset_tokens.c.id == row["id"])
            .values(used_at=now)
        )
    return api_response("Password updated successfully.")


@app.get("/api/users")
def list_users(authorization: str | None = Header(None)) -> JSONResponse:
    get_current_user_id(authorization)
    with engine.begin() as conn:
        rows = conn.execute(
            select(users).order_by(users.c.full_name.asc(), users.c.id.asc())
        ).mappings().all()
    return api_response("Users retrieved.", [map_user(row) for row in rows])


@app.get("/api/users/{user_id}")
def get_user(user_id: int, authorization: str | None = Header(None)) -> JSONResponse:
    get_current_user_id(authorization)
    with engine.begin() as conn:
        row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="User not found.")
    return api_response("User details retrieved.", map_user(row))


@app.get("/api/categories")
def list_categories(
    user_id: int | None = Query(None, alias="userId"),
    authorization: str | None = Header(None),
) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), user_id)
    with engine.begin() as conn:
        rows = conn.execute(
            select(categories)
            .where(categories.c.user_id == owner_id)
            .order_by(categories.c.name.asc(), categories.c.id.asc())
        ).mappings().all()
    return api_response("Categories retrieved.", [map_category(row) for row in rows])


@app.get("/api/categories/{category_id}")
def get_category(category_id: int, authorization: str | None = Header(None)) -> JSONResponse:
    current_user_id = get_current_user_id(authorization)
    with engine.begin() as conn:
        row = conn.execute(
            select(categories).where(
                categories.c.id == category_id, categories.c.user_id == current_user_id
            )
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Category not found.")
    return api_response("Category details retrieved.", map_category(row))


@app.post("/api/categories")
def create_category(
    payload: CategoryPayload, authorization: str | None = Header(None)
) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), payload.user_id)
    try:
        payload = CategoryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    stmt = (
        insert(categories)
        .values(
            user_id=owner_id,
            name=payload.name,
            description=payload.description,
            is_income=payload.is_income,
        )
        .returning(
            categories.c.id,
            categories.c.user_id,
            categories.c.name,
            categories.c.description,
            categories.c.is_income,
        )
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create category.")
    return api_response("Category created.", map_category(row), status_code=201)


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryPayload,
    authorization: str | None = Header(None),
) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), payload.user_id)
    try:
        payload = CategoryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    stmt = (
        update(categories)
        .where(categories.c.id == category_id, categories.c.user_id == owner_id)
        .values(
            name=payload.name,
            description=payload.description,
            is_income=payload.is_income,
        )
    )
    with engine.begin() as conn:
        result = conn.execute(stmt)
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Category not found.")
    return api_response("Category updated.")


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: int, authorization: str | None = Header(None)) -> JSONResponse:
    current_user_id = get_current_user_id(authorization)
    with engine.begin() as conn:
        if not category_belongs_to_user(conn, category_id, current_user_id):
            raise HTTPException(status_code=404, detail="Category not found.")
        if category_in_use(conn, category_id):
            raise HTTPException(status_code=409, detail="Category is in use.")
        conn.execute(
            categories.delete().where(
                categories.c.id == category_id, categories.c.user_id == current_user_id
            )
        )
    return api_response("Category deleted.")


@app.get("/api/transactions")
def list_transactions(
    user_id: int | None = Query(None, alias="userId"),
    authorization: str | None = Header(None),
) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), user_id)
    with engine.begin() as conn:
        rows = conn.execute(
            select(transactions)
            .where(transactions.c.user_id == owner_id)
            .order_by(transactions.c.date.desc(), transactions.c.id.desc())
        ).mappings().all()
    return api_response("Transactions retrieved.", [map_transaction(row) for row in rows])


@app.get("/api/transactions/recap")
def transaction_recap(
    user_id: str | None = Query(None, alias="userId"),
    group_by: str | None = Query("day", alias="groupBy"),
    authorization: str | None = Header(None),
) -> JSONResponse:
    current_user_id = get_current_user_id(authorization)
    start_date, end_date = current_month_range(utc_now())

    records: list[TransactionRecord] = []
    if user_id and user_id.strip().isdigit():
        owner_id = ensure_owner(current_user_id, int(user_id.strip()))
        records = fetch_transaction_records(owner_id, start_date, end_date)
    try:
        recap = build_monthly_recap(user_id, records, group_by, start_date, end_date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse(content=jsonable_encoder(recap.to_dict()))


@app.get("/api/transactions/{transaction_id}")
def get_transaction(transaction_id: int, authorization: str | None = Header(None)) -> JSONResponse:
    current_user_id = get_current_user_id(authorization)
    with engine.begin() as conn:
        row = conn.execute(
            select(transactions).where(
                transactions.c.id == transaction_id,
                transactions.c.user_id == current_user_id,
            )
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return api_response("Transaction details retrieved.", map_transaction(row))


@app.post("/api/transactions")
def create_transaction(
    payload: TransactionPayload, authorization: str | None = Header(None)
) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), payload.user_id)
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    stmt = (
        insert(transactions)
        .values(
            user_id=owner_id,
            category_id=payload.category_id,
            description=payload.description,
            amount=payload.amount,
            date=to_storage(payload.date),
            is_income=payload.is_income,
        )
        .returning(
            transactions.c.id,
            transactions.c.user_id,
            transactions.c.category_id,
            transactions.c.description,
            transactions.c.amount,
            transactions.c.date,
            transactions.c.is_income,
        )
    )
    with engine.begin() as conn:
        if not category_belongs_to_user(conn, payload.category_id, owner_id):
            raise HTTPException(status_code=404, detail="Category not found.")
        row = conn.execute(stmt).mappings().first()

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create transaction.")
    return api_response("Transaction created.", map_transaction(row), status_code=201)


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: TransactionPayload,
    authorization: str | None = Header(None),
) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), payload.user_id)
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    stmt = (
        update(transactions)
        .where(transactions.c.id == transaction_id, transactions.c.user_id == owner_id)
        .values(
            category_id=payload.category_id,
            description=payload.description,
            amount=payload.amount,
            date=to_storage(payload.date),
            is_income=payload.is_income,
        )
    )
    with engine.begin() as conn:
        if not category_belongs_to_user(conn, payload.category_id, owner_id):
            raise HTTPException(status_code=404, detail="Category not found.")
        result = conn.execute(stmt)
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Transaction not found.")
    return api_response("Transaction updated.")


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(transaction_id: int, authorization: str | None = Header(None)) -> JSONResponse:
    current_user_id = get_current_user_id(authorization)
    stmt = transactions.delete().where(
        transactions.c.id == transaction_id, transactions.c.user_id == current_user_id
    )
    with engine.begin() as conn:
        result = conn.execute(stmt)
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Transaction not found.")
    return api_response("Transaction deleted.")


@app.post("/api/ai/insights")
def ai_insights(payload: AiInsightPayload, authorization: str | None = Header(None)) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), payload.user_id)
    return run_assistant(
        lambda: ASSISTANT.generate_insights(owner_id, payload.start, payload.end),
        "Insights generated.",
    )


@app.post("/api/ai/chat")
def ai_chat(payload: AiChatPayload, authorization: str | None = Header(None)) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), payload.user_id)
    return run_assistant(
        lambda: ASSISTANT.answer_question(owner_id, payload.question),
        "Answer generated.",
    )


@app.post("/api/ai/recommendations")
def ai_recommendations(
    payload: AiRecommendationPayload, authorization: str | None = Header(None)
) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), payload.user_id)
    return run_assistant(
        lambda: ASSISTANT.generate_recommendations(owner_id, payload.focus),
        "Recommendations generated.",
    )


@app.post("/api/ai/digest")
def ai_digest(payload: AiDigestPayload, authorization: str | None = Header(None)) -> JSONResponse:
    owner_id = ensure_owner(get_current_user_id(authorization), payload.user_id)
    return run_assistant(
        lambda: ASSISTANT.generate_digest(owner_id, payload.period, payload.reference_date),
        "Digest generated.",
    )
