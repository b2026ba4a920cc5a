"""
Script: endpoints.py
Created: 2026-10-18
Purpose: HTTP route handlers for health, users and receipts
Keywords: endpoints, routes, api, fastapi, users, receipts, beaconhub
Status: active
Prerequisites:
  - fastapi, aiosqlite
Changelog:
  - 2026-10-18: Users and receipts CRUD on the document store
"""

import re
import time
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Security
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from loguru import logger

from . import __version__
from .db import RECEIPTS, USERS, DocumentStore, StorageError
from .gate import API_KEY_HEADER
from .models import (
    ErrorResponse,
    HealthResponse,
    InitializeUsersRequest,
    InitializeUsersResponse,
    Receipt,
    ReceiptCreate,
    SuccessResponse,
    User,
    UserCreate,
    UserUpdate,
)


# Enforcement happens in AccessGate; this only documents the scheme in OpenAPI.
api_key_scheme = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)

_USER_ID_RE = re.compile(r"-?[0-9]+")

NOT_FOUND = {404: {"model": ErrorResponse}}


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def parse_user_id(raw: str) -> Optional[int]:
    """Integer user ID from a path segment, or None if it is not numeric."""
    if not _USER_ID_RE.fullmatch(raw):
        return None
    return int(raw)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# Health
# =============================================================================

health_router = APIRouter(prefix="/api", tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health(store: DocumentStore = Depends(get_store)):
    """Liveness plus storage connectivity. No API key required."""
    return {
        "status": "ok",
        "timestamp": now_iso(),
        "database": "connected" if await store.ping() else "disconnected",
        "version": __version__,
    }


# =============================================================================
# Users
# =============================================================================

users_router = APIRouter(prefix="/api", tags=["Users"], dependencies=[Security(api_key_scheme)])


@users_router.get("/users", response_model=List[User])
async def list_users(store: DocumentStore = Depends(get_store)):
    """Get all users."""
    try:
        users = await store.find_all(USERS)
    except StorageError as e:
        logger.error(f"Error fetching users: {e}")
        return failure(500, "Failed to fetch users")
    logger.debug(f"Fetched {len(users)} users")
    return users


@users_router.post("/users/initialize", response_model=InitializeUsersResponse)
async def initialize_users(body: InitializeUsersRequest, store: DocumentStore = Depends(get_store)):
    """Seed the users collection. Does nothing if it already has documents."""
    try:
        existing = await store.count(USERS)
        if existing == 0:
            await store.insert_many(USERS, [u.model_dump(exclude_unset=True) for u in body.users])
            logger.info(f"Initialized {len(body.users)} users")
            return {"success": True, "message": f"Initialized {len(body.users)} users"}
    except StorageError as e:
        logger.error(f"Error initializing users: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Failed to initialize users",
                "error": "Failed to initialize users",
            },
        )
    logger.info(f"Users collection already has {existing} documents")
    return {"success": True, "message": f"Collection already has {existing} users"}


@users_router.get("/users/{id}", response_model=User, responses=NOT_FOUND)
async def get_user(id: str, store: DocumentStore = Depends(get_store)):
    """Get user by ID."""
    user_id = parse_user_id(id)
    if user_id is None:
        return failure(400, "Invalid user ID")
    try:
        user = await store.find_one(USERS, {"id": user_id})
    except StorageError as e:
        logger.error(f"Error fetching user {user_id}: {e}")
        return failure(500, "Failed to fetch user")
    if user is None:
        return failure(404, "User not found")
    return user


@users_router.post("/users", response_model=User, status_code=201)
async def create_user(body: UserCreate, store: DocumentStore = Depends(get_store)):
    """Create a user; the ID is one above the current highest."""
    try:
        newest = await store.find_max(USERS, "id")
        user = {**body.model_dump(), "id": (newest or {}).get("id", 0) + 1}
        await store.insert_one(USERS, user)
    except StorageError as e:
        logger.error(f"Error creating user: {e}")
        return failure(500, "Failed to create user")
    logger.info(f"Created user {user['id']}: {user['full_name']}")
    return user


@users_router.put("/users/{id}", response_model=User, responses=NOT_FOUND)
async def update_user(id: str, body: UserUpdate, store: DocumentStore = Depends(get_store)):
    """Update the fields present in the body."""
    user_id = parse_user_id(id)
    if user_id is None:
        return failure(400, "Invalid user ID")
    patch = body.model_dump(exclude_unset=True)
    try:
        if patch:
            matched = await store.update_one(USERS, {"id": user_id}, patch)
            if not matched:
                return failure(404, "User not found")
        user = await store.find_one(USERS, {"id": user_id})
    except StorageError as e:
        logger.error(f"Error updating user {user_id}: {e}")
        return failure(500, "Failed to update user")
    if user is None:
        return failure(404, "User not found")
    logger.info(f"Updated user {user_id}")
    return user


@users_router.delete("/users/{id}", response_model=SuccessResponse, responses=NOT_FOUND)
async def delete_user(id: str, store: DocumentStore = Depends(get_store)):
    user_id = parse_user_id(id)
    if user_id is None:
        return failure(400, "Invalid user ID")
    try:
        deleted = await store.delete_one(USERS, {"id": user_id})
    except StorageError as e:
        logger.error(f"Error deleting user {user_id}: {e}")
        return failure(500, "Failed to delete user")
    if not deleted:
        return failure(404, "User not found")
    logger.info(f"Deleted user {user_id}")
    return {"success": True}


# =============================================================================
# Receipts
# =============================================================================

receipts_router = APIRouter(prefix="/api", tags=["Receipts"], dependencies=[Security(api_key_scheme)])


@receipts_router.get("/receipts", response_model=List[Receipt])
async def list_receipts(store: DocumentStore = Depends(get_store)):
    """Get all receipts, newest first."""
    try:
        receipts = await store.find_all(RECEIPTS, sort_by="timestamp", descending=True)
    except StorageError as e:
        logger.error(f"Error fetching receipts: {e}")
        return failure(500, "Failed to fetch receipts")
    logger.debug(f"Fetched {len(receipts)} receipts")
    return receipts


@receipts_router.post("/receipts", response_model=Receipt, status_code=201)
async def create_receipt(body: ReceiptCreate, store: DocumentStore = Depends(get_store)):
    receipt = {
        **body.model_dump(by_alias=True),
        "id": str(time.time_ns() // 1_000_000),
        "timestamp": now_iso(),
    }
    try:
        await store.insert_one(RECEIPTS, receipt)
    except StorageError as e:
        logger.error(f"Error creating receipt: {e}")
        return failure(500, "Failed to create receipt")
    logger.info(f"Created receipt {receipt['id']} for user: {receipt['userName']}")
    return receipt


@receipts_router.delete("/receipts/{id}", response_model=SuccessResponse, responses=NOT_FOUND)
async def delete_receipt(id: str, store: DocumentStore = Depends(get_store)):
    try:
        deleted = await store.delete_one(RECEIPTS, {"id": id})
    except StorageError as e:
        logger.error(f"Error deleting receipt {id}: {e}")
        return failure(500, "Failed to delete receipt")
    if not deleted:
        return failure(404, "Receipt not found")
    logger.info(f"Deleted receipt {id}")
    return {"success": True}
