"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from wallpaper_plus.auth import AuthClient, AuthUser, FirebaseAuthClient, InMemoryAuthClient
from wallpaper_plus.config import Settings, get_settings
from wallpaper_plus.db import FirebaseTreeStore, InMemoryTreeStore, SqlTreeStore, TreeStore
from wallpaper_plus.errors import AuthenticationError
from wallpaper_plus.moderation import AdminOperations
from wallpaper_plus.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_tree_store: TreeStore | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None
_firebase_app = None


def _get_firebase_app(settings: Settings):
    """Return the default firebase-admin app, initializing it on first use."""
    global _firebase_app
    if _firebase_app:
        return _firebase_app

    import firebase_admin
    from firebase_admin import credentials

    try:
        _firebase_app = firebase_admin.get_app()
    except ValueError:
        if settings.firebase_credentials:
            credential = credentials.Certificate(settings.firebase_credentials)
        else:
            credential = credentials.ApplicationDefault()
        options = {}
        if settings.firebase_database_url:
            options["databaseURL"] = settings.firebase_database_url
        _firebase_app = firebase_admin.initialize_app(credential, options)
    return _firebase_app


def get_tree_store() -> TreeStore:
    """
    Return a singleton tree store so data persists across requests.
    """
    global _tree_store
    if _tree_store:
        return _tree_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _tree_store = InMemoryTreeStore()
    elif settings.firebase_database_url:
        _tree_store = FirebaseTreeStore(_get_firebase_app(settings))
    elif settings.database_url:
        _tree_store = SqlTreeStore(settings.database_url)
    else:
        logger.warning("No database configured, using the in-memory tree store")
        _tree_store = InMemoryTreeStore()
    return _tree_store


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.aws_s3_bucket_name:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.aws_s3_bucket_name,
            region=settings.aws_region,
            endpoint=settings.aws_s3_endpoint,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )
    return _storage_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if settings.use_in_memory_backends or not (
        settings.firebase_database_url or settings.firebase_credentials
    ):
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = FirebaseAuthClient(_get_firebase_app(settings))
    return _auth_client


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_optional_user(
    authorization: Optional[str] = Header(default=None),
    auth_client: AuthClient = Depends(get_auth_client),
) -> Optional[AuthUser]:
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        return auth_client.verify_id_token(token)
    except AuthenticationError:
        return None


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    auth_client: AuthClient = Depends(get_auth_client),
) -> AuthUser:
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return auth_client.verify_id_token(token)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e


def require_admin(
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
) -> AuthUser:
    if not AdminOperations(store).is_admin(user.uid):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def reset_backends() -> None:
    """Drop the cached backend singletons."""
    global _tree_store, _storage_client, _auth_client
    _tree_store = None
    _storage_client = None
    _auth_client = None
