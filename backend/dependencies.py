"""FastAPI dependencies: settings, the data source, the AI generator and the current user."""

from functools import lru_cache
from typing import Optional, Union
import logging
import weakref

import jwt
from fastapi import Depends, Header, HTTPException, Query, status

from config import Settings, get_settings
from data_source import DataSource
from demo_data import DemoDataSource
from supabase_client import SupabaseDataSource
from audit.service import AuditService
from ai.meeting_ai import DemoMeetingAI, MeetingAIGenerator

logger = logging.getLogger(__name__)

_audit_services: "weakref.WeakKeyDictionary[DataSource, AuditService]" = weakref.WeakKeyDictionary()


@lru_cache()
def get_data_source() -> DataSource:
    """
    Build the process-wide store from Settings.data_source.

    "demo" gives a seeded in-memory store; "supabase" the real one.
    """
    settings = get_settings()
    if settings.data_source == "demo":
        logger.info("Using demo data source")
        return DemoDataSource(user_id=settings.demo_user_id)
    if settings.data_source == "supabase":
        logger.info("Using Supabase data source")
        return SupabaseDataSource(secret_key=settings.secret_key)
    raise ValueError(f"Unknown data source: {settings.data_source}")


@lru_cache()
def get_ai_generator() -> Union[MeetingAIGenerator, DemoMeetingAI]:
    settings = get_settings()
    if settings.demo_mode or not settings.openai_api_key:
        return DemoMeetingAI()
    return MeetingAIGenerator(api_key=settings.openai_api_key, model=settings.openai_model)


def get_audit_service(
    store: DataSource = Depends(get_data_source),
    settings: Settings = Depends(get_settings),
) -> AuditService:
    """One AuditService per store, so the per-user audit locks are shared."""
    service = _audit_services.get(store)
    if service is None:
        service = AuditService(
            store,
            lookback_days=settings.audit_lookback_days,
            lookahead_days=settings.audit_lookahead_days,
        )
        _audit_services[store] = service
    return service


async def get_current_user(
    authorization: Optional[str] = Header(None),
    user_id: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
) -> str:
    """Get current user from a Supabase JWT, or the demo user in demo mode."""
    if settings.demo_mode and user_id:
        return user_id
    if authorization and authorization.startswith("Bearer "):
        token = authorization.replace("Bearer ", "")
        try:
            # Supabase JWTs carry the user id in the 'sub' claim
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            logger.error(f"JWT decode error: {e}")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
        user_id_from_token = payload.get("sub")
        if user_id_from_token:
            return user_id_from_token
    if settings.demo_mode:
        return settings.demo_user_id
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
