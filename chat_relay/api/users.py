# chat_relay/api/users.py
from typing import List

from fastapi import APIRouter, Depends, File, Query, UploadFile

from chat_relay.api.dependencies import (
    get_current_user,
    get_session_registry,
    get_user_interactor,
)
from chat_relay.infrastructure import schemas
from chat_relay.interactors.user_interactor import UserInteractor
from chat_relay.realtime.session_registry import SessionRegistry

router = APIRouter()


@router.get("/me", response_model=schemas.User)
async def read_users_me(current_user: schemas.User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=schemas.User)
async def update_user_me(
    user_update: schemas.UserUpdate,
    current_user: schemas.User = Depends(get_current_user),
    user_interactor: UserInteractor = Depends(get_user_interactor),
):
    return await user_interactor.update_user(current_user.id, user_update)


@router.put("/me/avatar", response_model=schemas.User)
async def update_avatar(
    avatar: UploadFile = File(...),
    current_user: schemas.User = Depends(get_current_user),
    user_interactor: UserInteractor = Depends(get_user_interactor),
):
    data = await avatar.read()
    return await user_interactor.update_avatar(
        current_user.id, data, avatar.filename or "", avatar.content_type or ""
    )


@router.get("/search", response_model=List[schemas.UserBasic])
async def search_users(
    query: str = Query(..., min_length=1),
    current_user: schemas.User = Depends(get_current_user),
    user_interactor: UserInteractor = Depends(get_user_interactor),
):
    return await user_interactor.search_users(query, current_user.id)


@router.get("/online", response_model=List[int])
async def online_users(
    current_user: schemas.User = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
):
    return registry.snapshot()


@router.get("/{user_id}", response_model=schemas.PublicUser)
async def read_user(
    user_id: int,
    current_user: schemas.User = Depends(get_current_user),
    user_interactor: UserInteractor = Depends(get_user_interactor),
    registry: SessionRegistry = Depends(get_session_registry),
):
    return await user_interactor.get_public_user(user_id, registry.online_user_ids())
