# chat_relay/api/chats.py
from typing import List

from fastapi import APIRouter, Depends, File, Response, UploadFile, status

from chat_relay.api.dependencies import (
    get_chat_interactor,
    get_current_user,
    get_event_dispatcher,
    get_message_interactor,
)
from chat_relay.domain.events import (
    GroupChatCreated,
    GroupUpdated,
    ParticipantAdded,
    ParticipantRemoved,
)
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.interactors.chat_interactor import ChatInteractor
from chat_relay.interactors.message_interactor import MessageInteractor

router = APIRouter()


@router.get("/", response_model=List[schemas.ChatSummary])
async def read_chats(
    current_user: schemas.User = Depends(get_current_user),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
):
    return await chat_interactor.get_chats(current_user.id)


@router.post("/direct/{user_id}", response_model=schemas.Chat)
async def get_or_create_direct_chat(
    user_id: int,
    response: Response,
    current_user: schemas.User = Depends(get_current_user),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
):
    chat, created = await chat_interactor.get_or_create_direct_chat(
        current_user.id, user_id
    )
    if created:
        response.status_code = status.HTTP_201_CREATED
    return chat


@router.post("/group", response_model=schemas.Chat, status_code=status.HTTP_201_CREATED)
async def create_group_chat(
    group: schemas.GroupCreate,
    current_user: schemas.User = Depends(get_current_user),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    chat = await chat_interactor.create_group(current_user.id, group)
    await event_dispatcher.dispatch(
        GroupChatCreated(chat_id=chat.id, user_id=current_user.id, chat=chat)
    )
    return chat


@router.put("/group/{chat_id}/rename", response_model=schemas.Chat)
async def rename_group(
    chat_id: int,
    rename: schemas.GroupRename,
    current_user: schemas.User = Depends(get_current_user),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    chat = await chat_interactor.rename_group(chat_id, current_user.id, rename.name)
    await event_dispatcher.dispatch(
        GroupUpdated(
            chat_id=chat.id, user_id=current_user.id, changes={"name": chat.name}
        )
    )
    return chat


@router.put("/group/{chat_id}/icon", response_model=schemas.Chat)
async def update_group_icon(
    chat_id: int,
    icon: UploadFile = File(...),
    current_user: schemas.User = Depends(get_current_user),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    data = await icon.read()
    chat = await chat_interactor.update_group_icon(
        chat_id, current_user.id, data, icon.filename or "", icon.content_type or ""
    )
    await event_dispatcher.dispatch(
        GroupUpdated(
            chat_id=chat.id, user_id=current_user.id, changes={"icon": chat.icon}
        )
    )
    return chat


@router.put("/group/{chat_id}/add", response_model=schemas.Chat)
async def add_to_group(
    chat_id: int,
    member: schemas.GroupMember,
    current_user: schemas.User = Depends(get_current_user),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    chat = await chat_interactor.add_participant(chat_id, current_user.id, member.user_id)
    await event_dispatcher.dispatch(
        ParticipantAdded(
            chat_id=chat.id,
            user_id=current_user.id,
            chat=chat,
            participant_id=member.user_id,
        )
    )
    return chat


@router.put("/group/{chat_id}/remove", response_model=schemas.Chat)
async def remove_from_group(
    chat_id: int,
    member: schemas.GroupMember,
    current_user: schemas.User = Depends(get_current_user),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    chat = await chat_interactor.remove_participant(
        chat_id, current_user.id, member.user_id
    )
    await event_dispatcher.dispatch(
        ParticipantRemoved(
            chat_id=chat.id,
            user_id=current_user.id,
            chat=chat,
            participant_id=member.user_id,
        )
    )
    return chat


@router.get("/{chat_id}", response_model=schemas.Chat)
async def read_chat(
    chat_id: int,
    current_user: schemas.User = Depends(get_current_user),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
):
    return await chat_interactor.get_chat(chat_id, current_user.id)


@router.get("/{chat_id}/media", response_model=List[schemas.Message])
async def read_chat_media(
    chat_id: int,
    current_user: schemas.User = Depends(get_current_user),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
):
    return await message_interactor.get_media(chat_id, current_user.id)
