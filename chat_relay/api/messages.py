# chat_relay/api/messages.py
from datetime import UTC, datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from chat_relay.api.dependencies import (
    get_config,
    get_current_user,
    get_event_dispatcher,
    get_message_interactor,
)
from chat_relay.config import AppConfig
from chat_relay.domain.events import (
    MessageCreated,
    MessageDeleted,
    MessageEdited,
    MessagesRead,
    ReactionAdded,
    ReactionRemoved,
)
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.interactors.message_interactor import Attachment, MessageInteractor

router = APIRouter()


@router.get("/{chat_id}/messages", response_model=schemas.MessagePage)
async def read_messages(
    chat_id: int,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=200),
    current_user: schemas.User = Depends(get_current_user),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    config: AppConfig = Depends(get_config),
):
    return await message_interactor.get_messages(
        chat_id, current_user.id, page, limit or config.MESSAGES_PAGE_SIZE
    )


@router.post(
    "/{chat_id}/messages",
    response_model=schemas.Message,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    chat_id: int,
    content: str = Form(""),
    temp_id: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: schemas.User = Depends(get_current_user),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    attachment = None
    if image is not None and image.filename:
        attachment = Attachment(
            data=await image.read(),
            filename=image.filename,
            content_type=image.content_type or "",
        )
    sent = await message_interactor.send_message(
        chat_id, current_user.id, content=content, attachment=attachment
    )
    await event_dispatcher.dispatch(
        MessageCreated(
            chat_id=chat_id,
            user_id=current_user.id,
            message=sent.message,
            participant_ids=sent.participant_ids,
            temp_id=temp_id,
        )
    )
    return sent.message


@router.post("/{chat_id}/messages/read", response_model=schemas.MarkReadRequest)
async def mark_read(
    chat_id: int,
    read_request: schemas.MarkReadRequest,
    current_user: schemas.User = Depends(get_current_user),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    marked = await message_interactor.mark_read(
        chat_id, current_user.id, read_request.message_ids
    )
    if marked:
        await event_dispatcher.dispatch(
            MessagesRead(
                chat_id=chat_id,
                user_id=current_user.id,
                message_ids=marked,
                read_at=datetime.now(UTC),
            )
        )
    return schemas.MarkReadRequest(message_ids=marked)


@router.put("/{chat_id}/messages/{message_id}", response_model=schemas.Message)
async def edit_message(
    chat_id: int,
    message_id: int,
    message_update: schemas.MessageUpdate,
    current_user: schemas.User = Depends(get_current_user),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    message = await message_interactor.edit_message(
        chat_id, message_id, current_user.id, message_update.content
    )
    await event_dispatcher.dispatch(
        MessageEdited(
            chat_id=chat_id,
            user_id=current_user.id,
            message_id=message.id,
            content=message.content,
            edited_at=message.edited_at,
        )
    )
    return message


@router.delete("/{chat_id}/messages/{message_id}", response_model=schemas.Message)
async def delete_message(
    chat_id: int,
    message_id: int,
    current_user: schemas.User = Depends(get_current_user),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    message = await message_interactor.delete_message(
        chat_id, message_id, current_user.id
    )
    await event_dispatcher.dispatch(
        MessageDeleted(chat_id=chat_id, user_id=current_user.id, message_id=message.id)
    )
    return message


@router.post(
    "/{chat_id}/messages/{message_id}/reactions", response_model=schemas.Message
)
async def add_reaction(
    chat_id: int,
    message_id: int,
    reaction: schemas.ReactionRequest,
    current_user: schemas.User = Depends(get_current_user),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    message = await message_interactor.add_reaction(
        chat_id, message_id, current_user.id, reaction.reaction
    )
    await event_dispatcher.dispatch(
        ReactionAdded(
            chat_id=chat_id,
            user_id=current_user.id,
            message_id=message_id,
            reaction=reaction.reaction.strip(),
        )
    )
    return message


@router.delete(
    "/{chat_id}/messages/{message_id}/reactions", response_model=schemas.Message
)
async def remove_reaction(
    chat_id: int,
    message_id: int,
    reaction: str = Query(..., min_length=1, max_length=schemas.MAX_REACTION_LENGTH),
    current_user: schemas.User = Depends(get_current_user),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    message = await message_interactor.remove_reaction(
        chat_id, message_id, current_user.id, reaction
    )
    await event_dispatcher.dispatch(
        ReactionRemoved(
            chat_id=chat_id,
            user_id=current_user.id,
            message_id=message_id,
            reaction=reaction.strip(),
        )
    )
    return message
