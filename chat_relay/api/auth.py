# chat_relay/api/auth.py
from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm

from chat_relay.api.dependencies import (
    get_token_interactor,
    get_user_interactor,
    oauth2_scheme,
)
from chat_relay.domain.exceptions import AuthenticationError, ValidationError
from chat_relay.infrastructure import schemas
from chat_relay.interactors.token_interactor import TokenInteractor
from chat_relay.interactors.user_interactor import UserInteractor

router = APIRouter()


@router.post("/login", response_model=schemas.TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    user_interactor: UserInteractor = Depends(get_user_interactor),
    token_interactor: TokenInteractor = Depends(get_token_interactor),
):
    # the username field also accepts an email address
    user = await user_interactor.verify_user_password(
        form_data.username, form_data.password
    )
    if user is None:
        raise AuthenticationError(
            "Incorrect username or password", reason="invalid_credentials"
        )
    if not user.is_active:
        raise AuthenticationError("Inactive user", reason="unknown_user")
    return await token_interactor.issue(user)


@router.post("/register", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
async def register(
    user: schemas.UserCreate,
    user_interactor: UserInteractor = Depends(get_user_interactor),
):
    if await user_interactor.get_user_by_username(user.username.strip()):
        raise ValidationError("Username already registered")
    if await user_interactor.get_user_by_email(user.email):
        raise ValidationError("Email already registered")
    new_user = await user_interactor.create_user(user)
    if new_user is None:
        # lost a race with a concurrent registration
        raise ValidationError("Username or email already registered")
    return new_user


@router.post("/refresh", response_model=schemas.TokenResponse)
async def refresh(
    request: schemas.RefreshTokenRequest,
    token_interactor: TokenInteractor = Depends(get_token_interactor),
    user_interactor: UserInteractor = Depends(get_user_interactor),
):
    username = await token_interactor.rotate(request.refresh_token)
    user = await user_interactor.get_user_by_username(username)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive", reason="unknown_user")
    return await token_interactor.issue(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: str = Depends(oauth2_scheme),
    token_interactor: TokenInteractor = Depends(get_token_interactor),
):
    if not await token_interactor.revoke(token):
        raise AuthenticationError("Invalid token", reason="revoked_token")
