from fastapi import APIRouter, Depends, HTTPException, status

from shortlink_app.auth.token_manager import TokenManager
from shortlink_app.dependencies import get_token_manager
from shortlink_app.errors import AuthRejected, AuthUnavailable
from shortlink_app.models.session import AuthSession, Credentials

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=AuthSession)
async def login(
    credentials: Credentials,
    manager: TokenManager = Depends(get_token_manager)
):
    """Log in and start automatic session renewal"""
    try:
        return await manager.login(credentials)
    except AuthRejected as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except AuthUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(manager: TokenManager = Depends(get_token_manager)):
    """Log out here and in every other context sharing the store"""
    manager.logout()


@router.get("/session", response_model=AuthSession)
async def get_session(manager: TokenManager = Depends(get_token_manager)):
    """Current session, if it has not expired"""
    session = manager.get_session()
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not logged in"
        )
    return session
