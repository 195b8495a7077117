"""WebSocket: real-time notification channel."""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from skillswap.auth.tokens import user_id_from_token
from skillswap.repository.base import Repository
from skillswap.services.ws_updates import updates_manager

router = APIRouter(tags=["ws"])

CLOSE_NO_TOKEN = 4000
CLOSE_BAD_TOKEN = 4001
CLOSE_INACTIVE_USER = 4003


async def is_active_subscriber(user_id: int, repository: Repository) -> bool:
    """Same rule as get_current_user: the account must exist and not be banned."""
    async with repository.transaction() as tx:
        user = await tx.users.get_by_id(user_id)
    return user is not None and not user.is_banned


@router.websocket("/ws/updates")
async def updates_ws(websocket: WebSocket):
    """Connect with ?token=JWT. Server pushes { type: 'notification', notification: {...} } as events happen."""
    await websocket.accept()
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=CLOSE_NO_TOKEN)
        return
    user_id = user_id_from_token(token)
    if user_id is None:
        await websocket.close(code=CLOSE_BAD_TOKEN)
        return
    if not await is_active_subscriber(user_id, websocket.app.state.repository):
        await websocket.close(code=CLOSE_INACTIVE_USER)
        return
    updates_manager.connect(user_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        updates_manager.disconnect(user_id, websocket)
