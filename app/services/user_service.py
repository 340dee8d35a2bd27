"""
app/services/user_service.py

Purpose: User data management

- Create or refresh user records on /start
- Update user state with transition checks
- Mirror application status onto the user
"""

from app.db.mongo import get_users_collection
from app.flow.states import (
    UserState,
    ApplicationStatus,
    is_valid_transition,
    parse_state,
)
from app.models.user import User
from app.core.logging import get_logger, LogContext
from utils.time_utils import utcnow
from typing import Optional

logger = get_logger(__name__)


async def register_user(
    user_id: int,
    username: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None
) -> User:
    """
    Creates the user on first contact or refreshes its identity fields.
    Always lands the user in state NONE; the application status survives.

    Args:
        user_id: Telegram user ID
        username, first_name, last_name: Telegram profile fields

    Returns:
        The stored user
    """
    with LogContext(user_id=user_id):
        users = get_users_collection()
        now = utcnow()

        result = await users.update_one(
            {"user_id": user_id},
            {
                "$set": {
                    "username": username,
                    "first_name": first_name,
                    "last_name": last_name,
                    "state": UserState.NONE.value,
                    "updated_at": now,
                },
                "$setOnInsert": {
                    "user_id": user_id,
                    "application_status": ApplicationStatus.NONE.value,
                    "created_at": now,
                },
            },
            upsert=True
        )

        if result.upserted_id:
            logger.info("New user created", extra={"user_id": user_id})

        return User.from_document(await users.find_one({"user_id": user_id}))


async def get_user(user_id: int) -> Optional[User]:
    """
    Retrieves a user by Telegram ID.

    Returns:
        User or None if the user never sent /start
    """
    users = get_users_collection()
    return User.from_document(await users.find_one({"user_id": user_id}))


async def update_user_state(user_id: int, new_state: UserState) -> bool:
    """
    Moves the user to a new conversation state.

    Transitions outside the table are logged, not refused: cancel and
    back-to-menu must always be able to bring a user home.

    Returns:
        True if a user document was matched
    """
    with LogContext(user_id=user_id, state=new_state.value):
        users = get_users_collection()

        document = await users.find_one({"user_id": user_id})
        if not document:
            logger.warning("State update for unknown user", extra={"user_id": user_id})
            return False

        current_state = parse_state(document.get("state"))
        if not is_valid_transition(current_state, new_state):
            logger.warning(f"Unexpected state transition: {current_state.value} -> {new_state.value}")

        result = await users.update_one(
            {"user_id": user_id},
            {"$set": {"state": new_state.value, "updated_at": utcnow()}}
        )

        if current_state != new_state:
            logger.info(f"State updated: {current_state.value} -> {new_state.value}")

        return result.matched_count > 0


async def update_application_status(
    user_id: int,
    status: ApplicationStatus,
    state: Optional[UserState] = None
) -> bool:
    """
    Mirrors an application status onto the user, optionally moving the
    user to a new state in the same single-document write.

    Returns:
        True if a user document was matched
    """
    users = get_users_collection()

    fields = {"application_status": status.value, "updated_at": utcnow()}
    if state is not None:
        fields["state"] = state.value

    result = await users.update_one({"user_id": user_id}, {"$set": fields})

    if result.matched_count:
        logger.info(f"Application status set to {status.value}", extra={"user_id": user_id})
    else:
        logger.warning("Application status update for unknown user", extra={"user_id": user_id})

    return result.matched_count > 0
