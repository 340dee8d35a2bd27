"""
app/services/application_service.py

Purpose: Application submission lifecycle

- Starts (or restarts) a draft for eligible users
- Accumulates draft files under the size ceiling
- Finalizes a draft into an immutable Application and posts it to admins
- Applies an admin decision back to the application and the user
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bson import ObjectId

from app.core.config import BotConfig
from app.core.exceptions import (
    ApplicationNotFoundError,
    EmptySubmissionError,
    ExternalServiceError,
    FileTooLargeError,
    MissingFileError,
    UserNotFoundError,
)
from app.core.logging import get_logger, LogContext
from app.db.mongo import get_drafts_collection, get_applications_collection
from app.flow.states import (
    ApplicationStatus,
    DecisionAction,
    DECISION_OUTCOMES,
    SubmissionStatus,
    UserState,
    APPLY_ALLOWED_STATUSES,
)
from app.models.application import Application, DraftApplication, FileAttachment
from app.models.user import User
from app.services import user_service
from app.services.relay_service import RelayService
from utils.constants import APPROVED_USER, REJECTED_USER, BUTTON_APPLY
from utils.time_utils import utcnow, calculate_draft_expiry, is_expired

logger = get_logger(__name__)


class ApplyOutcome(str, Enum):
    STARTED = "started"
    ALREADY_PENDING = "already_pending"
    ALREADY_APPROVED = "already_approved"
    USER_NOT_FOUND = "user_not_found"


@dataclass
class DecisionResult:
    application: Application
    user: User
    previous_status: SubmissionStatus
    notified: bool


class ApplicationService:
    """Service for the draft -> application -> decision lifecycle."""

    def __init__(self, config: BotConfig, relay: RelayService):
        self.config = config
        self.relay = relay

    async def get_draft(self, user_id: int) -> Optional[DraftApplication]:
        """
        Returns the user's live draft. The TTL monitor only runs about once
        a minute, so a draft past expires_at is treated as gone already.
        """
        drafts = get_drafts_collection()
        draft = DraftApplication.from_document(await drafts.find_one({"user_id": user_id}))
        if draft is not None and is_expired(draft.expires_at):
            logger.info("Draft expired", extra={"user_id": user_id})
            return None
        return draft

    async def get_application(self, application_id: str) -> Optional[Application]:
        if not ObjectId.is_valid(application_id):
            return None
        applications = get_applications_collection()
        return Application.from_document(
            await applications.find_one({"_id": ObjectId(application_id)})
        )

    async def start_application(self, user_id: int) -> ApplyOutcome:
        """
        Opens a fresh, empty draft for users who may apply (no application
        yet, or the last one was rejected) and moves them to
        COLLECTING_APPLICATION. Pending and approved users are left as is.
        """
        with LogContext(user_id=user_id):
            user = await user_service.get_user(user_id)
            if user is None:
                return ApplyOutcome.USER_NOT_FOUND

            if user.application_status == ApplicationStatus.PENDING:
                logger.info("Apply refused: application already pending")
                return ApplyOutcome.ALREADY_PENDING
            if user.application_status == ApplicationStatus.APPROVED:
                logger.info("Apply refused: user already approved")
                return ApplyOutcome.ALREADY_APPROVED
            if user.application_status not in APPLY_ALLOWED_STATUSES:
                raise ValueError(f"Unhandled application status: {user.application_status}")

            now = utcnow()
            drafts = get_drafts_collection()
            await drafts.update_one(
                {"user_id": user_id},
                {
                    "$set": {
                        "user_id": user_id,
                        "files": [],
                        "expires_at": calculate_draft_expiry(self.config.draft_ttl_hours, now),
                        "updated_at": now,
                    },
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True
            )
            await user_service.update_user_state(user_id, UserState.COLLECTING_APPLICATION)

            logger.info("Draft application started")
            return ApplyOutcome.STARTED

    async def add_file(self, user_id: int, attachment: Optional[FileAttachment]) -> int:
        """
        Appends a file to the user's draft and pushes its expiry forward.

        Raises:
            MissingFileError: The message carried no file (draft untouched)
            FileTooLargeError: The file is above the ceiling (draft untouched)

        Returns:
            Number of files now in the draft
        """
        with LogContext(user_id=user_id):
            if attachment is None:
                raise MissingFileError()
            if attachment.file_size > self.config.max_file_size:
                logger.info(f"Rejected file of {attachment.file_size} bytes")
                raise FileTooLargeError(attachment.file_size, self.config.max_file_size)

            now = utcnow()
            drafts = get_drafts_collection()

            # An expired draft the TTL monitor has not purged yet starts over empty
            stale = await drafts.find_one({"user_id": user_id})
            if stale is not None and is_expired(stale.get("expires_at")):
                await drafts.delete_one({"user_id": user_id})
                logger.info("Expired draft discarded before adding file")

            document = await drafts.find_one_and_update(
                {"user_id": user_id},
                {
                    "$push": {"files": attachment.to_document()},
                    "$set": {
                        "expires_at": calculate_draft_expiry(self.config.draft_ttl_hours, now),
                        "updated_at": now,
                    },
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
                return_document=True
            )

            file_count = len(document.get("files", [])) if document else 1
            logger.info(f"File {attachment.file_name} added to draft ({file_count} total)")
            return file_count

    async def submit(self, user_id: int) -> Application:
        """
        Finalizes the user's draft.

        Steps (single-document writes, no transaction):
        1. Create the Application snapshot (status=submitted)
        2. Post the summary + files to the admin group, map the summary
        3. Store the summary post id on the Application
        4. Delete the draft
        5. User: application_status=pending, state=none

        Raises:
            UserNotFoundError: The user never sent /start
            EmptySubmissionError: No draft, or a draft without files
        """
        with LogContext(user_id=user_id):
            user = await user_service.get_user(user_id)
            if user is None:
                raise UserNotFoundError(user_id)

            draft = await self.get_draft(user_id)
            if draft is None or not draft.files:
                logger.info("Submit refused: draft has no files")
                raise EmptySubmissionError(user_id)

            applications = get_applications_collection()
            application = Application(
                user_id=user_id,
                files=list(draft.files),
                status=SubmissionStatus.SUBMITTED,
                submitted_at=utcnow(),
            )
            result = await applications.insert_one(application.to_document())
            application.id = result.inserted_id

            group_message_id = await self.relay.post_application(user, application)
            application.group_message_id = group_message_id
            await applications.update_one(
                {"_id": application.id},
                {"$set": {"group_message_id": group_message_id}}
            )

            drafts = get_drafts_collection()
            await drafts.delete_one({"user_id": user_id})
            await user_service.update_application_status(
                user_id, ApplicationStatus.PENDING, state=UserState.NONE
            )

            logger.info(
                f"Application {application.application_id} submitted with {len(application.files)} file(s)",
                extra={"application_id": application.application_id}
            )
            return application

    async def decide(self, action: DecisionAction, application_id: str) -> DecisionResult:
        """
        Applies an admin decision.

        Re-deciding an already decided application is allowed and simply
        re-applies (admins use it to correct a wrong click); the previous
        status is logged and returned.

        Raises:
            ApplicationNotFoundError: Unknown or malformed application id
            UserNotFoundError: The applicant's user record is gone
        """
        with LogContext(application_id=application_id):
            application = await self.get_application(application_id)
            if application is None:
                raise ApplicationNotFoundError(application_id)

            user = await user_service.get_user(application.user_id)
            if user is None:
                raise UserNotFoundError(application.user_id)

            submission_status, user_status = DECISION_OUTCOMES[action]
            previous_status = application.status
            if previous_status != SubmissionStatus.SUBMITTED:
                logger.warning(
                    f"Application already {previous_status.value}, re-applying as {submission_status.value}"
                )

            processed_at = utcnow()
            applications = get_applications_collection()
            await applications.update_one(
                {"_id": application.id},
                {"$set": {"status": submission_status.value, "processed_at": processed_at}}
            )
            application.status = submission_status
            application.processed_at = processed_at

            await user_service.update_application_status(user.user_id, user_status)
            user.application_status = user_status

            if action == DecisionAction.APPROVE:
                notification = APPROVED_USER
            elif action == DecisionAction.REJECT:
                notification = REJECTED_USER.format(apply=BUTTON_APPLY)
            else:
                raise ValueError(f"Unhandled decision: {action}")

            notified = True
            try:
                await self.relay.telegram.send_message(user.user_id, notification)
            except ExternalServiceError as e:
                # The decision is stored; the user may have blocked the bot
                logger.warning(f"Could not notify user {user.user_id} of decision: {e}")
                notified = False

            logger.info(f"Application {submission_status.value}")
            return DecisionResult(
                application=application,
                user=user,
                previous_status=previous_status,
                notified=notified,
            )
