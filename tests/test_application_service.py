import asyncio
from datetime import timedelta

import pytest
from bson import ObjectId

from app.core.exceptions import (
    ApplicationNotFoundError,
    EmptySubmissionError,
    ExternalServiceError,
    FileTooLargeError,
    MissingFileError,
    UserNotFoundError,
)
from app.db.mongo import USERS, DRAFT_APPLICATIONS, APPLICATIONS, THREAD_MAP
from app.flow.states import ApplicationStatus, DecisionAction, SubmissionStatus, UserState
from app.models.application import FileAttachment, MediaType
from app.services import user_service
from app.services.application_service import ApplyOutcome
from utils.constants import APPROVED_USER
from utils.time_utils import utcnow

MAX_FILE_SIZE = 31457280


def document(name="cv.pdf", size=1024, file_id=None):
    return FileAttachment(
        media_type=MediaType.DOCUMENT,
        file_id=file_id or f"id-{name}",
        file_name=name,
        file_size=size,
    )


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def applications(ctx):
    return ctx.applications


@pytest.fixture
def user(db):
    return run(user_service.register_user(42, username="ada", first_name="Ada", last_name="Lovelace"))


def stored_user(db, user_id=42):
    return next(d for d in db[USERS].documents if d["user_id"] == user_id)


def set_status(db, status, user_id=42):
    stored_user(db, user_id)["application_status"] = status.value


# ------------------------------------------------------------------
# start_application
# ------------------------------------------------------------------

def test_apply_opens_empty_draft(db, user, applications):
    outcome = run(applications.start_application(42))

    assert outcome == ApplyOutcome.STARTED
    draft = db[DRAFT_APPLICATIONS].documents[0]
    assert draft["files"] == []
    assert draft["expires_at"] > utcnow() + timedelta(hours=23)
    assert stored_user(db)["state"] == UserState.COLLECTING_APPLICATION.value


def test_apply_while_pending_changes_nothing(db, user, applications):
    set_status(db, ApplicationStatus.PENDING)

    outcome = run(applications.start_application(42))

    assert outcome == ApplyOutcome.ALREADY_PENDING
    assert db[DRAFT_APPLICATIONS].documents == []
    assert stored_user(db)["state"] == UserState.NONE.value


def test_apply_when_approved_is_refused(db, user, applications):
    set_status(db, ApplicationStatus.APPROVED)

    assert run(applications.start_application(42)) == ApplyOutcome.ALREADY_APPROVED
    assert db[DRAFT_APPLICATIONS].documents == []


def test_apply_without_start(db, applications):
    assert run(applications.start_application(42)) == ApplyOutcome.USER_NOT_FOUND


def test_reapply_after_rejection_resets_draft(db, user, applications):
    async def scenario():
        await applications.start_application(42)
        await applications.add_file(42, document())
        await user_service.update_application_status(42, ApplicationStatus.REJECTED, state=UserState.NONE)
        return await applications.start_application(42)

    assert run(scenario()) == ApplyOutcome.STARTED
    assert len(db[DRAFT_APPLICATIONS].documents) == 1
    assert db[DRAFT_APPLICATIONS].documents[0]["files"] == []


# ------------------------------------------------------------------
# add_file
# ------------------------------------------------------------------

def test_file_at_ceiling_is_accepted(db, user, applications):
    async def scenario():
        await applications.start_application(42)
        return await applications.add_file(42, document(size=MAX_FILE_SIZE))

    assert run(scenario()) == 1
    assert db[DRAFT_APPLICATIONS].documents[0]["files"][0]["file_size"] == MAX_FILE_SIZE


def test_file_above_ceiling_is_rejected_without_mutation(db, user, applications):
    async def scenario():
        await applications.start_application(42)
        await applications.add_file(42, document("a.pdf"))
        before = [dict(d) for d in db[DRAFT_APPLICATIONS].documents]
        with pytest.raises(FileTooLargeError) as excinfo:
            await applications.add_file(42, document("big.zip", size=MAX_FILE_SIZE + 1))
        return before, excinfo.value

    before, error = run(scenario())

    assert db[DRAFT_APPLICATIONS].documents == before
    assert error.file_size == MAX_FILE_SIZE + 1
    assert error.max_size == MAX_FILE_SIZE


def test_message_without_file_is_rejected(db, user, applications):
    async def scenario():
        await applications.start_application(42)
        with pytest.raises(MissingFileError):
            await applications.add_file(42, None)

    run(scenario())
    assert db[DRAFT_APPLICATIONS].documents[0]["files"] == []


def test_files_accumulate_in_order(db, user, applications):
    async def scenario():
        await applications.start_application(42)
        counts = [
            await applications.add_file(42, document("a.pdf")),
            await applications.add_file(42, document("b.pdf")),
        ]
        return counts

    assert run(scenario()) == [1, 2]
    names = [f["file_name"] for f in db[DRAFT_APPLICATIONS].documents[0]["files"]]
    assert names == ["a.pdf", "b.pdf"]


# ------------------------------------------------------------------
# submit
# ------------------------------------------------------------------

def test_submit_empty_draft_creates_nothing(db, user, applications):
    async def scenario():
        await applications.start_application(42)
        with pytest.raises(EmptySubmissionError):
            await applications.submit(42)

    run(scenario())

    assert db[APPLICATIONS].documents == []
    assert len(db[DRAFT_APPLICATIONS].documents) == 1
    assert stored_user(db)["application_status"] == ApplicationStatus.NONE.value


def test_submit_without_draft(db, user, applications):
    with pytest.raises(EmptySubmissionError):
        run(applications.submit(42))


def test_submit_unknown_user(db, applications):
    with pytest.raises(UserNotFoundError):
        run(applications.submit(42))


def test_expired_draft_cannot_be_submitted(db, user, applications):
    async def scenario():
        await applications.start_application(42)
        await applications.add_file(42, document())
        db[DRAFT_APPLICATIONS].documents[0]["expires_at"] = utcnow() - timedelta(minutes=1)
        with pytest.raises(EmptySubmissionError):
            await applications.submit(42)

    run(scenario())
    assert db[APPLICATIONS].documents == []


def test_file_added_to_expired_draft_starts_fresh_draft(db, user, applications):
    async def scenario():
        await applications.start_application(42)
        await applications.add_file(42, document("old.pdf"))
        db[DRAFT_APPLICATIONS].documents[0]["expires_at"] = utcnow() - timedelta(seconds=30)
        count = await applications.add_file(42, document("new.pdf"))
        return count, await applications.get_draft(42)

    count, draft = run(scenario())

    assert count == 1
    assert [f.file_name for f in draft.files] == ["new.pdf"]
    assert len(db[DRAFT_APPLICATIONS].documents) == 1


def test_submit_posts_summary_and_files(db, config, telegram, user, applications):
    async def scenario():
        await applications.start_application(42)
        await applications.add_file(42, document("a.pdf"))
        await applications.add_file(42, document("b.pdf"))
        return await applications.submit(42)

    application = run(scenario())

    # Application snapshot
    stored = db[APPLICATIONS].documents[0]
    assert stored["status"] == SubmissionStatus.SUBMITTED.value
    assert [f["file_name"] for f in stored["files"]] == ["a.pdf", "b.pdf"]

    # Summary with decision buttons in the application topic
    summary_call = telegram.send_message.call_args
    assert summary_call.args[0] == config.admin_group_id
    assert summary_call.kwargs["message_thread_id"] == config.application_topic_id
    callbacks = [b["callback_data"] for b in summary_call.kwargs["reply_markup"]["inline_keyboard"][0]]
    assert callbacks == [
        f"app:approve:{application.application_id}",
        f"app:reject:{application.application_id}",
    ]
    assert stored["group_message_id"] == application.group_message_id

    # Files as replies to the summary
    assert telegram.send_media.call_count == 2
    for call in telegram.send_media.call_args_list:
        assert call.kwargs["reply_to_message_id"] == application.group_message_id

    # Every post is mapped to the applicant
    entries = db[THREAD_MAP].documents
    assert len(entries) == 3
    assert all(e["user_id"] == 42 and e["kind"] == "application" for e in entries)
    assert all(e["application_id"] == application.application_id for e in entries)

    # Draft gone, user pending and back in the menu
    assert db[DRAFT_APPLICATIONS].documents == []
    assert stored_user(db)["application_status"] == ApplicationStatus.PENDING.value
    assert stored_user(db)["state"] == UserState.NONE.value


def test_failed_file_is_skipped(db, telegram, user, applications):
    telegram.send_media.side_effect = [ExternalServiceError("upload failed"), {"message_id": 5000}]

    async def scenario():
        await applications.start_application(42)
        await applications.add_file(42, document("a.pdf"))
        await applications.add_file(42, document("b.pdf"))
        return await applications.submit(42)

    application = run(scenario())

    mapped = {e["group_message_id"] for e in db[THREAD_MAP].documents}
    assert mapped == {application.group_message_id, 5000}
    assert stored_user(db)["application_status"] == ApplicationStatus.PENDING.value


# ------------------------------------------------------------------
# decide
# ------------------------------------------------------------------

def submitted_application(applications):
    async def scenario():
        await applications.start_application(42)
        await applications.add_file(42, document())
        return await applications.submit(42)
    return run(scenario())


def test_approve(db, telegram, user, applications):
    application = submitted_application(applications)

    result = run(applications.decide(DecisionAction.APPROVE, application.application_id))

    stored = db[APPLICATIONS].documents[0]
    assert stored["status"] == SubmissionStatus.APPROVED.value
    assert stored["processed_at"] is not None
    assert stored_user(db)["application_status"] == ApplicationStatus.APPROVED.value
    assert telegram.send_message.call_args.args == (42, APPROVED_USER)
    assert result.notified is True
    assert result.previous_status == SubmissionStatus.SUBMITTED


def test_reject_allows_reapplying(db, telegram, user, applications):
    application = submitted_application(applications)

    run(applications.decide(DecisionAction.REJECT, application.application_id))

    assert db[APPLICATIONS].documents[0]["status"] == SubmissionStatus.REJECTED.value
    assert stored_user(db)["application_status"] == ApplicationStatus.REJECTED.value
    assert "rejected" in telegram.send_message.call_args.args[1]
    assert run(applications.start_application(42)) == ApplyOutcome.STARTED


def test_redeciding_reapplies(db, user, applications):
    application = submitted_application(applications)

    async def scenario():
        await applications.decide(DecisionAction.APPROVE, application.application_id)
        return await applications.decide(DecisionAction.REJECT, application.application_id)

    result = run(scenario())

    assert result.previous_status == SubmissionStatus.APPROVED
    assert db[APPLICATIONS].documents[0]["status"] == SubmissionStatus.REJECTED.value
    assert stored_user(db)["application_status"] == ApplicationStatus.REJECTED.value


def test_unknown_application(db, user, applications):
    with pytest.raises(ApplicationNotFoundError):
        run(applications.decide(DecisionAction.APPROVE, str(ObjectId())))


def test_malformed_application_id(db, user, applications):
    with pytest.raises(ApplicationNotFoundError):
        run(applications.decide(DecisionAction.APPROVE, "not-an-id"))


def test_applicant_gone(db, user, applications):
    application = submitted_application(applications)
    db[USERS].documents.clear()

    with pytest.raises(UserNotFoundError):
        run(applications.decide(DecisionAction.APPROVE, application.application_id))

    assert db[APPLICATIONS].documents[0]["status"] == SubmissionStatus.SUBMITTED.value


def test_decision_stored_when_user_blocked_bot(db, telegram, user, applications):
    application = submitted_application(applications)
    telegram.send_message.side_effect = ExternalServiceError("bot was blocked by the user")

    result = run(applications.decide(DecisionAction.APPROVE, application.application_id))

    assert result.notified is False
    assert db[APPLICATIONS].documents[0]["status"] == SubmissionStatus.APPROVED.value
