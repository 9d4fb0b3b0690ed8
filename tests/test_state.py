import pytest

from scribe.errors import InvalidTransitionError, NotFoundError
from scribe.models import ErrorStep, SessionStatus
from scribe.services.state import TRANSITIONS, SessionStateMachine

S = SessionStatus


def test_every_status_has_transitions():
    assert set(TRANSITIONS) == set(SessionStatus)


@pytest.mark.parametrize("status", list(SessionStatus))
def test_error_is_reachable_from_every_status(status):
    assert SessionStateMachine.can_transition(status, S.error)


@pytest.mark.parametrize(
    "current,target",
    [
        (S.draft, S.transcribing),
        (S.pending, S.uploaded),
        (S.uploaded, S.transcribing),
        (S.transcribing, S.transcribed),
        (S.transcribed, S.summarizing),
        (S.summarizing, S.completed),
        (S.completed, S.summarizing),
        (S.error, S.transcribing),
        (S.error, S.summarizing),
    ],
)
def test_allowed_transitions(current, target):
    assert SessionStateMachine.can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (S.draft, S.completed),
        (S.draft, S.summarizing),
        (S.transcribing, S.transcribing),
        (S.transcribing, S.summarizing),
        (S.summarizing, S.transcribing),
        (S.uploaded, S.completed),
    ],
)
def test_refused_transitions(current, target):
    assert not SessionStateMachine.can_transition(current, target)
    with pytest.raises(InvalidTransitionError):
        SessionStateMachine.check_transition(current, target)


def test_upload_locked_once_transcription_starts():
    assert not SessionStateMachine.upload_locked(S.draft)
    assert not SessionStateMachine.upload_locked(S.uploaded)
    assert not SessionStateMachine.upload_locked(S.error)
    for status in (S.transcribing, S.transcribed, S.summarizing, S.completed):
        assert SessionStateMachine.upload_locked(status)


async def test_update_status_persists(store, state, campaign):
    session = await store.create_session(campaign.id, "One", "2026-10-03")

    updated = await state.update_status(session.id, S.uploaded)

    assert updated.status is S.uploaded
    assert (await store.get_session(session.id)).status is S.uploaded


async def test_update_status_refuses_invalid_move(store, state, campaign):
    session = await store.create_session(campaign.id, "One", "2026-10-03")
    with pytest.raises(InvalidTransitionError):
        await state.update_status(session.id, S.completed)
    assert (await store.get_session(session.id)).status is S.draft


async def test_update_status_unknown_session(state):
    with pytest.raises(NotFoundError):
        await state.update_status(12345, S.uploaded)


async def test_set_and_clear_error(store, state, campaign):
    session = await store.create_session(campaign.id, "One", "2026-10-03")

    failed = await state.set_error(session.id, ErrorStep.summary, "quota exceeded")
    assert failed.status is S.error
    assert failed.error_step is ErrorStep.summary
    assert failed.error_message == "quota exceeded"

    cleared = await state.clear_error(session.id)
    assert cleared.error_step is None
    assert cleared.error_message is None
    # clearing the detail does not move the status
    assert cleared.status is S.error
