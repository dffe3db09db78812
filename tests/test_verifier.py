from datetime import timedelta
from unittest.mock import patch

import pytest

from app.api.attendance import verifier
from app.api.attendance_records.crud import attendance_record as record_crud
from app.api.attendance_records.crud import compute_hours_worked
from app.api.attendance_records.models import AttendanceRecord
from app.api.attendance_tokens.crud import attendance_code as code_crud
from app.api.attendance_tokens.crud import attendance_token as token_crud
from app.api.attendance_tokens.models import AttendanceToken
from app.api.attendance_tokens.schemas import AttendanceAction, CredentialKind
from app.core.exceptions.attendance_exceptions import (
    AlreadyCheckedIn,
    AlreadyUsed,
    Expired,
    InvalidToken,
    NoOpenSession,
    Unauthenticated,
    WrongAction,
)
from tests.conftest import OTHER_VOLUNTEER_ID, T0, VOLUNTEER_ID

CHECK_IN = AttendanceAction.CHECK_IN
CHECK_OUT = AttendanceAction.CHECK_OUT


def issue_token(db_session, project_id, action, now=T0):
    return token_crud.issue(db_session, project_id, action, now=now)


def stored_token(db_session, value) -> AttendanceToken:
    return token_crud.get_by_value(db_session, value)


def test_check_in_token_is_single_use(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)

    outcome = verifier.resolve(
        db_session, issued.value, VOLUNTEER_ID, T0 + timedelta(minutes=5)
    )

    assert outcome.success is True
    assert outcome.action == CHECK_IN
    assert outcome.project_id == test_project.id
    assert outcome.project_name == 'Riverside Cleanup'
    assert outcome.hours_worked is None

    record = record_crud.get_open(db_session, VOLUNTEER_ID, test_project.id)
    assert record is not None
    assert record.check_in_at == T0 + timedelta(minutes=5)
    assert record.check_in_method == 'qr'

    with pytest.raises(AlreadyUsed):
        verifier.resolve(
            db_session, issued.value, VOLUNTEER_ID, T0 + timedelta(minutes=6)
        )


def test_expired_token_is_rejected_and_never_consumed(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)

    with pytest.raises(Expired):
        verifier.resolve(
            db_session, issued.value, VOLUNTEER_ID, issued.expires_at + timedelta(seconds=1)
        )

    token = stored_token(db_session, issued.value)
    assert token.consumed is False
    assert token.consumed_by is None
    assert record_crud.get_open(db_session, VOLUNTEER_ID, test_project.id) is None


def test_expired_wins_over_already_used(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)
    verifier.resolve(db_session, issued.value, VOLUNTEER_ID, T0 + timedelta(minutes=1))

    with pytest.raises(Expired):
        verifier.resolve(
            db_session, issued.value, VOLUNTEER_ID, issued.expires_at + timedelta(hours=1)
        )


def test_token_is_valid_up_to_its_expiry(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)

    outcome = verifier.resolve(db_session, issued.value, VOLUNTEER_ID, issued.expires_at)

    assert outcome.action == CHECK_IN


def test_check_out_without_check_in_fails_and_keeps_token(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_OUT)

    with pytest.raises(NoOpenSession):
        verifier.resolve(
            db_session, issued.value, VOLUNTEER_ID, T0 + timedelta(minutes=1)
        )

    token = stored_token(db_session, issued.value)
    assert token.consumed is False
    assert db_session.query(AttendanceRecord).count() == 0


def test_hours_worked_two_and_a_half_hours(db_session, test_project):
    assert compute_hours_worked(T0, T0 + timedelta(hours=2, minutes=30)) == 2.5

    check_in = issue_token(db_session, test_project.id, CHECK_IN)
    verifier.resolve(db_session, check_in.value, VOLUNTEER_ID, T0)
    check_out = issue_token(
        db_session, test_project.id, CHECK_OUT, now=T0 + timedelta(hours=2)
    )

    outcome = verifier.resolve(
        db_session, check_out.value, VOLUNTEER_ID, T0 + timedelta(hours=2, minutes=30)
    )

    assert outcome.hours_worked == pytest.approx(2.5)
    assert outcome.model_dump(mode='json')['hours_worked'] == 2.5


def test_hours_worked_is_floored_at_zero():
    assert compute_hours_worked(T0, T0 - timedelta(minutes=5)) == 0.0


def test_code_off_by_one_digit_is_invalid(db_session, test_project):
    with patch(
        'app.api.attendance_tokens.crud.create_numeric_code', return_value='123456'
    ):
        issued = code_crud.issue(db_session, test_project.id, CHECK_IN, now=T0)
    assert issued.value == '123456'

    for near_miss in ('123457', '023456', '12345', '1234567'):
        with pytest.raises(InvalidToken):
            verifier.resolve(
                db_session, near_miss, VOLUNTEER_ID, T0 + timedelta(minutes=1)
            )

    outcome = verifier.resolve(
        db_session, '123456', VOLUNTEER_ID, T0 + timedelta(minutes=1)
    )
    assert outcome.action == CHECK_IN
    record = record_crud.get_open(db_session, VOLUNTEER_ID, test_project.id)
    assert record.check_in_method == 'code'


def test_code_expires_after_ten_minutes(db_session, test_project):
    issued = code_crud.issue(db_session, test_project.id, CHECK_IN, now=T0)

    assert issued.expires_at == T0 + timedelta(minutes=10)
    with pytest.raises(Expired):
        verifier.resolve(
            db_session, issued.value, VOLUNTEER_ID, T0 + timedelta(minutes=11)
        )


def test_full_check_in_check_out_scenario(db_session, create_test_project):
    project = create_test_project(42, 'Riverside Cleanup')

    check_in = issue_token(db_session, project.id, CHECK_IN, now=T0)
    assert check_in.expires_at == T0 + timedelta(hours=2)

    outcome = verifier.resolve(
        db_session, check_in.value, VOLUNTEER_ID, T0 + timedelta(hours=1)
    )
    assert outcome.action == CHECK_IN
    record = record_crud.get_open(db_session, VOLUNTEER_ID, project.id)
    assert record.check_in_at == T0 + timedelta(hours=1)

    check_out = issue_token(db_session, project.id, CHECK_OUT, now=T0 + timedelta(hours=3))
    assert check_out.expires_at == T0 + timedelta(hours=5)

    outcome = verifier.resolve(
        db_session, check_out.value, VOLUNTEER_ID, T0 + timedelta(hours=3, minutes=10)
    )

    assert outcome.action == CHECK_OUT
    assert round(outcome.hours_worked, 2) == 2.17
    token = stored_token(db_session, check_out.value)
    assert token.consumed is True
    assert token.consumed_by == VOLUNTEER_ID
    assert token.consumed_at == T0 + timedelta(hours=3, minutes=10)

    db_session.refresh(record)
    assert record.check_out_at == T0 + timedelta(hours=3, minutes=10)
    assert record_crud.get_open(db_session, VOLUNTEER_ID, project.id) is None


def test_duplicate_check_out_scan_mutates_record_once(db_session, test_project):
    check_in = issue_token(db_session, test_project.id, CHECK_IN)
    verifier.resolve(db_session, check_in.value, VOLUNTEER_ID, T0)
    check_out = issue_token(db_session, test_project.id, CHECK_OUT)
    first_scan = T0 + timedelta(hours=1)

    verifier.resolve(db_session, check_out.value, VOLUNTEER_ID, first_scan)
    with pytest.raises(AlreadyUsed):
        verifier.resolve(
            db_session, check_out.value, VOLUNTEER_ID, first_scan + timedelta(seconds=1)
        )

    records = db_session.query(AttendanceRecord).all()
    assert len(records) == 1
    assert records[0].check_out_at == first_scan
    assert records[0].hours_worked == pytest.approx(1.0)


def test_consume_is_compare_and_set(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)
    token = stored_token(db_session, issued.value)

    assert token_crud.consume(db_session, token.id, VOLUNTEER_ID, T0) is True
    assert token_crud.consume(db_session, token.id, OTHER_VOLUNTEER_ID, T0) is False
    db_session.commit()

    db_session.refresh(token)
    assert token.consumed_by == VOLUNTEER_ID


def test_lost_consumption_race_records_nothing(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)
    token = stored_token(db_session, issued.value)
    stale = AttendanceToken(
        id=token.id,
        value=token.value,
        project_id=token.project_id,
        action=token.action,
        issued_at=token.issued_at,
        expires_at=token.expires_at,
        consumed=False,
    )
    # Another request consumes the token after this one looked it up
    token_crud.consume(db_session, token.id, OTHER_VOLUNTEER_ID, T0)
    db_session.commit()

    with patch.object(token_crud, 'get_by_value', return_value=stale):
        with pytest.raises(AlreadyUsed):
            verifier.resolve(db_session, issued.value, VOLUNTEER_ID, T0)

    assert record_crud.get_open(db_session, VOLUNTEER_ID, test_project.id) is None


def test_wrong_action_leaves_token_usable(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)

    with pytest.raises(WrongAction):
        verifier.resolve(
            db_session, issued.value, VOLUNTEER_ID, T0, expected_action=CHECK_OUT
        )
    assert stored_token(db_session, issued.value).consumed is False

    outcome = verifier.resolve(
        db_session, issued.value, VOLUNTEER_ID, T0, expected_action=CHECK_IN
    )
    assert outcome.action == CHECK_IN


def test_second_check_in_is_rejected_without_burning_token(db_session, test_project):
    first = issue_token(db_session, test_project.id, CHECK_IN)
    second = issue_token(db_session, test_project.id, CHECK_IN)
    verifier.resolve(db_session, first.value, VOLUNTEER_ID, T0)

    with pytest.raises(AlreadyCheckedIn):
        verifier.resolve(
            db_session, second.value, VOLUNTEER_ID, T0 + timedelta(minutes=1)
        )

    assert stored_token(db_session, second.value).consumed is False
    record = record_crud.get_open(db_session, VOLUNTEER_ID, test_project.id)
    assert record.check_in_at == T0


def test_refreshed_check_in_tokens_stay_independently_valid(db_session, test_project):
    first = issue_token(db_session, test_project.id, CHECK_IN, now=T0)
    refreshed = issue_token(
        db_session, test_project.id, CHECK_IN, now=T0 + timedelta(minutes=30)
    )
    assert first.value != refreshed.value

    verifier.resolve(
        db_session, refreshed.value, VOLUNTEER_ID, T0 + timedelta(minutes=40)
    )
    verifier.resolve(
        db_session, first.value, OTHER_VOLUNTEER_ID, T0 + timedelta(minutes=45)
    )

    assert record_crud.get_open(db_session, VOLUNTEER_ID, test_project.id)
    assert record_crud.get_open(db_session, OTHER_VOLUNTEER_ID, test_project.id)


def test_code_is_bound_to_first_consumer(db_session, test_project):
    issued = code_crud.issue(db_session, test_project.id, CHECK_IN, now=T0)

    verifier.resolve(db_session, issued.value, VOLUNTEER_ID, T0 + timedelta(minutes=1))
    with pytest.raises(AlreadyUsed):
        verifier.resolve(
            db_session, issued.value, OTHER_VOLUNTEER_ID, T0 + timedelta(minutes=1)
        )

    code = code_crud.get_by_value(db_session, issued.value)
    assert code.consumed_by == VOLUNTEER_ID


def test_check_out_only_closes_own_session(db_session, test_project):
    check_in = issue_token(db_session, test_project.id, CHECK_IN)
    verifier.resolve(db_session, check_in.value, VOLUNTEER_ID, T0)
    check_out = issue_token(db_session, test_project.id, CHECK_OUT)

    with pytest.raises(NoOpenSession):
        verifier.resolve(
            db_session, check_out.value, OTHER_VOLUNTEER_ID, T0 + timedelta(hours=1)
        )
    assert record_crud.get_open(db_session, VOLUNTEER_ID, test_project.id)


def test_missing_account_is_unauthenticated(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)

    with pytest.raises(Unauthenticated):
        verifier.resolve(db_session, issued.value, None, T0)
    assert stored_token(db_session, issued.value).consumed is False


def test_unknown_and_empty_input_are_invalid(db_session, test_project):
    for raw_input in ('', '   ', None, 'not-a-token'):
        with pytest.raises(InvalidToken):
            verifier.resolve(db_session, raw_input, VOLUNTEER_ID, T0)


def test_scanned_link_resolves_to_its_token(db_session, test_project):
    issued = issue_token(db_session, test_project.id, CHECK_IN)
    link = f'https://volunteer.example.org/attendance/{issued.value}?action=checkin'

    outcome = verifier.resolve(db_session, link, VOLUNTEER_ID, T0)

    assert outcome.action == CHECK_IN


def test_parse_raw_input():
    assert verifier.parse_raw_input(' 004211 ') == (CredentialKind.CODE, '004211')
    assert verifier.parse_raw_input('abc_DEF-123') == (CredentialKind.TOKEN, 'abc_DEF-123')
    assert verifier.parse_raw_input('https://x.org/attendance/tok123/?action=checkout') == (
        CredentialKind.TOKEN,
        'tok123',
    )
    with pytest.raises(InvalidToken):
        verifier.parse_raw_input('https://x.org/')


def test_effective_action_time_bounds_client_clock():
    now = T0
    assert verifier.effective_action_time(None, now=now) == now
    assert verifier.effective_action_time(now - timedelta(seconds=30), now=now) == (
        now - timedelta(seconds=30)
    )
    assert verifier.effective_action_time(now - timedelta(hours=3), now=now) == now
