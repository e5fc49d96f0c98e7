import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from barbershop.auth import jwt_handler
from barbershop.auth.dependencies import get_current_provider


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trips_subject() -> None:
    token = jwt_handler.create_access_token(subject='7', expires_minutes=5)

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == '7'
    assert payload['role'] == 'provider'


def test_get_current_provider_resolves_token_subject(db, provider) -> None:
    token = jwt_handler.create_access_token(subject=str(provider.id))

    assert get_current_provider(credentials=bearer(token), db=db).id == provider.id


def test_get_current_provider_rejects_garbage_token(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_provider(credentials=bearer('not-a-token'), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_provider_rejects_expired_token(db, provider) -> None:
    token = jwt_handler.create_access_token(subject=str(provider.id), expires_minutes=-1)

    with pytest.raises(HTTPException) as exception_info:
        get_current_provider(credentials=bearer(token), db=db)

    assert exception_info.value.status_code == 401


@pytest.mark.parametrize(('subject', 'detail'), [('admin', 'Invalid token subject'), ('999', 'Provider not found')])
def test_get_current_provider_rejects_unknown_subjects(db, subject: str, detail: str) -> None:
    token = jwt_handler.create_access_token(subject=subject)

    with pytest.raises(HTTPException) as exception_info:
        get_current_provider(credentials=bearer(token), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == detail


def test_get_current_provider_rejects_tokens_for_other_roles(db, provider) -> None:
    token = jwt_handler.create_access_token(subject=str(provider.id), role='customer')

    with pytest.raises(HTTPException) as exception_info:
        get_current_provider(credentials=bearer(token), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token role'
