from __future__ import annotations

import pytest
from fastapi import HTTPException

from backend.app import models
from backend.app.security import (
    CallerIdentity,
    _decode_jwt,
    _encode_jwt,
    _load_jwt_key,
    create_access_token,
)


def _history(client, token):
    return client.get("/imports/history", headers={"Authorization": f"Bearer {token}"})


def test_token_round_trip_resolves_caller(client, sales_manager):
    token = create_access_token(str(sales_manager.id), str(sales_manager.company_id))

    payload = _decode_jwt(token, _load_jwt_key())

    assert payload["sub"] == str(sales_manager.id)
    assert payload["company_id"] == str(sales_manager.company_id)
    assert _history(client, token).status_code == 200


def test_caller_identity_from_profile(sales_manager):
    identity = CallerIdentity.from_profile(sales_manager)

    assert identity.role is models.UserRole.GERENTE
    assert identity.department == "Ventas"
    assert identity.user_id == str(sales_manager.id)


def test_expired_and_tampered_tokens_are_rejected():
    key = _load_jwt_key()
    expired = _encode_jwt({"sub": "x", "company_id": "y", "exp": 1}, key)

    with pytest.raises(HTTPException) as excinfo:
        _decode_jwt(expired, key)
    assert excinfo.value.detail == "Token expirado"

    valid = create_access_token("x", "y")
    header, payload, _signature = valid.split(".")
    with pytest.raises(HTTPException):
        _decode_jwt(f"{header}.{payload}.AAAA", key)


def test_token_for_another_company_is_refused(client, corporate_user, other_company):
    token = create_access_token(str(corporate_user.id), str(other_company.id))

    assert _history(client, token).status_code == 401


def test_inactive_profiles_are_refused(client, company, make_profile):
    former = make_profile(
        company, "ex@empresa.com", role=models.UserRole.CORPORATIVO, is_active=False
    )
    token = create_access_token(str(former.id), str(company.id))

    assert _history(client, token).status_code == 401
