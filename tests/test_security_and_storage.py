import time
import uuid
from types import SimpleNamespace

import jwt
import pytest
from fastapi import HTTPException

from solarops.auth.security import decode_token, has_role
from solarops.config import settings
from solarops.storage.provider import StorageProvider


def token(**claims):
    payload = {"sub": str(uuid.uuid4()), "aud": "authenticated", "exp": int(time.time()) + 60}
    payload.update(claims)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def test_decode_valid_token():
    sub = str(uuid.uuid4())
    assert decode_token(token(sub=sub))["sub"] == sub


def test_expired_token_rejected():
    with pytest.raises(HTTPException) as exc:
        decode_token(token(exp=int(time.time()) - 10))
    assert exc.value.status_code == 401
    assert exc.value.detail == "Token expired"


def test_wrong_audience_rejected():
    with pytest.raises(HTTPException):
        decode_token(token(aud="someone-else"))


def test_admin_bypasses_role_checks():
    assert has_role(SimpleNamespace(role_category="admin"), "management")
    assert has_role(SimpleNamespace(role_category="management"), "admin", "management")
    assert not has_role(SimpleNamespace(role_category="field_tech"), "admin", "management")
    assert not has_role(SimpleNamespace(role_category=None), "management")


def test_path_from_url():
    provider = StorageProvider()
    url = "https://cdn.example.com/files/local/service-photos/t1/item%20one/1.jpg?sig=abc"
    assert provider.path_from_url("service-photos", url) == "t1/item one/1.jpg"
    assert provider.path_from_url("installation-photos", url) is None
    assert provider.path_from_url("service-photos", "") is None


def test_local_provider_round_trip(storage):
    storage.upload("site-survey-photos", "t1/roof/1.jpg", b"abc")
    assert storage.exists("site-survey-photos", "t1/roof/1.jpg")
    assert storage.public_url("site-survey-photos", "t1/roof/1.jpg").endswith("/files/local/site-survey-photos/t1/roof/1.jpg")
    storage.delete("site-survey-photos", "t1/roof/1.jpg")
    assert not storage.exists("site-survey-photos", "t1/roof/1.jpg")
