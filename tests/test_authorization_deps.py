from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from restaurant_api.deps import ensure_same_business, require_business, require_role, require_superadmin


def _build_request(path: str = "/api/resource", method: str = "GET") -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "path_params": {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def test_require_role_denies_role_outside_allowed_set():
    user = SimpleNamespace(id=12, business_id=3, role="Staff")
    dependency = require_role(["Owner", "Manager"])

    with pytest.raises(HTTPException) as exc:
        dependency(request=_build_request(path="/api/business/3/users"), user=user)

    assert exc.value.status_code == 403
    assert exc.value.detail == "Access denied"


def test_require_role_is_case_insensitive_and_admits_superadmin_for_owner_routes():
    dependency = require_role(["Owner"])
    owner = SimpleNamespace(id=1, business_id=3, role="owner")
    superadmin = SimpleNamespace(id=2, business_id=None, role="SuperAdmin")

    assert dependency(request=_build_request(), user=owner) is owner
    assert dependency(request=_build_request(), user=superadmin) is superadmin


def test_require_role_keeps_superadmin_out_of_staff_only_routes():
    dependency = require_role(["Staff"])
    superadmin = SimpleNamespace(id=2, business_id=None, role="SuperAdmin")

    with pytest.raises(HTTPException) as exc:
        dependency(request=_build_request(), user=superadmin)

    assert exc.value.status_code == 403


def test_ensure_same_business_denies_mismatch():
    user = SimpleNamespace(id=10, business_id=1, role="Owner")

    with pytest.raises(HTTPException) as exc:
        ensure_same_business(user, 2, _build_request())

    assert exc.value.status_code == 403
    assert exc.value.detail == "Unauthorized business access"
    ensure_same_business(user, 1, _build_request())
    ensure_same_business(SimpleNamespace(id=1, business_id=None, role="SuperAdmin"), 2, _build_request())


def test_require_business_rejects_users_without_business():
    with pytest.raises(HTTPException) as exc:
        require_business(SimpleNamespace(id=5, business_id=None, role="Owner"))

    assert exc.value.status_code == 400


def test_require_superadmin_rejects_owner():
    with pytest.raises(HTTPException) as exc:
        require_superadmin(request=_build_request(), user=SimpleNamespace(id=5, business_id=1, role="Owner"))

    assert exc.value.status_code == 403
    assert exc.value.detail == "SuperAdmin access required"
