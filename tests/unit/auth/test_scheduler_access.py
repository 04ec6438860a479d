import asyncio
import pytest
from unittest.mock import patch, AsyncMock
from fastapi import HTTPException

from scheduling.dependencies import dep_auth
from scheduling.dependencies.dep_auth import _role_from_claims, get_current_scheduler, get_key
from scheduling.models.mod_auth import CallerContext, UserRole

class TestRoleMapping:
    def test_first_known_role_wins(self):
        assert _role_from_claims({"roles": ["Studio.Reader", "coordinator", "admin"]}) == UserRole.COORDINATOR

    def test_missing_roles_default_to_trainee(self):
        assert _role_from_claims({}) == UserRole.TRAINEE

class TestSchedulerAccess:
    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.COORDINATOR])
    def test_schedulers_pass(self, role):
        caller = CallerContext(id="u1", role=role)

        assert get_current_scheduler(caller) is caller

    @pytest.mark.parametrize("role", [UserRole.TRAINER, UserRole.TRAINEE])
    def test_others_are_forbidden(self, role):
        with pytest.raises(HTTPException) as exc_info:
            get_current_scheduler(CallerContext(id="u1", role=role))

        assert exc_info.value.status_code == 403

class TestSigningKeys:
    def test_matching_key_is_returned(self):
        jwks = {"keys": [{"kid": "k1", "n": "abc"}, {"kid": "k2", "n": "def"}]}
        with patch.object(dep_auth, "get_jwks", AsyncMock(return_value=jwks)):
            key = asyncio.run(get_key("k2"))

        assert key["n"] == "def"

    def test_unknown_key_is_401(self):
        with patch.object(dep_auth, "get_jwks", AsyncMock(return_value={"keys": []})):
            with pytest.raises(HTTPException) as exc_info:
                asyncio.run(get_key("missing"))

        assert exc_info.value.status_code == 401
