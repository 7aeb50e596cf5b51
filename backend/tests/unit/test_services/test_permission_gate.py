"""
Permission gate tests: bearer parsing, model access, roles and permissions
"""

import pytest

from llmmux.common.errors import AuthenticationError, AuthorizationError
from llmmux.domain.api_key import ModelPermissions
from llmmux.domain.credential import ApiKeyCredential, SessionCredential
from llmmux.services.permission_gate import (
    ROUTE_REQUIREMENTS,
    authorize_route,
    ensure_model_access,
    extract_model,
    has_model_access,
    has_permission,
    has_required_role,
    parse_bearer,
)


class TestParseBearer:
    def test_missing_header(self):
        with pytest.raises(AuthenticationError) as exc_info:
            parse_bearer(None)
        assert exc_info.value.message == "Missing Authorization header"
        assert exc_info.value.status_code == 401

    def test_empty_header_counts_as_missing(self):
        with pytest.raises(AuthenticationError) as exc_info:
            parse_bearer("")
        assert exc_info.value.message == "Missing Authorization header"

    def test_scheme_without_token(self):
        with pytest.raises(AuthenticationError) as exc_info:
            parse_bearer("Bearer")
        assert exc_info.value.message == "Invalid Authorization header format"

    def test_wrong_scheme(self):
        with pytest.raises(AuthenticationError) as exc_info:
            parse_bearer("Basic dXNlcjpwYXNz")
        assert exc_info.value.message == "Invalid Authorization header format"

    def test_lowercase_scheme_is_rejected(self):
        with pytest.raises(AuthenticationError):
            parse_bearer("bearer sk-abc")

    def test_token_is_not_trimmed(self):
        assert parse_bearer("Bearer   ") == "  "
        assert parse_bearer("Bearer sk-abc ") == "sk-abc "


class TestModelAccess:
    def test_allow_all_respects_denied(self):
        permissions = ModelPermissions(allow_all=True, denied_models=["secret"])
        assert has_model_access(permissions, "llama") is True
        assert has_model_access(permissions, "secret") is False

    def test_allow_all_ignores_allowed_list(self):
        permissions = ModelPermissions(allow_all=True, allowed_models=["only-this"])
        assert has_model_access(permissions, "anything") is True

    def test_allow_list(self):
        permissions = ModelPermissions(
            allow_all=False, allowed_models=["llama"], denied_models=["llama"]
        )
        assert has_model_access(permissions, "llama") is True
        assert has_model_access(permissions, "qwen") is False

    def test_empty_allow_list_denies_everything(self):
        assert has_model_access(ModelPermissions(allow_all=False), "llama") is False

    def test_ensure_model_access_raises_with_model_name(self):
        credential = ApiKeyCredential(
            key="sk-test", permissions=ModelPermissions(allow_all=True, denied_models=["x"])
        )
        ensure_model_access(credential, "y")
        with pytest.raises(AuthorizationError) as exc_info:
            ensure_model_access(credential, "x")
        assert exc_info.value.message == "Access denied to model: x"
        assert exc_info.value.status_code == 403


class TestExtractModel:
    def test_body_model_wins(self):
        assert extract_model({"model": "llama"}, "/v1/models/qwen") == "llama"

    def test_path_model(self):
        assert extract_model(None, "/v1/models/qwen") == "qwen"
        assert extract_model({}, "/v1/models/qwen/") == "qwen"

    def test_no_model(self):
        assert extract_model(None, "/v1/models") is None
        assert extract_model({"messages": []}, "/v1/chat/completions") is None
        assert extract_model(["not", "a", "dict"], "/v1/completions") is None

    def test_discovery_routes_are_not_models(self):
        assert extract_model(None, "/v1/models/discovery/stats") is None
        assert extract_model(None, "/v1/models/discovery") is None


class TestRoles:
    def test_hierarchy(self):
        assert has_required_role(["SUPER_ADMIN"], ["ADMIN"]) is True
        assert has_required_role(["ADMIN"], ["ADMIN", "SUPER_ADMIN"]) is True
        assert has_required_role(["USER"], ["ADMIN", "SUPER_ADMIN"]) is False
        assert has_required_role(["ADMIN"], ["SUPER_ADMIN"]) is False

    def test_any_role_suffices(self):
        assert has_required_role(["USER", "ADMIN"], ["ADMIN"]) is True

    def test_no_requirement(self):
        assert has_required_role([], []) is True

    def test_no_roles_or_unknown_roles(self):
        assert has_required_role([], ["USER"]) is False
        assert has_required_role(["GUEST"], ["USER"]) is False


class TestPermissions:
    def test_exact(self):
        assert has_permission(["api_key:read"], "api_key:read") is True
        assert has_permission(["api_key:read"], "api_key:delete") is False

    def test_resource_wildcard(self):
        assert has_permission(["api_key:*"], "api_key:delete") is True
        assert has_permission(["api_key:*"], "users:read") is False

    def test_global_wildcard(self):
        assert has_permission(["*"], "system:anything") is True

    def test_no_permissions(self):
        assert has_permission([], "profile:read") is False


class TestAuthorizeRoute:
    def session(self, *roles: str, permissions=()) -> SessionCredential:
        return SessionCredential(
            user_id=1, email="a@example.com", roles=roles, permissions=frozenset(permissions)
        )

    def test_admin_with_permission(self):
        authorize_route("admin.keys.create", self.session("ADMIN", permissions=["api_key:create"]))

    def test_super_admin_wildcards(self):
        authorize_route("admin.keys.delete", self.session("SUPER_ADMIN", permissions=["api_key:*"]))

    def test_user_rejected(self):
        with pytest.raises(AuthorizationError) as exc_info:
            authorize_route("admin.keys.list", self.session("USER", permissions=["*"]))
        assert exc_info.value.message == "Insufficient permissions"

    def test_admin_missing_permission(self):
        with pytest.raises(AuthorizationError):
            authorize_route("admin.keys.delete", self.session("ADMIN", permissions=["api_key:read"]))

    def test_open_route(self):
        authorize_route("auth.profile", self.session())

    def test_every_route_has_a_requirement(self):
        assert "admin.cleanup_logs" in ROUTE_REQUIREMENTS
        assert all(req is not None for req in ROUTE_REQUIREMENTS.values())
