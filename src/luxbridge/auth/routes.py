"""
OAuth2 and account-linking endpoints for the MCP server using Starlette.

Implements:
- Authorization Server Metadata (RFC 8414)
- Dynamic Client Registration (RFC 7591)
- Authorization code hand-off used by the hosted login page
  (store, verify, complete)
- Token endpoint
- Platform credential login that links a platform to a session
- Health check
"""

import logging
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from luxbridge.core.exceptions import (
    InvalidRequest,
    LuxBridgeError,
    OAuthError,
    PlatformLoginFailed,
    SessionNotFound,
    StoreError,
    UnsupportedPlatform,
)

if TYPE_CHECKING:
    from luxbridge.core.context import LuxBridgeContext

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# Pydantic models for request/response validation
class ClientRegistrationRequest(BaseModel):
    """Dynamic Client Registration request (RFC 7591)."""

    client_name: str
    redirect_uris: list[str] | str


class ClientRegistrationResponse(BaseModel):
    """Dynamic Client Registration response."""

    client_id: str
    client_secret: str
    client_name: str
    redirect_uris: list[str]
    grant_types: list[str] = ["authorization_code"]
    response_types: list[str] = ["code"]
    token_endpoint_auth_method: str = "client_secret_post"


class StoreAuthCodeRequest(BaseModel):
    auth_code: str
    client_id: str
    redirect_uri: str
    code_challenge: str | None = None
    code_challenge_method: str | None = None


class VerifyAuthCodeRequest(BaseModel):
    auth_code: str


class CompleteAuthorizationRequest(BaseModel):
    auth_code: str
    privy_token: str


class PlatformLoginRequest(BaseModel):
    session_id: str
    email: str
    password: str


def error_response(error: str, description: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"error": error, "error_description": description},
        status_code=status_code,
    )


def oauth_error_response(e: OAuthError) -> JSONResponse:
    return JSONResponse(e.to_dict(), status_code=e.status_code)


def server_error_response(e: LuxBridgeError) -> JSONResponse:
    logger.error("Request failed: %s", e)
    if isinstance(e, StoreError):
        return error_response("temporarily_unavailable", "Credential store unavailable", 503)
    return error_response("server_error", str(e), 500)


async def parse_json_body(request: Request, model: type[ModelT]) -> ModelT:
    """
    Parse and validate a JSON request body.

    Raises:
        InvalidRequest: If the body is not JSON or misses required fields
    """
    try:
        return model.model_validate(await request.json())
    except ValidationError as e:
        missing = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        raise InvalidRequest(f"Invalid or missing parameters: {missing}") from e
    except ValueError as e:
        raise InvalidRequest("Request body must be JSON") from e


# OAuth2 endpoint handlers
async def authorization_server_metadata(request: Request, context: "LuxBridgeContext"):
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    return JSONResponse(context.oauth2_server.get_authorization_server_metadata())


async def register_client(request: Request, context: "LuxBridgeContext"):
    """Dynamic Client Registration (RFC 7591)."""
    try:
        req = await parse_json_body(request, ClientRegistrationRequest)
        client = await context.oauth2_server.register_client(
            client_name=req.client_name,
            redirect_uris=req.redirect_uris,
        )
    except OAuthError as e:
        return oauth_error_response(e)
    except LuxBridgeError as e:
        return server_error_response(e)

    response = ClientRegistrationResponse(
        client_id=client.client_id,
        client_secret=client.client_secret,
        client_name=client.name,
        redirect_uris=client.redirect_uris,
    )
    return JSONResponse(response.model_dump(), status_code=201)


async def store_auth_code(request: Request, context: "LuxBridgeContext"):
    """Persist the code the login page generated for a pending authorization."""
    try:
        req = await parse_json_body(request, StoreAuthCodeRequest)
        await context.oauth2_server.create_authorization_code(
            client_id=req.client_id,
            redirect_uri=req.redirect_uri,
            code_challenge=req.code_challenge,
            code_challenge_method=req.code_challenge_method,
            code=req.auth_code,
        )
    except OAuthError as e:
        return oauth_error_response(e)
    except LuxBridgeError as e:
        return server_error_response(e)
    return JSONResponse({"success": True})


async def verify_auth_code(request: Request, context: "LuxBridgeContext"):
    """Report whether a code exists and whether a user is attached to it yet."""
    try:
        req = await parse_json_body(request, VerifyAuthCodeRequest)
        auth_code = await context.issuer.redeem_auth_code(req.auth_code)
    except OAuthError as e:
        return oauth_error_response(e)
    except LuxBridgeError as e:
        return server_error_response(e)

    if auth_code is None or auth_code.is_expired():
        return error_response("invalid_grant", "Auth code not found", 404)

    has_user = bool(auth_code.user_id.strip())
    return JSONResponse(
        {
            "success": True,
            "hasUserId": has_user,
            "authCode": {
                "code": auth_code.code,
                "clientId": auth_code.client_id,
                "expiresAt": auth_code.expires_at.isoformat(),
                "hasUser": has_user,
            },
        }
    )


async def complete_authorization(request: Request, context: "LuxBridgeContext"):
    """Attach the identity proven by a Privy token to a pending code."""
    try:
        req = await parse_json_body(request, CompleteAuthorizationRequest)
        identity = await context.identity_verifier.verify(req.privy_token)
        if identity is None:
            return error_response("invalid_token", "Invalid Privy token", 401)
        await context.oauth2_server.complete_authorization(req.auth_code, identity)
    except OAuthError as e:
        return oauth_error_response(e)
    except LuxBridgeError as e:
        return server_error_response(e)

    return JSONResponse(
        {
            "success": True,
            "message": "Authorization completed successfully",
            "auth_code": req.auth_code,
        }
    )


async def token_endpoint(request: Request, context: "LuxBridgeContext"):
    """Token endpoint - exchanges authorization code for access token."""
    form = await request.form()
    try:
        token = await context.oauth2_server.exchange_code_for_token(
            grant_type=str(form.get("grant_type") or ""),
            code=str(form.get("code") or ""),
            redirect_uri=str(form.get("redirect_uri") or ""),
            client_id=str(form.get("client_id") or ""),
            client_secret=form.get("client_secret") or None,
            code_verifier=form.get("code_verifier") or None,
        )
    except OAuthError as e:
        return oauth_error_response(e)
    except LuxBridgeError as e:
        return server_error_response(e)

    return JSONResponse(
        token.model_dump(exclude_none=True),
        headers={"Cache-Control": "no-store", "Pragma": "no-cache"},
    )


async def platform_login_complete(request: Request, context: "LuxBridgeContext"):
    """Log in to a platform with the user's credentials and link it to the session."""
    platform = request.path_params.get("platform", "").replace("-", "_")
    try:
        req = await parse_json_body(request, PlatformLoginRequest)
        link = await context.links.link_platform(
            req.session_id, platform, req.email, req.password
        )
    except OAuthError as e:
        return oauth_error_response(e)
    except UnsupportedPlatform as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=400)
    except SessionNotFound:
        return JSONResponse(
            {"success": False, "error": "Invalid or expired session"}, status_code=404
        )
    except PlatformLoginFailed as e:
        return JSONResponse({"success": False, "error": e.reason}, status_code=401)
    except LuxBridgeError as e:
        return server_error_response(e)

    return JSONResponse({"success": True, "link": link.public_view()})


async def health_check(request: Request, context: "LuxBridgeContext"):
    """Liveness probe."""
    return JSONResponse({"status": "ok", "service": "luxbridge-mcp"})
