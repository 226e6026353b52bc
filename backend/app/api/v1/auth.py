"""License key endpoints.

- POST /auth/create-free-key: issue a free key for an email
- POST /auth/validate-key: check a key and stamp last_validated_at
- GET /auth/me: the authenticated user's summary

The two unauthenticated endpoints are rate limited per IP to slow down key
guessing and free-key farming.
"""

from fastapi import APIRouter, BackgroundTasks, Request, Response

from app.api.deps import AuthenticatorDep, CurrentUser, Licenses
from app.core.config import settings
from app.core.email import send_license_key_email
from app.core.errors import UnauthorizedError, ValidationError
from app.core.license_keys import is_valid_license_key, normalize_license_key
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse
from app.models.user import User
from app.schemas.auth import EmailRequest, FreeKeyResponse, UserSummary, ValidateKeyRequest

router = APIRouter()

_NEW_KEY_MESSAGE = "Free license key created successfully. Please check your email."
_EXISTING_KEY_MESSAGE = (
    "This email already has a license key. We've sent it to your inbox again."
)


def _summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        email=user.email,
        tier=user.tier,
        subscription_status=user.subscription_status,
        license_key=user.license_key,
        created_at=user.created_at,
        last_validated_at=user.last_validated_at,
    )


@router.post("/create-free-key", status_code=201)
@limiter.limit(settings.rate_limit_create_free_key)
async def create_free_key(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    licenses: Licenses,
) -> DataResponse[FreeKeyResponse]:
    """Issue a free license key for an email.

    A new email gets a new free key (201) returned in the body and sent by
    email. An email that already has a key gets 200 with ``existing: true``;
    its key is re-sent by email but not echoed back.

    Rate limit: 3 per hour per IP.
    """
    result = await licenses.create_free_key(body.email)
    user = result.user

    background_tasks.add_task(
        send_license_key_email,
        to_email=body.email,
        license_key=user.license_key,
        tier=user.tier,
    )

    if result.existing:
        response.status_code = 200
        return DataResponse(
            data=FreeKeyResponse(
                license_key=None,
                tier=user.tier,
                existing=True,
                message=_EXISTING_KEY_MESSAGE,
            )
        )

    return DataResponse(
        data=FreeKeyResponse(
            license_key=user.license_key,
            tier=user.tier,
            existing=False,
            message=_NEW_KEY_MESSAGE,
        )
    )


@router.post("/validate-key")
@limiter.limit(settings.rate_limit_validate_key)
async def validate_key(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ValidateKeyRequest,
    authenticator: AuthenticatorDep,
) -> DataResponse[UserSummary]:
    """Validate a license key and return the holder's summary.

    Rate limit: 10 per minute per IP.

    Raises:
        ValidationError: If the key is not in XXXX-XXXX-XXXX-XXXX-XXXX form.
        UnauthorizedError: If no user holds the key.
    """
    if not is_valid_license_key(normalize_license_key(body.license_key)):
        raise ValidationError("Invalid license key format", field="licenseKey")

    user = await authenticator.validate(body.license_key)
    if user is None:
        raise UnauthorizedError("Invalid license key")
    return DataResponse(data=_summary(user))


@router.get("/me")
async def get_me(user: CurrentUser) -> DataResponse[UserSummary]:
    """Return the authenticated user's summary."""
    return DataResponse(data=_summary(user))
