from fastapi import APIRouter, BackgroundTasks, Depends, Request, status

from app.api.dependencies import get_notifier, get_sequencer
from app.core.rate_limit import rate_limit
from app.schemas.enrollment import EnrollRequest, EnrollResponse
from app.services.enrollment_service import EnrollmentSequencer
from app.services.notification_service import NotificationTrigger
from app.services.rate_limiter import RateLimitScope

router = APIRouter(tags=["Enrollment"])


@router.post(
    "/enroll",
    response_model=EnrollResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(RateLimitScope.NOTIFICATION))],
)
async def enroll(
    payload: EnrollRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    sequencer: EnrollmentSequencer = Depends(get_sequencer),
    notifier: NotificationTrigger = Depends(get_notifier),
) -> EnrollResponse:
    """Add an email to the waitlist and return its position.

    The confirmation email is scheduled only after the enrollment has
    committed and runs after the response is produced; its failure is
    logged and never changes this response.

    Raises:
        DuplicateEnrollmentError: 400 when the email is already enrolled.
        StoreUnavailableError: 500 when the store fails.
    """
    record = await sequencer.enroll(str(payload.email), payload.name)

    if request.app.state.settings.email.confirmation_enabled:
        background_tasks.add_task(notifier.notify, record)

    return EnrollResponse(position=record.position)
