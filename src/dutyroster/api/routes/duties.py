"""Duty API routes: generation, roster views, grab and drop."""

from datetime import date, datetime, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dutyroster.api.deps import get_current_user, get_notifier, get_now
from dutyroster.config import get_settings
from dutyroster.database import get_db
from dutyroster.duties import lifecycle
from dutyroster.duties.errors import RosterError
from dutyroster.duties.generator import generate
from dutyroster.duties.notifier import Notifier
from dutyroster.duties.permissions import Action, can
from dutyroster.duties.timing import generation_window, week_start
from dutyroster.models.duty import Duty
from dutyroster.models.user import User
from dutyroster.schemas.duty import (
    MAX_WEEKS,
    DropRequest,
    DutyActionResponse,
    DutyRead,
    GenerateRequest,
    GenerateResponse,
    GrabRequest,
)

router = APIRouter(prefix="/api/duties", tags=["duties"])


def _http_error(exc: RosterError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def _first_week(duties: list[Duty]) -> date | None:
    return week_start(duties[0].date) if duties else None


@router.get("", response_model=list[DutyRead])
async def get_roster(
    start_date: date | None = None,
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    session: AsyncSession = Depends(get_db),
) -> list[Duty]:
    """Get every duty in the week starting at `start_date` (default: this week)."""
    try:
        start, end = generation_window(start_date or week_start(now.date()), 1)
    except RosterError as e:
        raise _http_error(e) from None
    return await lifecycle.list_duties(session, start, end)


@router.post("/generate", response_model=GenerateResponse, status_code=201)
async def generate_duties(
    body: GenerateRequest,
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    session: AsyncSession = Depends(get_db),
) -> GenerateResponse:
    """Materialize timeslot templates into duties for `num_weeks` weeks.

    Admin only. Existing duties in the range are left untouched.
    """
    if not can(user, Action.GENERATE):
        raise HTTPException(status_code=403, detail="You are not authorized to access this page.")

    settings = get_settings()
    start = body.start_date or week_start(now.date())
    try:
        start, end = generation_window(start, body.num_weeks or settings.default_num_weeks)
        result = await generate(session, start, end)
    except RosterError as e:
        raise _http_error(e) from None

    return GenerateResponse(
        message="Duties successfully generated!",
        start_date=result.start_date,
        end_date=result.end_date,
        created=result.created,
        skipped=result.skipped,
    )


@router.get("/mine", response_model=list[DutyRead])
async def get_my_duties(
    start_date: date | None = None,
    weeks: int = Query(default=4, ge=1, le=MAX_WEEKS),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    session: AsyncSession = Depends(get_db),
) -> list[Duty]:
    """Get the current user's duties from `start_date` (default: today) for `weeks` weeks."""
    try:
        start, end = generation_window(start_date or now.date(), weeks)
    except RosterError as e:
        raise _http_error(e) from None
    return await lifecycle.my_duties(session, user, start, end)


@router.get("/grabable", response_model=list[DutyRead])
async def get_grabable_duties(
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    session: AsyncSession = Depends(get_db),
) -> list[Duty]:
    """Get duties the current user can grab right now."""
    return await lifecycle.grabable_duties(session, user, now)


@router.post("/grab", response_model=DutyActionResponse)
async def grab_duties(
    body: GrabRequest,
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    session: AsyncSession = Depends(get_db),
) -> DutyActionResponse:
    """Grab a batch of duties. Either every duty is grabbed or none is."""
    try:
        duties = await lifecycle.grab(session, body.duty_ids, user, now)
    except RosterError as e:
        raise _http_error(e) from None

    return DutyActionResponse(
        message="Duty successfully grabbed!",
        start_date=_first_week(duties),
        duties=[DutyRead.model_validate(d) for d in duties],
    )


@router.post("/drop", response_model=DutyActionResponse)
async def drop_duties(
    body: DropRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    notifier: Notifier = Depends(get_notifier),
    session: AsyncSession = Depends(get_db),
) -> DutyActionResponse:
    """Drop a batch of duties to anyone (user_id 0) or offer them to one user.

    Either every duty is dropped or none is. Recipients are notified in the
    background once the drop is committed.
    """
    lead = timedelta(hours=get_settings().drop_lead_hours)
    try:
        outcome = await lifecycle.drop(session, body.duty_ids, user, body.user_id, now, lead)
    except RosterError as e:
        raise _http_error(e) from None

    background_tasks.add_task(notifier.notify, outcome.duties, outcome.recipients)

    return DutyActionResponse(
        message="Duty successfully dropped!",
        start_date=_first_week(outcome.duties),
        duties=[DutyRead.model_validate(d) for d in outcome.duties],
    )
