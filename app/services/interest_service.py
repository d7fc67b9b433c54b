"""
Introduction (interest) workflow.

An investor's interest in a deal moves ``pending → accepted | rejected``
exactly once, and only the operator who owns the deal may move it.  The
transition is a conditional UPDATE on ``status = 'pending'``, so two
concurrent accepts cannot both succeed; the loser is told the current
status.
"""

import logging
from typing import Optional, Tuple
from uuid import UUID

from email_validator import EmailNotValidError, validate_email

from app.core.auth import CurrentUser
from app.core.email import email_template, escape
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from app.models.deal import Deal
from app.models.interest import DealInterest, InterestStatus
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.interest import InterestCreate
from app.services.notifier import Notifier, lookup_for_notification, site_url

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class InterestService:
    def __init__(
        self,
        interest_repo: InterestRepository,
        deal_repo: DealRepository,
        profile_repo: ProfileRepository,
        notifier: Notifier,
    ):
        self._interest_repo = interest_repo
        self._deal_repo = deal_repo
        self._profile_repo = profile_repo
        self._notifier = notifier

    async def create_interest(
        self,
        user: CurrentUser,
        interest_in: InterestCreate,
        user_agent: Optional[str] = None,
    ) -> DealInterest:
        if interest_in.deal_id is None:
            raise BadRequestException("deal_id is required")
        email = _clean(interest_in.email)
        if email:
            try:
                validate_email(email, check_deliverability=False)
            except EmailNotValidError:
                raise BadRequestException("email looks invalid")

        deal = await self._deal_repo.get(interest_in.deal_id)
        if not deal:
            raise NotFoundException("Deal", interest_in.deal_id)

        interest = await self._interest_repo.create(
            DealInterest(
                deal_id=deal.id,
                user_id=user.id,
                name=_clean(interest_in.name),
                email=email,
                message=_clean(interest_in.message),
                user_agent=user_agent[:512] if user_agent else None,
            )
        )
        logger.info("Investor %s requested an intro on deal %s", user.id, deal.id)
        self._notify_interest_created(user, deal, interest)
        return interest

    async def accept(self, user: CurrentUser, interest_id: UUID) -> DealInterest:
        interest, deal = await self._transition(user, interest_id, InterestStatus.ACCEPTED)

        self._notifier.notify_user(
            interest.user_id,
            "intro_accepted",
            "Introduction accepted!",
            f'Your introduction to "{deal.title}" has been accepted. '
            "You can now message the operator.",
            link="/messages",
        )
        investor = await lookup_for_notification(self._profile_repo, interest.user_id)
        if investor and investor.email:
            self._notifier.send_email(
                investor.email,
                f"Your introduction to {deal.title} was accepted",
                email_template(
                    title="Introduction Accepted",
                    body=(
                        f"Great news! The operator of <strong>{escape(deal.title)}</strong> "
                        "has accepted your introduction request. You can now communicate "
                        "directly."
                    ),
                    cta_text="View Messages",
                    cta_url=site_url("/messages"),
                ),
            )
        return interest

    async def reject(self, user: CurrentUser, interest_id: UUID) -> DealInterest:
        interest, deal = await self._transition(user, interest_id, InterestStatus.REJECTED)
        self._notifier.notify_user(
            interest.user_id,
            "intro_rejected",
            "Introduction declined",
            f'Your introduction request for "{deal.title}" was declined by the operator.',
            link=f"/deals/{deal.id}",
        )
        return interest

    async def _transition(
        self, user: CurrentUser, interest_id: UUID, to_status: InterestStatus
    ) -> Tuple[DealInterest, Deal]:
        interest = await self._interest_repo.get(interest_id)
        if not interest:
            raise NotFoundException("Interest", interest_id)

        deal = await self._deal_repo.get(interest.deal_id)
        if not deal or deal.operator_id != user.id:
            raise ForbiddenException()

        if interest.status != InterestStatus.PENDING:
            raise ConflictException(f"Interest is already {interest.status.value}")
        if not await self._interest_repo.transition(interest_id, to_status):
            current = await self._interest_repo.get(interest_id)
            raise ConflictException(f"Interest is already {current.status.value}")

        interest.status = to_status
        logger.info("Operator %s %s interest %s", user.id, to_status.value, interest_id)
        return interest, deal

    def _notify_interest_created(
        self, user: CurrentUser, deal: Deal, interest: DealInterest
    ) -> None:
        investor_email = interest.email or user.email
        investor_name = interest.name or "An investor"
        deal_url = site_url(f"/deals/{deal.id}")

        self._notifier.send_email(
            investor_email,
            "Your intro request was sent",
            email_template(
                title="Intro Request Sent",
                body=(
                    "Your request for an introduction on "
                    f"<strong>{escape(deal.title)}</strong> has been submitted. "
                    "We'll be in touch soon."
                ),
                cta_text="View Deal",
                cta_url=deal_url,
            ),
        )

        lines = [
            f"<strong>Investor:</strong> {escape(investor_name)}",
            f"<strong>Email:</strong> {escape(investor_email)}",
            f"<strong>Deal:</strong> {escape(deal.title)}",
            f"<strong>Message:</strong> {escape(interest.message)}" if interest.message else "",
        ]
        self._notifier.send_admin_email(
            f"New intro request: {deal.title}",
            email_template(
                title="New Intro Request",
                body="<br/>".join(line for line in lines if line),
                cta_text="View Deal",
                cta_url=deal_url,
            ),
        )
