"""SQLModel table models — import here so metadata is populated."""

from app.models.commitment import InvestmentCommitment  # noqa: F401
from app.models.conversation import Conversation, Message  # noqa: F401
from app.models.deal import Deal  # noqa: F401
from app.models.escrow import EscrowTransaction  # noqa: F401
from app.models.interest import DealInterest  # noqa: F401
from app.models.kyc import KycSubmission  # noqa: F401
from app.models.notification import Notification  # noqa: F401
from app.models.profile import InvestorProfile, Profile  # noqa: F401
from app.models.verification import VerificationRequest  # noqa: F401
