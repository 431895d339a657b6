from .user import User
from .squad import Squad
from .squad_membership import SquadMembership
from .call_proposal import (
    CallProposal,
    TYPE_NEW,
    TYPE_EDIT,
    TYPE_DELETE,
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_CANCELED,
)
from .call_vote import CallVote, VOTE_YES, VOTE_NO
from .call_job import ScheduledCallJob
from .call_reminder import SquadCallReminder
from .chat_message import SquadChatMessage
from .notification import Notification
from .email_log import EmailLog
