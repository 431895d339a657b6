from sqlalchemy import func, text, CheckConstraint, Index
from squadcall.extensions import db
from squadcall.utils.helpers import isoformat_utc

# Keep simple text+CHECK for evolvable states (no DB enum migration pain)
TYPE_NEW = "new"
TYPE_EDIT = "edit"
TYPE_DELETE = "delete"

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELED = "canceled"
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

_ACTIVE_PREDICATE = text("status IN ('pending','confirmed')")

class CallProposal(db.Model):
    __tablename__ = "call_proposals"

    id = db.Column(db.Integer, primary_key=True)
    squad_id = db.Column(db.Integer, db.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False, index=True)

    proposal_type = db.Column(db.String(10), nullable=False, server_default=TYPE_NEW)
    status = db.Column(db.String(12), nullable=False, server_default=STATUS_PENDING, index=True)

    # Empty for delete proposals
    start_at = db.Column(db.DateTime(timezone=True), nullable=True)
    timezone = db.Column(db.String(64), nullable=False, server_default="")
    location = db.Column(db.String(500), nullable=False, server_default="")
    title = db.Column(db.String(255), nullable=False, server_default="")

    # The confirmed call an edit/delete targets
    original_call_id = db.Column(db.Integer, db.ForeignKey("call_proposals.id", ondelete="SET NULL"), nullable=True, index=True)

    # Denormalized tallies; only ever written under the version guard together with the vote row
    yes_count = db.Column(db.Integer, nullable=False, default=0)
    no_count = db.Column(db.Integer, nullable=False, default=0)
    # Frozen at creation: floor(total_members / 2) + 1
    required_votes = db.Column(db.Integer, nullable=False)
    total_members = db.Column(db.Integer, nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("proposal_type IN ('new','edit','delete')", name="ck_call_proposals_type_valid"),
        CheckConstraint("status IN ('pending','confirmed','canceled')", name="ck_call_proposals_status_valid"),
        CheckConstraint("yes_count >= 0 AND no_count >= 0", name="ck_call_proposals_tally_non_negative"),
        # At most one pending/confirmed proposal per squad
        Index(
            "uq_call_proposals_active_squad",
            "squad_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return (
            f"<CallProposal id={self.id} squad_id={self.squad_id} type={self.proposal_type!r} "
            f"status={self.status!r} yes={self.yes_count}/{self.required_votes}>"
        )

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            squadId=self.squad_id,
            proposalType=self.proposal_type,
            status=self.status,
            startDateTimeUtc=isoformat_utc(self.start_at) or "",
            timezone=self.timezone or "",
            location=self.location or "",
            title=self.title or "",
            originalCallId=self.original_call_id,
            yesCount=self.yes_count,
            noCount=self.no_count,
            requiredVotes=self.required_votes,
            totalMembers=self.total_members,
            createdByUserId=self.created_by_user_id,
            createdAt=isoformat_utc(self.created_at),
            updatedAt=isoformat_utc(self.updated_at),
            confirmedAt=isoformat_utc(self.confirmed_at),
        )
