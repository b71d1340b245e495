"""Approval stages, roles and the role-to-stage tables.

Stage sequence:

    0 Submitted
    1 Pending Lecturer Approval   (Lecturer)
    2 Pending HOD Approval        (HOD)
    3 Pending Dean Approval       (Dean)
    4 Pending VC Approval         (VC)
    5 Approved                    terminal
    6 Rejected                    terminal

Approving moves a document exactly one stage forward. Rejecting from any
actionable stage jumps straight to Rejected. Submitters who already hold an
approver role start past their own stage.

The table is validated once at import time and is read-only afterwards.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Sequence, Set, Union

from .errors import InvalidRoleError


class Role(str, Enum):
    """Account roles."""

    STUDENT = "Student"
    LECTURER = "Lecturer"
    HOD = "HOD"
    DEAN = "Dean"
    VC = "VC"
    STAFF = "Staff"
    ADMIN = "Admin"


class Decision(str, Enum):
    """Decisions an approver can take on a document."""

    APPROVE = "approve"
    REJECT = "reject"


class Stage(NamedTuple):
    """One named step in the approval sequence."""

    ordinal: int
    name: str
    required_approver_role: Optional[Role] = None
    terminal: bool = False

    @property
    def actionable(self) -> bool:
        return self.required_approver_role is not None


SUBMITTED = "Submitted"
APPROVED = "Approved"
REJECTED = "Rejected"

STAGES: tuple[Stage, ...] = (
    Stage(0, SUBMITTED),
    Stage(1, "Pending Lecturer Approval", Role.LECTURER),
    Stage(2, "Pending HOD Approval", Role.HOD),
    Stage(3, "Pending Dean Approval", Role.DEAN),
    Stage(4, "Pending VC Approval", Role.VC),
    Stage(5, APPROVED, terminal=True),
    Stage(6, REJECTED, terminal=True),
)

# Where a submission starts, keyed by the submitter's role.
INITIAL_ORDINAL_BY_ROLE: Dict[Role, int] = {
    Role.STUDENT: 1,
    Role.LECTURER: 2,
    Role.HOD: 3,
    Role.DEAN: 4,
    Role.VC: 5,
}

# Staff, Admin and any other role without an entry above.
DEFAULT_INITIAL_ORDINAL = 1


def validate_stage_table(stages: Sequence[Stage]) -> None:
    """Check the structural invariants of a stage table.

    Raises:
        ValueError: If the table is malformed
    """
    if not stages:
        raise ValueError("Stage table is empty")

    for index, stage in enumerate(stages):
        if stage.ordinal != index:
            raise ValueError(
                f"Stage '{stage.name}' has ordinal {stage.ordinal}, expected {index}"
            )

    names = [stage.name for stage in stages]
    if len(set(names)) != len(names):
        raise ValueError("Stage names must be unique")

    for name in (APPROVED, REJECTED):
        matches = [stage for stage in stages if stage.name == name]
        if len(matches) != 1:
            raise ValueError(f"Exactly one '{name}' stage is required, found {len(matches)}")
        if not matches[0].terminal or matches[0].actionable:
            raise ValueError(f"Stage '{name}' must be terminal with no approver role")

    if stages[0].terminal or stages[0].actionable:
        raise ValueError("The initial stage must be neither terminal nor actionable")

    seen_roles: Set[Role] = set()
    for stage in stages[1:]:
        if stage.terminal:
            if stage.actionable:
                raise ValueError(f"Terminal stage '{stage.name}' cannot have an approver role")
            continue
        if not stage.actionable:
            raise ValueError(f"Stage '{stage.name}' needs an approver role")
        if stage.required_approver_role in seen_roles:
            raise ValueError(
                f"Role {stage.required_approver_role.value} approves more than one stage"
            )
        seen_roles.add(stage.required_approver_role)

    if not seen_roles:
        raise ValueError("At least one approver stage is required")

    last_actionable = max(stage.ordinal for stage in stages if stage.actionable)
    if last_actionable + 1 >= len(stages) or stages[last_actionable + 1].name != APPROVED:
        raise ValueError("The stage after the last approver stage must be 'Approved'")


validate_stage_table(STAGES)

# Lookup tables
STAGE_BY_NAME: Dict[str, Stage] = {}
STAGE_BY_APPROVER_ROLE: Dict[Role, Stage] = {}

for stage in STAGES:
    STAGE_BY_NAME[stage.name] = stage
    if stage.required_approver_role is not None:
        STAGE_BY_APPROVER_ROLE[stage.required_approver_role] = stage

APPROVED_ORDINAL = STAGE_BY_NAME[APPROVED].ordinal
REJECTED_ORDINAL = STAGE_BY_NAME[REJECTED].ordinal

TERMINAL_STATUSES: Set[str] = {stage.name for stage in STAGES if stage.terminal}

# Statuses an approver can still act on
PENDING_STATUSES: Set[str] = {stage.name for stage in STAGES if stage.actionable}


def coerce_role(value: Union[Role, str]) -> Role:
    """Return the Role for a value, or raise InvalidRoleError."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise InvalidRoleError(value) from None


def get_stage(ordinal: int) -> Stage:
    """Get the stage at an ordinal."""
    if not 0 <= ordinal < len(STAGES):
        raise ValueError(f"No stage with ordinal {ordinal}")
    return STAGES[ordinal]


def stage_for_approver(role: Union[Role, str]) -> Optional[Stage]:
    """Get the stage a role approves, or None for roles outside the chain."""
    return STAGE_BY_APPROVER_ROLE.get(coerce_role(role))


def is_terminal(ordinal: int) -> bool:
    return get_stage(ordinal).terminal
