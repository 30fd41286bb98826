"""
Capability Authorization

can_execute(action, context) answers "may this actor, in this context, do
this named thing". It is a pure predicate: no I/O, no clock, no mutation.
All role and tenant rules live in the POLICIES table below, so services ask
for a named action and never compare roles themselves.
"""

from dataclasses import dataclass

from estimate_core.contracts.actions import Action
from estimate_core.contracts.identity import ContractorRole, Identity
from estimate_core.errors import ForbiddenError, UnauthenticatedError

_ANY_ROLE = None
_MANAGERS = frozenset({ContractorRole.OWNER_ADMIN, ContractorRole.OFFICE})


@dataclass(frozen=True)
class ExecutionContext:
    """
    Who is acting, plus the resource they are acting on.

    identity is None for an anonymous (homeowner) caller. target_company_id
    and target_contractor_id describe the resource, when the caller knows it.
    """

    identity: Identity | None = None
    target_company_id: str | None = None
    target_contractor_id: str | None = None

    @classmethod
    def anonymous(cls) -> "ExecutionContext":
        return cls()

    @classmethod
    def for_identity(
        cls,
        identity: Identity | None,
        target_company_id: str | None = None,
        target_contractor_id: str | None = None,
    ) -> "ExecutionContext":
        return cls(
            identity=identity,
            target_company_id=target_company_id,
            target_contractor_id=target_contractor_id,
        )

    @property
    def is_homeowner(self) -> bool:
        return self.identity is None

    def targeting(
        self,
        company_id: str | None = None,
        contractor_id: str | None = None,
    ) -> "ExecutionContext":
        """Copy of this context aimed at a specific resource."""
        return ExecutionContext(
            identity=self.identity,
            target_company_id=company_id,
            target_contractor_id=contractor_id,
        )


@dataclass(frozen=True)
class Rule:
    roles: frozenset[ContractorRole] | None = _ANY_ROLE
    require_company: bool = True
    require_self_target: bool = False
    public: bool = False


POLICIES: dict[str, Rule] = {
    Action.HOMEOWNER_VIEW_ESTIMATE.value: Rule(public=True, require_company=False),
    Action.HOMEOWNER_CREATE_ESTIMATE.value: Rule(public=True, require_company=False),
    Action.CONTRACTOR_VIEW_PROFILE.value: Rule(require_company=False),
    Action.CONTRACTOR_VIEW_ESTIMATES.value: Rule(),
    Action.CONTRACTOR_EDIT_ESTIMATES.value: Rule(roles=_MANAGERS),
    Action.COMPANY_VIEW_PROFILE.value: Rule(roles=_MANAGERS),
    Action.COMPANY_UPDATE_PROFILE.value: Rule(roles=_MANAGERS),
    Action.TEAM_LIST.value: Rule(roles=frozenset({ContractorRole.OWNER_ADMIN})),
    Action.ESTIMATE_HANDOFF.value: Rule(roles=_MANAGERS),
    Action.ESTIMATE_VIEW_HANDOFF.value: Rule(),
    Action.HANDOFF_LIST_OWN.value: Rule(roles=frozenset({ContractorRole.TECH})),
    Action.HANDOFF_UPDATE_STATUS.value: Rule(
        roles=frozenset({ContractorRole.TECH}),
        require_self_target=True,
    ),
    Action.PRICING_VIEW.value: Rule(roles=_MANAGERS),
    Action.PRICING_EDIT.value: Rule(roles=_MANAGERS),
}


def _is_public(action: str) -> bool:
    rule = POLICIES.get(action)
    return rule is not None and rule.public


def can_execute(action: str | Action, context: ExecutionContext | None) -> bool:
    """
    Decide whether context may perform action.

    Unknown actions and a missing context are always denied.
    """
    if context is None:
        return False

    rule = POLICIES.get(str(action))
    if rule is None:
        return False

    if rule.public:
        return context.is_homeowner

    identity = context.identity
    if identity is None:
        return False

    if rule.require_company and not identity.is_claimed:
        return False

    if rule.roles is not None and identity.role not in rule.roles:
        return False

    if context.target_company_id is not None and context.target_company_id != identity.company_id:
        return False

    if rule.require_self_target and context.target_contractor_id != identity.contractor_id:
        return False

    return True


def require_capability(action: str | Action, context: ExecutionContext | None) -> None:
    """
    Raise unless can_execute allows the action.

    UnauthenticatedError when a contractor action has no identity behind it,
    ForbiddenError otherwise.
    """
    if can_execute(action, context):
        return

    if not _is_public(str(action)) and (context is None or context.identity is None):
        raise UnauthenticatedError()

    raise ForbiddenError()
