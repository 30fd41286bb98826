"""
Named actions understood by the capability layer.

Action names are plain strings on the wire; this enum is the catalogue of
the ones that exist. Anything not listed here is denied.
"""

from enum import Enum


class Action(str, Enum):
    # Public (homeowner) actions
    HOMEOWNER_VIEW_ESTIMATE = "homeowner:view_estimate"
    HOMEOWNER_CREATE_ESTIMATE = "homeowner:create_estimate"

    # Contractor self-service
    CONTRACTOR_VIEW_PROFILE = "contractor:view_profile"
    CONTRACTOR_VIEW_ESTIMATES = "contractor:view_estimates"
    CONTRACTOR_EDIT_ESTIMATES = "contractor:edit_estimates"

    # Company administration
    COMPANY_VIEW_PROFILE = "company:view_profile"
    COMPANY_UPDATE_PROFILE = "company:update_profile"
    TEAM_LIST = "team:list"

    # Handoff workflow
    ESTIMATE_HANDOFF = "estimate:handoff"
    ESTIMATE_VIEW_HANDOFF = "estimate:view_handoff"
    HANDOFF_LIST_OWN = "handoff:list_own"
    HANDOFF_UPDATE_STATUS = "handoff:update_status"

    # Pricing overrides
    PRICING_VIEW = "pricing:view"
    PRICING_EDIT = "pricing:edit"

    def __str__(self) -> str:
        return self.value
