# SPDX-License-Identifier: Apache-2.0

"""
Portal session state machine.

A PortalSession is the single mutable context owned by one portal user. It
holds the search/profile step, the fetched beneficiary data, the edit buffer
and the registration wizard. Transitions here are pure: they never call the
backend, they only move the session between stable states.
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from pydantic import Field

from ..models.base import PortalModel, utc_now
from ..models.entities import AidPackage, Beneficiary, DetailedAddress
from ..models.enums import BadgeTone, PortalStep, ProfileTab
from ..models.responses import Notice
from .packages import PackagePartition, partition_packages
from .registration import RegistrationWizard
from .validation import ValidationResult

NO_PASSWORD_NOTICE = (
    "No password yet. You will be asked to create a 6-digit PIN "
    "the first time you save changes."
)
NOT_FOUND_NOTICE = "National ID {national_id} was not found in the database"


class SessionTransitionError(ValueError):
    """Raised when an action is not allowed in the session's current state."""
    pass


class EditBuffer(PortalModel):
    """Scratch copy of the self-service editable fields."""

    phone: str = ""
    address: str = ""
    detailed_address: DetailedAddress = Field(default_factory=DetailedAddress)


def new_session_id() -> str:
    return str(uuid.uuid4())


class PortalSession(PortalModel):
    """Search/profile flow context for one user."""

    id: str = Field(default_factory=new_session_id, description="Session identifier")
    step: PortalStep = Field(default=PortalStep.SEARCH, description="Current flow step")
    national_id: str = Field(default="", description="National ID of the last search")
    beneficiary: Optional[Beneficiary] = Field(None, description="Beneficiary being displayed")
    packages: List[AidPackage] = Field(default_factory=list, description="Packages of the beneficiary")
    auth_exists: bool = Field(default=False, description="Whether the beneficiary has a PIN")
    is_loading: bool = Field(default=False, description="An operation is in flight")
    error: Optional[str] = Field(None, description="Banner error")
    field_errors: Dict[str, str] = Field(default_factory=dict, description="Inline field errors")
    success: Optional[str] = Field(None, description="Transient success notice")
    success_expires_at: Optional[datetime] = Field(None, description="When the success notice clears")
    active_tab: ProfileTab = Field(default=ProfileTab.INFO, description="Displayed profile tab")
    is_editing: bool = Field(default=False, description="Edit mode flag")
    edit_buffer: Optional[EditBuffer] = Field(None, description="Pending contact changes")
    pin_prompt_open: bool = Field(default=False, description="PIN creation prompt visible")
    registration: Optional[RegistrationWizard] = Field(None, description="Registration wizard state")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last change timestamp")

    # Guards

    def require_step(self, *steps: PortalStep) -> None:
        if PortalStep(self.step) not in steps:
            allowed = ", ".join(step.value for step in steps)
            raise SessionTransitionError(
                f"Action not allowed in step '{PortalStep(self.step).value}' (expected {allowed})"
            )

    def require_editing(self) -> None:
        self.require_step(PortalStep.FOUND)
        if not self.is_editing or self.edit_buffer is None:
            raise SessionTransitionError("Profile is not being edited")

    # Messages

    def clear_messages(self) -> None:
        self.error = None
        self.field_errors = {}
        self.success = None
        self.success_expires_at = None

    def record_validation_failure(self, result: ValidationResult) -> None:
        self.error = result.first_error
        self.field_errors = dict(result.errors)

    def record_operation_failure(self, message: str) -> None:
        self.error = message
        self.field_errors = {}

    def dismiss_error(self) -> None:
        self.error = None
        self.field_errors = {}

    def show_success(self, message: str, now: datetime, seconds: float) -> None:
        self.success = message
        self.success_expires_at = now + timedelta(seconds=seconds)

    def expire_notice(self, now: datetime) -> bool:
        """Clear the success notice once its interval has elapsed."""
        if self.success_expires_at is not None and now >= self.success_expires_at:
            self.success = None
            self.success_expires_at = None
            return True
        return False

    # Search transitions

    def enter_found(
        self,
        national_id: str,
        beneficiary: Beneficiary,
        packages: List[AidPackage],
        auth_exists: bool
    ) -> None:
        self.step = PortalStep.FOUND
        self.national_id = national_id
        self.beneficiary = beneficiary
        self.packages = list(packages)
        self.auth_exists = auth_exists
        self.active_tab = ProfileTab.INFO
        self.is_editing = False
        self.edit_buffer = None
        self.pin_prompt_open = False

    def enter_not_found(self, national_id: str) -> None:
        self.step = PortalStep.NOT_FOUND
        self.national_id = national_id
        self.beneficiary = None
        self.packages = []
        self.auth_exists = False

    def reset(self) -> None:
        """Return to the initial search state, keeping only the identity."""
        initial = PortalSession(id=self.id, created_at=self.created_at)
        for name in PortalSession.model_fields:
            setattr(self, name, getattr(initial, name))

    def select_tab(self, tab: ProfileTab) -> None:
        self.require_step(PortalStep.FOUND)
        self.active_tab = ProfileTab(tab)

    # Registration transitions

    def start_registration(self) -> RegistrationWizard:
        self.require_step(PortalStep.NOT_FOUND)
        self.step = PortalStep.REGISTER
        self.registration = RegistrationWizard.start(self.national_id)
        self.clear_messages()
        return self.registration

    def require_registration(self) -> RegistrationWizard:
        self.require_step(PortalStep.REGISTER)
        if self.registration is None:
            raise SessionTransitionError("No registration in progress")
        return self.registration

    def complete_registration(self, message: str, now: datetime, seconds: float) -> None:
        """Discard the wizard and go back to an empty search with a notice."""
        self.reset()
        self.show_success(message, now, seconds)

    # Edit transitions

    def start_edit(self) -> EditBuffer:
        self.require_step(PortalStep.FOUND)
        self.edit_buffer = EditBuffer(**self.beneficiary.contact_fields())
        self.is_editing = True
        return self.edit_buffer

    def update_edit(self, changes: Dict[str, Any]) -> EditBuffer:
        self.require_editing()
        data = self.edit_buffer.model_dump()
        for name, value in changes.items():
            if name == "detailed_address":
                data["detailed_address"].update(value)
            else:
                data[name] = value
        self.edit_buffer = EditBuffer(**data)
        return self.edit_buffer

    def cancel_edit(self) -> None:
        self.require_editing()
        self.is_editing = False
        self.edit_buffer = None
        self.pin_prompt_open = False
        self.dismiss_error()

    def edit_changes(self) -> Dict[str, Any]:
        self.require_editing()
        return self.edit_buffer.model_dump()

    def open_pin_prompt(self) -> None:
        self.require_editing()
        self.pin_prompt_open = True

    def close_pin_prompt(self) -> None:
        self.pin_prompt_open = False
        self.dismiss_error()

    def apply_saved_edit(self) -> None:
        """Merge the edit buffer into the displayed record and leave edit mode."""
        changes = self.edit_changes()
        self.beneficiary = self.beneficiary.model_copy(
            update={
                "phone": changes["phone"],
                "address": changes["address"],
                "detailed_address": DetailedAddress(**changes["detailed_address"]),
            }
        )
        self.is_editing = False
        self.edit_buffer = None
        self.pin_prompt_open = False

    # Derived view data

    def package_partition(self) -> PackagePartition:
        return partition_packages(self.packages)

    def notices(self) -> List[Notice]:
        notices = []
        if PortalStep(self.step) == PortalStep.FOUND and not self.auth_exists and not self.is_editing:
            notices.append(Notice(kind="no_password", tone=BadgeTone.YELLOW.value, message=NO_PASSWORD_NOTICE))
        if PortalStep(self.step) == PortalStep.NOT_FOUND:
            notices.append(Notice(
                kind="not_found",
                tone=BadgeTone.ORANGE.value,
                message=NOT_FOUND_NOTICE.format(national_id=self.national_id),
            ))
        return notices

    def touch(self) -> None:
        self.updated_at = utc_now()
