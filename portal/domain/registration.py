# SPDX-License-Identifier: Apache-2.0

"""
Registration wizard domain logic.

The wizard is a linear four-step state machine. Each step is gated by its own
validator; moving back never validates and never clears entered data.
"""

from typing import Any, Callable, Dict, Optional
from pydantic import Field

from ..models.base import PortalModel
from ..models.entities import Beneficiary, DetailedAddress, RegistrationDraft
from ..models.enums import RegistrationStep, VerificationStatus, AccountStatus
from .validation import (
    ValidationResult,
    validate_personal_step,
    validate_address_step,
    validate_social_step,
    validate_password_step,
)

STEP_ORDER = [
    RegistrationStep.PERSONAL,
    RegistrationStep.ADDRESS,
    RegistrationStep.SOCIAL,
    RegistrationStep.PASSWORD,
]

STEP_VALIDATORS: Dict[RegistrationStep, Callable[[RegistrationDraft], ValidationResult]] = {
    RegistrationStep.PERSONAL: validate_personal_step,
    RegistrationStep.ADDRESS: validate_address_step,
    RegistrationStep.SOCIAL: validate_social_step,
    RegistrationStep.PASSWORD: validate_password_step,
}

ADDRESS_SEPARATOR = " - "


class WizardTransitionError(ValueError):
    """Raised when a wizard action is not allowed on the current step."""
    pass


def build_address(address: DetailedAddress) -> str:
    """Join governorate, city and district, skipping empty parts."""
    parts = [address.governorate, address.city, address.district]
    return ADDRESS_SEPARATOR.join(part.strip() for part in parts if part and part.strip())


class RegistrationWizard(PortalModel):
    """State of one registration wizard run."""

    step: RegistrationStep = Field(default=RegistrationStep.PERSONAL, description="Current step")
    draft: RegistrationDraft = Field(default_factory=RegistrationDraft, description="Entered data")
    field_errors: Dict[str, str] = Field(default_factory=dict, description="Errors of the last validation")
    locked_national_id: Optional[str] = Field(None, description="National ID carried over from search")
    operation_error: Optional[str] = Field(None, description="Last submission failure")

    @classmethod
    def start(cls, national_id: str) -> "RegistrationWizard":
        """Start a wizard pre-filled with the searched national ID."""
        return cls(
            draft=RegistrationDraft(national_id=national_id),
            locked_national_id=national_id,
        )

    @property
    def step_index(self) -> int:
        return STEP_ORDER.index(RegistrationStep(self.step))

    def update_draft(self, changes: Dict[str, Any]) -> ValidationResult:
        """
        Apply field changes to the draft.

        Errors previously reported for a changed field are cleared. A locked
        national ID cannot be changed.
        """
        result = ValidationResult()
        national_id = changes.get("national_id")
        if (
            self.locked_national_id is not None
            and national_id is not None
            and national_id != self.locked_national_id
        ):
            result.add("national_id", "National ID cannot be changed during registration")
            return result

        data = self.draft.model_dump()
        errors = dict(self.field_errors)
        for name, value in changes.items():
            if name == "detailed_address":
                if isinstance(value, DetailedAddress):
                    address = value.model_dump(exclude_unset=True)
                else:
                    address = dict(value)
                data["detailed_address"].update(address)
                for address_field in address:
                    errors.pop(address_field, None)
            else:
                data[name] = value
                errors.pop(name, None)

        self.draft = RegistrationDraft(**data)
        self.field_errors = errors
        return result

    def next_step(self) -> ValidationResult:
        """Validate the current step and advance when it passes."""
        current = RegistrationStep(self.step)
        if current == RegistrationStep.PASSWORD:
            raise WizardTransitionError("The password step is completed by submitting")

        result = STEP_VALIDATORS[current](self.draft)
        self.field_errors = dict(result.errors)
        if result.is_valid:
            self.step = STEP_ORDER[self.step_index + 1]
        return result

    def previous_step(self) -> bool:
        """
        Move back one step without validating.

        Returns:
            True when called on the first step, meaning the wizard is cancelled
        """
        if self.step_index == 0:
            return True

        self.step = STEP_ORDER[self.step_index - 1]
        self.field_errors = {}
        return False

    def prepare_submission(self, pin: str, confirm_pin: str) -> ValidationResult:
        """Place the PIN pair on the draft and validate the final step."""
        if RegistrationStep(self.step) != RegistrationStep.PASSWORD:
            raise WizardTransitionError("Registration can only be submitted from the password step")

        self.draft.pin = pin
        self.draft.confirm_pin = confirm_pin
        result = validate_password_step(self.draft)
        self.field_errors = dict(result.errors)
        if not result.is_valid:
            self.clear_secrets()
        return result

    def clear_secrets(self) -> None:
        self.draft.pin = ""
        self.draft.confirm_pin = ""

    def to_beneficiary(self) -> Beneficiary:
        return beneficiary_from_draft(self.draft)


def beneficiary_from_draft(draft: RegistrationDraft) -> Beneficiary:
    """Assemble the beneficiary record described by a completed draft."""
    return Beneficiary(
        national_id=draft.national_id,
        name=draft.name,
        full_name=draft.full_name,
        phone=draft.phone,
        address=build_address(draft.detailed_address),
        detailed_address=draft.detailed_address.model_copy(),
        gender=draft.gender,
        date_of_birth=draft.date_of_birth.strip() or None,
        identity_status=VerificationStatus.PENDING,
        eligibility_status=VerificationStatus.PENDING,
        account_status=AccountStatus.ACTIVE,
        profession=draft.profession,
        marital_status=draft.marital_status,
        economic_level=draft.economic_level,
        members_count=draft.members_count,
        notes=draft.notes,
    )
