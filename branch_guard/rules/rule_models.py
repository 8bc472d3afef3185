# AGPL-3.0 License

"""
Schema of the rule configuration document.

Each rule carries a ``check_type`` tag selecting one of five check
implementations; the ``config`` block is validated against that type.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_RULES = 20


class PathFilter(BaseModel):
    include: list[str] = Field(min_length=1)
    exclude: list[str] = Field(default_factory=list)


class RuleTrigger(BaseModel):
    branches: list[str] = Field(min_length=1)
    paths: PathFilter


class FailureMessage(BaseModel):
    """Operator-provided replacement for the title/summary of a failing check."""
    title: Optional[str] = None
    summary: Optional[str] = None


class RuleBase(BaseModel):
    name: str = Field(pattern=r"^[a-z0-9-]+$")
    description: str
    on: RuleTrigger
    failure_message: Optional[FailureMessage] = None
    notify: bool = True


# --- per check type config ---

class FilePresenceConfig(BaseModel):
    mode: Literal["base_subset_of_head"] = "base_subset_of_head"


class FilePairConfig(BaseModel):
    companion: Union[str, list[str]]
    mode: Literal["any", "all"] = "any"

    @field_validator("companion")
    @classmethod
    def _companion_not_empty(cls, value):
        if isinstance(value, list) and not value:
            raise ValueError("companion must list at least one file")
        return value

    @property
    def companions(self) -> list[str]:
        return [self.companion] if isinstance(self.companion, str) else list(self.companion)


class ExternalStatusConfig(BaseModel):
    required_checks: list[str] = Field(min_length=1)
    timeout_minutes: float = Field(default=30, gt=0)


class BranchAgeConfig(BaseModel):
    max_age_days: int = Field(gt=0)


class ApprovalGateConfig(BaseModel):
    required_teams: Optional[Annotated[list[str], Field(min_length=1)]] = None
    required_users: Optional[Annotated[list[str], Field(min_length=1)]] = None
    mode: Literal["any", "all"] = "any"
    request_reviewers: bool = False

    @model_validator(mode="after")
    def _requires_someone(self):
        if not self.required_teams and not self.required_users:
            raise ValueError("At least one of required_teams or required_users must be provided")
        return self


# --- rule variants ---

class FilePresenceRule(RuleBase):
    check_type: Literal["file_presence"]
    config: FilePresenceConfig = Field(default_factory=FilePresenceConfig)


class FilePairRule(RuleBase):
    check_type: Literal["file_pair"]
    config: FilePairConfig


class ExternalStatusRule(RuleBase):
    check_type: Literal["external_status"]
    config: ExternalStatusConfig


class BranchAgeRule(RuleBase):
    check_type: Literal["branch_age"]
    config: BranchAgeConfig


class ApprovalGateRule(RuleBase):
    check_type: Literal["approval_gate"]
    config: ApprovalGateConfig


Rule = Annotated[
    Union[FilePresenceRule, FilePairRule, ExternalStatusRule, BranchAgeRule, ApprovalGateRule],
    Field(discriminator="check_type"),
]


class RuleConfig(BaseModel):
    rules: list[Rule] = Field(min_length=1, max_length=MAX_RULES)

    @model_validator(mode="after")
    def _unique_names(self):
        seen = set()
        for rule in self.rules:
            if rule.name in seen:
                raise ValueError(f"Duplicate rule name: {rule.name}")
            seen.add(rule.name)
        return self
