from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from typing_extensions import Annotated

# Collision-resistant job ids issued by the front end
CUID_PATTERN = r"^[cC][^\s-]{8,}$"

DEFAULT_PARTY_PLACEHOLDER = "Enter Party Name"


class ReportType(str, Enum):
    LD_COMMITTEES = "ldCommittees"
    DESIGNATED_PETITION = "designatedPetition"
    VOTER_LIST = "voterList"
    ABSENTEE_REPORT = "absenteeReport"


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class CommitteeMember(_Model):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: str = ""


class CommitteeSection(_Model):
    city_town: str = Field(alias="cityTown")
    leg_district: int = Field(alias="legDistrict")
    committees: Dict[str, List[CommitteeMember]]

    @property
    def section_key(self) -> str:
        return f"{self.city_town}|{self.leg_district}"

    @property
    def label(self) -> str:
        """Rochester is broken out by legislative district, towns by name."""
        if self.city_town.upper() == "ROCHESTER":
            return f"LD {self.leg_district:02d}"
        return self.city_town


class CompoundFields(_Model):
    name: bool = True
    address: bool = True


class XlsxConfig(_Model):
    include_compound_fields: CompoundFields = Field(default_factory=CompoundFields, alias="includeCompoundFields")
    column_order: Optional[List[str]] = Field(default=None, alias="columnOrder")
    column_headers: Optional[Dict[str, str]] = Field(default=None, alias="columnHeaders")


class Candidate(_Model):
    name: str = Field(min_length=1)
    office: str = Field(min_length=1)
    address: str = Field(min_length=1)


class VacancyAppointment(_Model):
    name: str = Field(min_length=1)
    address: str = Field(min_length=1)


class DesignatedPetitionPayload(_Model):
    candidates: List[Candidate] = Field(min_length=1)
    vacancy_appointments: List[VacancyAppointment] = Field(alias="vacancyAppointments", min_length=1)
    party: str
    election_date: str = Field(alias="electionDate")
    num_pages: int = Field(alias="numPages", ge=1, le=25)

    @field_validator("party")
    @classmethod
    def _party_required(cls, value: str) -> str:
        if not value.strip() or value.strip() == DEFAULT_PARTY_PLACEHOLDER:
            raise ValueError("Party is required")
        return value

    @field_validator("election_date")
    @classmethod
    def _election_date_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Election date is required")
        return value


class AbsenteeReportPayload(_Model):
    csv_file_key: str = Field(alias="csvFileKey", min_length=1)


class _JobBase(_Model):
    """Fields every job carries once the front end has enriched the request."""

    job_id: str = Field(alias="jobId", pattern=CUID_PATTERN)
    author: str = Field(alias="reportAuthor", min_length=1)
    name: Optional[str] = None
    description: Optional[str] = None


class LdCommitteesJob(_JobBase):
    type: Literal["ldCommittees"]
    format: Literal["pdf", "xlsx"] = "pdf"
    payload: List[CommitteeSection]
    include_fields: List[str] = Field(default_factory=list, alias="includeFields")
    xlsx_config: Optional[XlsxConfig] = Field(default=None, alias="xlsxConfig")


class DesignatedPetitionJob(_JobBase):
    type: Literal["designatedPetition"]
    format: Literal["pdf"] = "pdf"
    payload: DesignatedPetitionPayload


class VoterListJob(_JobBase):
    type: Literal["voterList"]
    format: Literal["xlsx"] = "xlsx"
    payload: List[Dict[str, Any]]
    include_fields: List[str] = Field(default_factory=list, alias="includeFields")
    xlsx_config: Optional[XlsxConfig] = Field(default=None, alias="xlsxConfig")


class AbsenteeReportJob(_JobBase):
    type: Literal["absenteeReport"]
    format: Literal["xlsx"] = "xlsx"
    payload: AbsenteeReportPayload


Job = Annotated[
    Union[LdCommitteesJob, DesignatedPetitionJob, VoterListJob, AbsenteeReportJob],
    Field(discriminator="type"),
]

JOB_ADAPTER: TypeAdapter = TypeAdapter(Job)


def parse_job(data: Any) -> Job:
    """Validate a decoded request body into its job variant."""
    return JOB_ADAPTER.validate_python(data)


class WebhookPayload(_Model):
    success: bool
    job_id: str = Field(alias="jobId")
    type: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    def to_bytes(self) -> bytes:
        """The exact bytes that are signed and sent."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


class JobSubmissionResponse(_Model):
    success: bool
    message: str
    num_jobs: int = Field(alias="numJobs", ge=0)


class HealthStatus(_Model):
    status: str
    pending: int
    running: int
