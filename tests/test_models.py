"""
Tests for job descriptor models.
"""

import pytest
from pydantic import ValidationError

from voter_report_backend.models import (
    AbsenteeReportJob,
    CommitteeSection,
    DesignatedPetitionJob,
    JobSubmissionResponse,
    LdCommitteesJob,
    parse_job,
)


class TestParseJob:
    """Tests for the tagged job union."""

    def test_dispatch_on_type(self, ld_committees_job, petition_job):
        assert isinstance(parse_job(ld_committees_job), LdCommitteesJob)
        assert isinstance(parse_job(petition_job), DesignatedPetitionJob)

    def test_absentee_job(self):
        job = parse_job(
            {"type": "absenteeReport", "jobId": "cabc12345678", "reportAuthor": "a", "payload": {"csvFileKey": "k.csv"}}
        )
        assert isinstance(job, AbsenteeReportJob)
        assert job.payload.csv_file_key == "k.csv"
        assert job.format == "xlsx"

    def test_jobs_are_immutable(self, ld_committees_job):
        job = parse_job(ld_committees_job)
        with pytest.raises(ValidationError):
            job.author = "someone else"

    def test_job_id_pattern(self, ld_committees_job):
        for job_id in ["", "x12345678901", "c123", "c1234 5678"]:
            ld_committees_job["jobId"] = job_id
            with pytest.raises(ValidationError):
                parse_job(ld_committees_job)

    def test_petition_format_is_pdf_only(self, petition_job):
        petition_job["format"] = "xlsx"
        with pytest.raises(ValidationError):
            parse_job(petition_job)

    def test_petition_page_bounds(self, petition_job):
        petition_job["payload"]["numPages"] = 0
        with pytest.raises(ValidationError):
            parse_job(petition_job)
        petition_job["payload"]["numPages"] = 25
        assert parse_job(petition_job).payload.num_pages == 25

    def test_committee_member_extra_fields_kept(self, ld_committees_job):
        ld_committees_job["payload"][0]["committees"]["1"][0]["email"] = "a@example.com"
        member = parse_job(ld_committees_job).payload[0].committees["1"][0]
        assert member.model_dump()["email"] == "a@example.com"


class TestCommitteeSection:
    def test_labels(self):
        rochester = CommitteeSection(cityTown="ROCHESTER", legDistrict=5, committees={})
        town = CommitteeSection(cityTown="PITTSFORD", legDistrict=11, committees={})

        assert rochester.label == "LD 05"
        assert town.label == "PITTSFORD"
        assert rochester.section_key == "ROCHESTER|5"


class TestResponses:
    def test_submission_response_uses_camel_case(self):
        response = JobSubmissionResponse(success=True, message="ok", num_jobs=3)
        assert response.model_dump(by_alias=True) == {"success": True, "message": "ok", "numJobs": 3}
