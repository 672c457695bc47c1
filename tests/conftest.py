"""
Pytest configuration and fixtures for Voter Report Backend tests.
"""

import json
import os
import threading

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["CALLBACK_URL"] = "http://frontend.test/api/reportComplete"
os.environ["R2_BUCKET_NAME"] = "test-reports"
os.environ["R2_ACCESS_KEY_ID"] = "test-access-key"
os.environ["R2_SECRET_ACCESS_KEY"] = "test-secret-key"
os.environ["R2_ENDPOINT_URL"] = "http://storage.test"
os.environ["VERIFY_REQUEST_SIGNATURES"] = "false"

from voter_report_backend.errors import StorageError
from voter_report_backend.job_queue import JobQueue
from voter_report_backend.main import app, get_job_queue
from voter_report_backend.webhooks import WebhookNotifier

TEST_SECRET = "test-webhook-secret"
CALLBACK_URL = "http://frontend.test/api/reportComplete"


class RecordingDelivery:
    """Delivery strategy that keeps every callback instead of posting it."""

    def __init__(self):
        self.calls = []
        self._lock = threading.Lock()

    def deliver(self, url, body, headers):
        with self._lock:
            self.calls.append({"url": url, "body": body, "headers": dict(headers)})

    @property
    def bodies(self):
        with self._lock:
            return [json.loads(call["body"]) for call in self.calls]


class FakeStorage:
    """In-memory stand-in for ObjectStorage."""

    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.uploads = {}

    def upload_bytes(self, data, key, content_type):
        self.uploads[key] = {"data": data, "content_type": content_type}
        return key

    def download_bytes(self, key):
        if key not in self.objects:
            raise StorageError(f"Failed to download {key} from file storage: NoSuchKey")
        return self.objects[key]

    def download_text(self, key, encoding="utf-8-sig"):
        return self.download_bytes(key).decode(encoding)


class FakePdfRenderer:
    """Returns the HTML it was given, wrapped in a fake PDF header."""

    def __init__(self):
        self.rendered = []

    def render(self, html):
        self.rendered.append(html)
        return b"%PDF-1.4 fake\n" + html.encode("utf-8")


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def notifier(delivery):
    return WebhookNotifier(callback_url=CALLBACK_URL, secret=TEST_SECRET, delivery=delivery)


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_pdf_renderer():
    return FakePdfRenderer()


@pytest.fixture
def test_queue(notifier):
    """A queue whose handlers only return a key, so API tests never touch storage."""
    queue = JobQueue(
        handlers={
            "ldCommittees": lambda job: f"{job.author}/committeeReport/{job.job_id}.pdf",
            "designatedPetition": lambda job: f"{job.author}/designatedPetition/{job.job_id}.pdf",
            "voterList": lambda job: f"{job.author}/voterList/{job.job_id}.xlsx",
            "absenteeReport": lambda job: f"{job.author}/absenteeReport/{job.job_id}.xlsx",
        },
        notifier=notifier,
        max_workers=2,
    )
    yield queue
    queue.shutdown(wait=True)


@pytest.fixture
def client(test_queue):
    """Create a test client for the FastAPI app with the test queue injected."""
    app.dependency_overrides[get_job_queue] = lambda: test_queue
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def committee_member():
    def build(name="Jane Doe", **extra):
        member = {
            "name": name,
            "address": "12 Main St",
            "city": "Rochester",
            "state": "NY",
            "zip": "14620",
            "phone": "585-555-0100",
        }
        member.update(extra)
        return member

    return build


@pytest.fixture
def ld_committees_job(committee_member):
    return {
        "type": "ldCommittees",
        "jobId": "clx1a2b3c4d5e6f7g8",
        "reportAuthor": "jane.doe@example.com",
        "name": "Committee Roster",
        "format": "pdf",
        "payload": [
            {
                "cityTown": "ROCHESTER",
                "legDistrict": 5,
                "committees": {
                    "1": [committee_member("Alice Adams"), committee_member("Bob Brown")],
                    "2": [],
                    "7": [committee_member("Carol Clark")],
                },
            },
            {"cityTown": "BRIGHTON", "legDistrict": 16, "committees": {"3": []}},
        ],
    }


@pytest.fixture
def petition_job():
    return {
        "type": "designatedPetition",
        "jobId": "clx9z8y7x6w5v4u3t2",
        "reportAuthor": "organizer",
        "format": "pdf",
        "payload": {
            "candidates": [{"name": "Pat Smith", "office": "County Committee, ED 12", "address": "1 Elm St, Rochester"}],
            "vacancyAppointments": [
                {"name": "Lee Jones", "address": "2 Oak St"},
                {"name": "Sam Lee", "address": "3 Pine St"},
                {"name": "Kim Park", "address": "4 Ash St"},
            ],
            "party": "Democratic",
            "electionDate": "June 23, 2026",
            "numPages": 2,
        },
    }


ABSENTEE_HEADER = (
    "Ward,Town,Party,Delivery Method,St.Sen,St.Leg,Other1,"
    "Ballot Last Issued Date,Ballot Last Received Date,Last Received Delivery Status"
)


@pytest.fixture
def absentee_csv():
    rows = [
        "045,Brighton,DEM,Mail,56,136,22,10/01/2026,10/05/2026,Received",
        "45,Brighton,REP,Mail,56,136,22,10/01/2026,,",
        "016,Rochester,dem,In Person,55,137,21,10/02/2026,10/06/2026,Received",
        "016,Rochester,XYZ,In Person,55,137,21,,,",
        ",Greece,BLK,Mail,62,134,,10/03/2026,10/05/2026,Received",
    ]
    return "\n".join([ABSENTEE_HEADER] + rows) + "\n"
