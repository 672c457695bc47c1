"""
Voter Report Backend - asynchronous report generation service

This package provides a FastAPI-based web service that turns structured
requests from the voter file front end into finished documents:

- Paginated committee rosters (PDF) and committee/voter list workbooks
- Designating petition sheets (PDF)
- Absentee ballot statistics workbooks built from county CSV exports

Requests are accepted immediately and processed on a bounded worker pool.
Each finished or failed job is reported back through a signed webhook.

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - job_queue: Bounded worker pool and completion notifications
    - handlers: One pipeline per report type
    - layout: Bin-packing of grouped records onto fixed-capacity pages
    - statistics: Grouped absentee ballot statistics and daily return curve
    - signing / webhooks: HMAC-SHA256 signatures and callback delivery
    - rendering / workbooks: HTML/PDF and spreadsheet output
    - storage: S3-compatible object storage
    - configuration: Config loading and merging logic

Usage:
    Run the API server with:
        uvicorn voter_report_backend.main:app --host 0.0.0.0 --port 8080
"""
