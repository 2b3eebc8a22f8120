from __future__ import annotations

import argparse
import csv
from collections import defaultdict
from datetime import date
from typing import Any

from dotenv import load_dotenv
from sqlalchemy import select

import portal.db as db_
from portal.config import get_config
from portal.models import APPLICATION_STATUSES, MAX_APPLICATIONS_PER_ENTRY, Application, Base, Candidate, User
from portal.services.activity import refresh_application_activity
from portal.utils.datetime import iso_utc_now, parse_iso_date
from portal.utils.errors import ApiError

REQUIRED = ("recruiter_email", "candidate_email", "company_name", "job_title", "application_date")


def _count(value: Any) -> int:
    s = str(value or "").strip().replace(",", "")
    if not s:
        return 1
    try:
        n = int(s)
    except ValueError as e:
        raise ValueError("applications_count must be a whole number") from e
    if not 1 <= n <= MAX_APPLICATIONS_PER_ENTRY:
        raise ValueError(f"applications_count must be between 1 and {MAX_APPLICATIONS_PER_ENTRY}")
    return n


def _read_csv_rows(path: str) -> list[dict[str, str]]:
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        return [{str(k or "").strip().lower(): str(v or "").strip() for k, v in row.items()} for row in reader]


def import_rows(session, rows: list[dict[str, str]]) -> tuple[int, list[str]]:
    users = {u.email.lower(): u for u in session.execute(select(User)).scalars()}
    candidates = {c.email.lower(): c for c in session.execute(select(Candidate)).scalars() if c.email}

    touched: dict[int, set[date]] = defaultdict(set)
    errors: list[str] = []
    created = 0
    for line, row in enumerate(rows, start=2):
        missing = [c for c in REQUIRED if not row.get(c)]
        if missing:
            errors.append(f"line {line}: missing {', '.join(missing)}")
            continue
        recruiter = users.get(row["recruiter_email"].lower())
        candidate = candidates.get(row["candidate_email"].lower())
        if recruiter is None or candidate is None:
            errors.append(f"line {line}: unknown recruiter or candidate")
            continue
        try:
            day = parse_iso_date(row["application_date"], field="application_date")
        except ApiError as e:
            errors.append(f"line {line}: {e.message}")
            continue
        status = (row.get("status") or "sent").lower()
        if status not in APPLICATION_STATUSES:
            errors.append(f"line {line}: unknown status {status}")
            continue
        try:
            count = _count(row.get("applications_count"))
        except ValueError as e:
            errors.append(f"line {line}: {e}")
            continue
        now = iso_utc_now()
        session.add(
            Application(
                candidate_id=candidate.id,
                recruiter_id=recruiter.id,
                company_name=row["company_name"],
                job_title=row["job_title"],
                job_description=row.get("job_description", ""),
                channel=row.get("channel", ""),
                status=status,
                application_date=day,
                applications_count=count,
                is_approved=False,
                approved_at="",
                created_at=now,
                updated_at=now,
            )
        )
        touched[recruiter.id].add(day)
        created += 1

    session.flush()
    for recruiter_id, days in touched.items():
        refresh_application_activity(session, recruiter_id, days)
    return created, errors


def main():
    parser = argparse.ArgumentParser(description="Backfill applications from a CSV export and rebuild activity totals.")
    parser.add_argument(
        "csv_path",
        help="CSV with recruiter_email, candidate_email, company_name, job_title and application_date columns.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate and report without committing.")
    args = parser.parse_args()

    load_dotenv()
    cfg = get_config()
    engine = db_.init_engine(cfg.DATABASE_URL)
    Base.metadata.create_all(bind=engine)

    session = db_.SessionLocal()
    try:
        created, errors = import_rows(session, _read_csv_rows(args.csv_path))
        for err in errors:
            print(err)
        if args.dry_run:
            session.rollback()
            print(f"Dry run: {created} applications would be imported, {len(errors)} rows skipped")
        else:
            session.commit()
            print(f"Imported applications: {created}, skipped rows: {len(errors)}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
