#!/usr/bin/env python3
"""
Sweep expired rows from the patent cache by hand.

Same work as GET /api/cron/cleanup-patents, without the HTTP hop or the
cron secret. Useful when the scheduler is down or for a first cleanup after
restoring a backup.

Run from project root with DATABASE_URL set:
  python scripts/cleanup_patent_cache.py
  python scripts/cleanup_patent_cache.py --dry-run
"""

from __future__ import annotations

import sys
from pathlib import Path

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / ".env")
load_dotenv(project_root / ".env.local")

from patent_search.db.session import SessionLocal
from patent_search.models import CachedPatent
from patent_search.services.patent_cache import cleanup_expired_patents
from patent_search.utils.datetime import utc_now


def main() -> None:
    dry_run = "--dry-run" in sys.argv[1:]
    now = utc_now()
    sess = SessionLocal()

    try:
        total = sess.query(CachedPatent).count()
        expired = sess.query(CachedPatent).filter(CachedPatent.expires_at < now).count()
        print(f"Patent cache: {total} rows, {expired} expired as of {now.isoformat()}Z")
        if dry_run:
            print("Dry run, nothing deleted.")
            return
        deleted = cleanup_expired_patents(sess, now=now)
        print(f"Done. {deleted} expired patents removed.")
    except Exception as e:
        print(f"ERROR: {e}")
        raise
    finally:
        sess.close()


if __name__ == "__main__":
    main()
