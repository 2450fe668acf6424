#!/usr/bin/env python3
# backend/run_celery_beat.py
"""
Development Celery beat runner.
In development the auto-complete job runs every minute; see app/tasks/beat_schedule.py.
"""
import os
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

if __name__ == "__main__":
    print("Starting Celery beat (ENVIRONMENT=" + os.environ["ENVIRONMENT"] + ")")

    cmd = [sys.executable, "-m", "celery", "-A", "app.tasks.celery_app", "beat", "--loglevel=info"]

    subprocess.run(cmd)
