#!/usr/bin/env python3
"""
Echo bench run log management

Date based run directory layout:
- logs/YYYY-MM-DD/HHMMSS_description/
- archiving of old date directories into logs/archive/
- size statistics

LOG_DATE_DIR (e.g. "2026-10-17/101500_bench") pins the run directory so
that every node of one run writes into the same place.
"""

import argparse
import os
import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional


class BenchLogManager:
    """Run log directory manager"""

    def __init__(self, base_log_dir: str = "logs"):
        self.base_log_dir = Path(base_log_dir)
        self.archive_dir = self.base_log_dir / "archive"

    def create_dated_log_dir(self, description: str = "", run_id: Optional[str] = None,
                             now: Optional[datetime] = None) -> str:
        """
        Create a date based run directory

        Args:
            description: run description (e.g. "baseline", "1gib")
            run_id: optional run id placed before the description
            now: timestamp used for the directory name (current time by default)

        Returns:
            Created directory path
        """
        now = now or datetime.now()
        date_str = now.strftime("%Y-%m-%d")

        parts = [now.strftime("%H%M%S")]
        if run_id:
            parts.append(run_id)
        if description:
            parts.append(description)

        log_path = self.base_log_dir / date_str / "_".join(parts)
        log_path.mkdir(parents=True, exist_ok=True)
        return str(log_path)

    def resolve_run_dir(self, description: str = "") -> str:
        """Run directory from LOG_DATE_DIR, or a new dated one"""
        log_date_dir = os.getenv('LOG_DATE_DIR')
        if log_date_dir:
            log_path = self.base_log_dir / log_date_dir
            log_path.mkdir(parents=True, exist_ok=True)
            return str(log_path)
        return self.create_dated_log_dir(description)

    def _is_date_directory(self, dirname: str) -> bool:
        try:
            datetime.strptime(dirname, "%Y-%m-%d")
            return True
        except ValueError:
            return False

    def date_dirs(self) -> List[Path]:
        if not self.base_log_dir.exists():
            return []
        return sorted(d for d in self.base_log_dir.iterdir()
                      if d.is_dir() and self._is_date_directory(d.name))

    def list_runs(self) -> List[Path]:
        """All run directories, oldest first"""
        runs = []
        for date_dir in self.date_dirs():
            runs.extend(sorted(d for d in date_dir.iterdir() if d.is_dir()))
        return runs

    def latest_run(self) -> Optional[Path]:
        runs = self.list_runs()
        return runs[-1] if runs else None

    def cleanup_old_logs(self, days_to_keep: int = 7, now: Optional[datetime] = None) -> int:
        """
        Move date directories older than `days_to_keep` into the archive

        Returns:
            Number of archived date directories
        """
        cutoff_str = ((now or datetime.now()) - timedelta(days=days_to_keep)).strftime("%Y-%m-%d")

        archived_count = 0
        for date_dir in self.date_dirs():
            if date_dir.name < cutoff_str:
                self.archive_dir.mkdir(exist_ok=True)
                archive_path = self.archive_dir / f"logs_{date_dir.name}"
                print(f"Archiving {date_dir.name} -> archive/logs_{date_dir.name}")
                shutil.move(str(date_dir), str(archive_path))
                archived_count += 1

        print(f"Archived {archived_count} old log directories")
        return archived_count

    def get_log_stats(self):
        print("=== Echo Bench Log Statistics ===")

        if not self.base_log_dir.exists():
            print("No logs directory found")
            return

        total_size = sum(f.stat().st_size for f in self.base_log_dir.rglob('*') if f.is_file())
        print(f"Total size: {total_size / (1024*1024):.1f} MB")

        date_dirs = self.date_dirs()
        print(f"Date directories: {len(date_dirs)}")
        for date_dir in date_dirs[-10:]:  # latest 10 days
            log_count = len([d for d in date_dir.iterdir() if d.is_dir()])
            date_size = sum(f.stat().st_size for f in date_dir.rglob('*') if f.is_file())
            print(f"  {date_dir.name}: {log_count} runs, {date_size / (1024*1024):.1f} MB")

        if self.archive_dir.exists():
            archive_count = len([d for d in self.archive_dir.iterdir() if d.is_dir()])
            print(f"Archive: {archive_count} directories")


def main():
    parser = argparse.ArgumentParser(description="Echo Bench Log Manager")
    parser.add_argument("action", choices=["create", "list", "cleanup", "stats"],
                        help="Action to perform")
    parser.add_argument("--description", "-d", default="",
                        help="Run description for create action")
    parser.add_argument("--days", type=int, default=7,
                        help="Days to keep for cleanup action")
    parser.add_argument("--base-dir", default="logs",
                        help="Base log directory")

    args = parser.parse_args()

    manager = BenchLogManager(args.base_dir)

    if args.action == "create":
        print(f"Log directory: {manager.create_dated_log_dir(args.description)}")
    elif args.action == "list":
        for run in manager.list_runs():
            print(run)
    elif args.action == "cleanup":
        manager.cleanup_old_logs(args.days)
    elif args.action == "stats":
        manager.get_log_stats()


if __name__ == "__main__":
    main()
