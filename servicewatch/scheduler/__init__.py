"""Scheduling: schedule evaluation, job bookkeeping and the job runner."""

from .job_runner import JobRunner
from .jobs import FunctionJob, Job, ScheduledJob
from .schedule import CronSchedule, parse_schedule

__all__ = ["CronSchedule", "FunctionJob", "Job", "JobRunner", "ScheduledJob", "parse_schedule"]
