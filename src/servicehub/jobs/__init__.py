from servicehub.jobs.supervisor import JobConfig, JobInfo, JobState, JobSupervisor

__all__ = ["JobConfig", "JobInfo", "JobState", "JobSupervisor"]
