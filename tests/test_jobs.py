import pytest

from syslabs.jobs import Job, JobList, JobState


def test_first_job_gets_jid_one():
    jobs = JobList()
    job = jobs.add(100, JobState.BG, "sleep\n")
    assert job == Job(100, 1, JobState.BG, "sleep\n")
    assert jobs.get_by_pid(100) is job
    assert jobs.get_by_jid(1) is job


def test_jids_increase_and_reuse_after_delete():
    jobs = JobList()
    added = [jobs.add(pid, JobState.BG, "x\n") for pid in (10, 20, 30)]
    jids = [job.jid for job in added]
    assert jids == sorted(jids)
    assert len(set(jids)) == len(jids)
    assert jobs.delete(30) is True
    again = jobs.add(40, JobState.BG, "y\n")
    assert again.jid == added[-1].jid
    assert jobs.max_jid() == again.jid


def test_bad_pids_are_rejected():
    jobs = JobList()
    assert jobs.add(0, JobState.FG, "a\n") is None
    assert jobs.delete(0) is False
    assert jobs.get_by_pid(0) is None
    assert jobs.get_by_jid(0) is None
    assert jobs.pid_to_jid(0) == 0
    assert len(jobs) == 0


def test_delete_unknown_pid():
    jobs = JobList()
    jobs.add(5, JobState.BG, "a\n")
    assert jobs.delete(6) is False
    assert len(jobs) == 1


def test_table_full(capsys):
    jobs = JobList(max_jobs=2)
    jobs.add(1, JobState.BG, "a\n")
    jobs.add(2, JobState.BG, "b\n")
    assert jobs.add(3, JobState.BG, "c\n") is None
    assert capsys.readouterr().out == "Tried to create too many jobs\n"
    assert len(jobs) == 2


def test_next_jid_wraps_at_max_jobs():
    jobs = JobList(max_jobs=2)
    jobs.add(1, JobState.BG, "a\n")
    jobs.add(2, JobState.BG, "b\n")
    assert jobs.next_jid == 1


def test_fg_pid():
    jobs = JobList()
    assert jobs.fg_pid() == 0
    jobs.add(7, JobState.BG, "a\n")
    jobs.add(8, JobState.FG, "b\n")
    assert jobs.fg_pid() == 8
    jobs.get_by_pid(8).state = JobState.ST
    assert jobs.fg_pid() == 0


def test_pid_to_jid():
    jobs = JobList()
    job = jobs.add(55, JobState.BG, "a\n")
    assert jobs.pid_to_jid(55) == job.jid
    assert jobs.pid_to_jid(56) == 0


def test_list_jobs_format():
    jobs = JobList()
    a = jobs.add(11, JobState.BG, "run a\n")
    b = jobs.add(12, JobState.ST, "run b\n")
    c = jobs.add(13, JobState.FG, "run c\n")
    assert jobs.list_jobs() == (
        f"[{a.jid}] (11) Running run a\n"
        f"[{b.jid}] (12) Stopped run b\n"
        f"[{c.jid}] (13) Foreground run c\n"
    )


def test_list_jobs_reports_undefined_state():
    jobs = JobList()
    job = jobs.add(9, JobState.BG, "z\n")
    job.state = JobState.UNDEF
    assert jobs.list_jobs() == f"[{job.jid}] (9) listjobs: Internal error: job[0].state=0 z\n"


def test_invalid_size():
    with pytest.raises(ValueError):
        JobList(max_jobs=0)