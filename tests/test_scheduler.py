from scheduler.runner import run_daemon


def test_failing_job_does_not_stop_the_loop():
    calls, sleeps = [], []

    def job():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("network down")

    runs = run_daemon(job, interval_sec=60, jitter_sec=5, max_runs=3, sleep=sleeps.append)
    assert runs == 3
    assert len(calls) == 3
    assert len(sleeps) == 2
    assert all(55 <= s <= 65 for s in sleeps)
