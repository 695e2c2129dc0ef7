"""Run ARQ worker. Usage: python -m inputhaven.worker.run_worker
(or: arq inputhaven.worker.run_worker.WorkerSettings)"""

from arq import run_worker
from arq.cron import cron

from inputhaven.worker.tasks import get_redis_settings, retry_emails, shutdown, startup


class WorkerSettings:
    redis_settings = get_redis_settings()
    functions = []
    cron_jobs = [
        cron(retry_emails, second=0),  # every minute at :00
    ]
    on_startup = startup
    on_shutdown = shutdown


if __name__ == "__main__":
    run_worker(WorkerSettings)
