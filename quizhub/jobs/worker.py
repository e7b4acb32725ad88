import logging
from rq import Worker
from quizhub.jobs.queue import redis
from quizhub.core.config import settings
if __name__ == "__main__":
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    w = Worker([settings.RQ_QUEUE], connection=redis)
    w.work(with_scheduler=True)
