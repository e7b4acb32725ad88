from rq import Queue
from redis import Redis
from quizhub.core.config import settings
redis = Redis.from_url(settings.REDIS_URL)
queue = Queue(settings.RQ_QUEUE, connection=redis)

def get_queue() -> Queue:
    return queue
