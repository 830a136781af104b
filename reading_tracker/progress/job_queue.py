from __future__ import annotations

import hashlib
from dataclasses import dataclass

from redis import Redis
from rq import Queue, Worker

from .remote import RemoteProgressClient
from .repository import SqlAlchemyProgressRepository
from .router import RequestRouter


@dataclass
class ReplayConfig:
    database_url: str
    remote_base_url: str
    timeout_seconds: float = 10.0


def run_outbox_replay(config: ReplayConfig) -> int:
    """
    RQ task entrypoint. Builds the local store and remote client, then pushes
    any writes recorded while offline.
    """
    repo = SqlAlchemyProgressRepository(config.database_url)
    remote = RemoteProgressClient(config.remote_base_url, timeout=config.timeout_seconds)
    router = RequestRouter(local=repo, remote=remote)
    return router.replay_outbox()


class ReplayJobQueue:
    """
    Redis-backed job queue using RQ. Replays are pushed to Redis and workers
    can be started by calling `work()` in a dedicated process.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", queue_name: str = "outbox-replay"):
        self.redis = Redis.from_url(redis_url)
        self.queue = Queue(queue_name, connection=self.redis)

    def enqueue_replay(self, config: ReplayConfig):
        """
        Enqueue an outbox replay. The RQ job id is derived from the local
        database URL so repeated requests address the same replay job.
        """
        digest = hashlib.md5(config.database_url.encode("utf-8")).hexdigest()[:12]
        job_id = f"replay-{digest}"
        return self.queue.enqueue(run_outbox_replay, config, job_id=job_id, retry=None)

    def work(self):
        worker = Worker([self.queue], connection=self.redis)
        worker.work(with_scheduler=True)
