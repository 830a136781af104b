"""
Example: seed a SQLite database with the default history and print the
aggregated progress, optionally routing through a remote API first.

Usage:
    python3 progress_demo.py --db ./data/reading_tracker.db
    python3 progress_demo.py --remote http://localhost:8000 --offline
    REMOTE_BASE_URL=http://localhost:8000 python3 progress_demo.py --enqueue-replay
"""

import argparse
import logging
import os
from pathlib import Path

from api.dependencies import build_replay_config, get_replay_queue, remote_timeout_seconds
from reading_tracker.progress import (
    PartitionStatus,
    RemoteProgressClient,
    RequestRouter,
    SqlAlchemyProgressRepository,
    seed_default_data,
)

STATUS_MARKS = {
    PartitionStatus.COMPLETED: "#",
    PartitionStatus.PARTIAL: "+",
    PartitionStatus.NOT_STARTED: ".",
}


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", default=Path("./data/reading_tracker.db"), type=Path, help="SQLite DB path")
    parser.add_argument(
        "--remote", default=os.getenv("REMOTE_BASE_URL"), help="Base URL of a remote progress API (env REMOTE_BASE_URL)"
    )
    parser.add_argument("--offline", action="store_true", help="Treat the remote as unreachable")
    parser.add_argument("--days", default=30, type=int, help="Consistency window in days")
    parser.add_argument("--replay", action="store_true", help="Replay the offline outbox before reporting")
    parser.add_argument("--enqueue-replay", action="store_true", help="Queue an outbox replay job on Redis (env REDIS_URL)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    args.db.parent.mkdir(parents=True, exist_ok=True)
    db_url = f"sqlite+pysqlite:///{args.db}"
    repo = SqlAlchemyProgressRepository(db_url)
    user = seed_default_data(repo)

    remote = RemoteProgressClient(args.remote, timeout=remote_timeout_seconds()) if args.remote else None
    router = RequestRouter(local=repo, remote=remote, is_online=lambda: not args.offline)
    if args.replay:
        print(f"Replayed {router.replay_outbox()} outbox entries")
    if args.enqueue_replay:
        config = build_replay_config(database_url=db_url, remote_base_url=args.remote)
        if config is None:
            parser.error("--enqueue-replay needs --remote or REMOTE_BASE_URL")
        job = get_replay_queue().enqueue_replay(config)
        print(f"Queued outbox replay job {job.id}")

    stats = router.get_stats(user.id, days=args.days)
    print(f"User {user.username} (id={user.id}), answered via {router.last_state.value}")
    print(f"  pages read:         {stats.total_pages_read}")
    print(f"  completed cycles:   {stats.completed_cycles}")
    print(f"  into current cycle: {stats.pages_into_current_cycle}")
    print(f"  current streak:     {stats.current_streak}")
    print(f"  longest streak:     {stats.longest_streak}")
    print(f"  consistency:        {stats.consistency_percentage}% over {stats.consistency_days} days")

    partitions = router.get_partition_map(user.id)
    print("  partitions:         " + "".join(STATUS_MARKS[p.status] for p in partitions))


if __name__ == "__main__":
    main()
