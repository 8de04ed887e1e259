# debug_tasks.py: show what the video worker registers and whether the broker answers

from kombu.exceptions import OperationalError

from buzzsmile.app_celery import tasks  # noqa: F401  registers the tasks
from buzzsmile.app_celery.celery_app import celery_app

print("Registered Celery Tasks:\n")

for name in sorted(celery_app.tasks.keys()):
    if not name.startswith("celery."):
        print("-", name)

print("\nBroker:", celery_app.conf.broker_url)
try:
    with celery_app.connection_for_write() as conn:
        conn.ensure_connection(max_retries=1)
    print("Broker reachable; uploads will be queued.")
except OperationalError as exc:
    print(f"Broker unreachable ({exc}); uploads will be processed in-process.")
