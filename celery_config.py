# celery_config.py
from celery import Celery
from celery.schedules import crontab
import os
from dotenv import load_dotenv
import multiprocessing
from config.rate_limits import get_celery_rate_limit

load_dotenv()

# Initialize Celery app
celery_app = Celery(
    'tapearchive_tasks',
    broker=os.getenv('REDIS_URL', 'redis://localhost:6379/0'),
    include=['tasks']  # Explicitly include the tasks module
)

# Configuration
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    worker_concurrency=multiprocessing.cpu_count() * 2,
    task_annotations={
        'tasks.import_artist': {
            'rate_limit': get_celery_rate_limit()
        }
    },
)

# Beat schedule
celery_app.conf.beat_schedule = {
    'aggregate-daily-metrics': {
        'task': 'tasks.aggregate_daily_metrics',
        'schedule': crontab(hour=4, minute=0),
    },
}

# This ensures the tasks are registered
if __name__ == '__main__':
    celery_app.start()
