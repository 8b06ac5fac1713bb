import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"
worker_class = "uvicorn.workers.UvicornWorker"

# Runs live in process memory, so one worker keeps polling on the process that owns the run
workers = int(os.getenv("WEB_CONCURRENCY", "1"))
timeout = 1800            # a long comic can take many minutes of image calls
graceful_timeout = 120
keepalive = 75

max_requests = int(os.getenv("MAX_REQUESTS", "1000"))
max_requests_jitter = int(os.getenv("MAX_REQUESTS_JITTER", "100"))

# stdout/stderr are collected by the platform
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
