import os

# Database Configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./stock_ledger.db")

# Redis Configuration
REDIS_HOSTNAME = os.getenv("REDIS_HOSTNAME", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))

# Celery Configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", f"redis://{REDIS_HOSTNAME}:{REDIS_PORT}/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", f"redis://{REDIS_HOSTNAME}:{REDIS_PORT}/1")
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() in ("1", "true", "yes")

# Stock Import Configuration
STOCK_IMPORT_DISK = os.getenv("STOCK_IMPORT_DISK", "local")  # "local" or "remote"
STOCK_IMPORT_QUEUE = os.getenv("STOCK_IMPORT_QUEUE", "imports")
STOCK_IMPORT_CHUNK_SIZE = int(os.getenv("STOCK_IMPORT_CHUNK_SIZE", "500"))  # Rows per chunk task
STOCK_IMPORT_LOCAL_ROOT = os.getenv("STOCK_IMPORT_LOCAL_ROOT", "storage")
STOCK_IMPORT_REMOTE_URL = os.getenv("STOCK_IMPORT_REMOTE_URL", "")
STOCK_IMPORT_REMOTE_TIMEOUT = int(os.getenv("STOCK_IMPORT_REMOTE_TIMEOUT", "30"))  # seconds

# Reporting Configuration
STOCK_REPORT_CACHE_TTL = int(os.getenv("STOCK_REPORT_CACHE_TTL", "300"))  # Performance cache TTL (seconds)
CACHE_DRIVER = os.getenv("CACHE_DRIVER", "redis")  # "redis" or "memory"

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_PATH = os.getenv("LOG_PATH", "logs/app.log")
