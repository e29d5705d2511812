import os

# Lightweight DB setup and no background refresh
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:////tmp/evac_status_test.db")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("AUTO_RUN_MIGRATIONS", "false")
os.environ.setdefault("EVACUATION_ENABLED", "false")
