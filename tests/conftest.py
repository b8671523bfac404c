import os

os.environ.setdefault("LEDGER_DATABASE_URL", "sqlite://")
os.environ.setdefault("LEDGER_OWNER_EMAIL", "demo@local")
