"""Gunicorn configuration for the MoveIt247 operations backend."""
import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:5000")

# The store serialises writers per process only, so more than one worker on a
# shared JSON file reintroduces last-writer-wins between processes.
workers = int(os.getenv("GUNICORN_WORKERS", "1"))
threads = int(os.getenv("GUNICORN_THREADS", "4"))

accesslog = os.getenv("GUNICORN_ACCESS_LOGFILE", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOGFILE", "-")

forwarded_allow_ips = os.getenv("GUNICORN_FORWARDED_ALLOW_IPS", "*")
