import os
import sys

# Config is read at import time; keep tests off Cloud Logging and the GCS config bucket
os.environ["CLOUD_LOGGING_ENABLED"] = "false"
os.environ["GCS_BUCKET_NAME"] = ""

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../cloud_function"))
