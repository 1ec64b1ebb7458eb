"""
Root pytest configuration for the safety automation core.

Sets up Python path and test environment variables for all test directories.
"""

import os
import sys
from pathlib import Path

# Set test environment variables before anything else imports settings
os.environ.setdefault("SAFETY_ENVIRONMENT", "testing")
os.environ.setdefault("SAFETY_LOG_LEVEL", "DEBUG")
os.environ.setdefault("NOTIFICATION_BASE_URL", "http://notification.test")
os.environ.setdefault("CRISIS_ALERT_WEB_APP_URL", "https://app.test")

# No live model calls from the test suite
os.environ["SAFETY_CLASSIFIER_API_KEY"] = ""

# Project root
project_root = Path(__file__).parent

# Add src directory to path for imports
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Add project root to path
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
