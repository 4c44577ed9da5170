import os
import sys
import tempfile
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep tests away from the real data dir (logs, default store file).
os.environ.setdefault("GOALBOARD_DATA_DIR", str(Path(tempfile.gettempdir()) / "goalboard-tests"))
