import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# Файлы зала и сеансов
DATA_DIR = Path(os.getenv("BOXOFFICE_DATA_DIR", BASE_DIR / "data"))
HALL_CONFIG = os.getenv("BOXOFFICE_HALL_CONFIG", "halls/shevchenko-big.json")
SEANCES_FILE = os.getenv("BOXOFFICE_SEANCES_FILE", "seances.json")

# Сохранённые состояния мест по сеансам
STATE_DIR = Path(os.getenv("BOXOFFICE_STATE_DIR", BASE_DIR / "state"))
STORAGE_PREFIX = "shevchenko-seance-"

LOG_DIR = Path(os.getenv("BOXOFFICE_LOG_DIR", "logs"))
LOG_FILE = LOG_DIR / "boxoffice-service.log"
ACTIONS_LOG_FILE = LOG_DIR / "user_actions.log"

DEFAULT_CHANNEL = "boxoffice"
DEFAULT_BOX_SEATS = 18
HTTP_TIMEOUT = 3
