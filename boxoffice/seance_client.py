import json
from pathlib import Path
from typing import List, Optional

import requests

from boxoffice.config import DATA_DIR, HALL_CONFIG, SEANCES_FILE, HTTP_TIMEOUT
from boxoffice.hall import HallLayout
from boxoffice.logger import logger
from boxoffice.models import Seance, SeanceInfo


def fetch_json(source: str, base_dir: Path = DATA_DIR):
    """Загрузить JSON по URL или из файла относительно каталога данных"""
    if source.startswith(("http://", "https://")):
        try:
            response = requests.get(source, timeout=HTTP_TIMEOUT, headers={"Cache-Control": "no-store"})
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch {source}: {e}")
            return None

    path = Path(source)
    if not path.is_absolute():
        path = Path(base_dir) / path
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read {path}: {e}")
        return None


def load_hall(source: str = HALL_CONFIG, base_dir: Path = DATA_DIR) -> Optional[HallLayout]:
    data = fetch_json(source, base_dir)
    if not isinstance(data, dict):
        return None
    try:
        hall = HallLayout.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Invalid hall config {source}: {e}")
        return None
    logger.info(f"Loaded hall {hall.name or source}: {len(hall.rows)} rows, {len(hall.boxes)} boxes")
    return hall


def load_seances(source: str = SEANCES_FILE, base_dir: Path = DATA_DIR) -> List[Seance]:
    """Список сеансов: [{id, label, url}]"""
    data = fetch_json(source, base_dir)
    if not isinstance(data, list):
        return []
    seances = []
    for item in data:
        try:
            seances.append(Seance(id=str(item["id"]), label=item.get("label", item["id"]), url=item["url"]))
        except (KeyError, TypeError) as e:
            logger.warning(f"Skipping invalid seance entry {item!r}: {e}")
    return seances


def load_seance(seance: Seance, base_dir: Path = DATA_DIR) -> Optional[SeanceInfo]:
    """Цены и настроенные статусы мест для сеанса"""
    data = fetch_json(seance.url, base_dir)
    if not isinstance(data, dict):
        return None

    prices = {}
    for group, price in (data.get("prices") or {}).items():
        try:
            prices[group] = max(int(price), 0)
        except (TypeError, ValueError):
            logger.warning(f"Invalid price {price!r} for group {group} in seance {seance.id}")

    return SeanceInfo(
        id=seance.id,
        title=data.get("title") or seance.label,
        datetime=data.get("datetime") or "",
        prices=prices,
        places=data.get("places") or {}
    )
