import json
import logging
from pathlib import Path

from sqlalchemy.orm import Session

from . import crud

logger = logging.getLogger(__name__)

CATALOG_FILE = Path(__file__).resolve().parent / "data" / "recipes.json"


def load_catalog(path=CATALOG_FILE):
    """Load the starter recipes from a JSON file and return a list of dicts.

    Args:
        path (str or Path): Path to the JSON file.

    Returns:
        list: list of recipe dictionaries, empty if the file is missing.
    """
    p = Path(path)
    if not p.exists():
        return []
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def seed_recipes(db: Session, catalog=None) -> int:
    """Insert the starter catalog if there are no recipes at all.

    Returns the number of recipes inserted. Any existing recipe, whatever it
    is, makes this a no-op.
    """
    if crud.count_recipes(db) > 0:
        return 0
    if catalog is None:
        catalog = load_catalog()
    added = 0
    for r in catalog:
        # one commit per recipe; an earlier insert stays if a later one fails
        crud.create_recipe(db, r)
        added += 1
    logger.info("Seeded %d recipe(s)", added)
    return added
