import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # noqa: E402

from fridge.db import SessionLocal, init_db  # noqa: E402
from fridge.seed import load_catalog, seed_recipes  # noqa: E402


def main():
    init_db()
    path = sys.argv[1] if len(sys.argv) > 1 else None
    catalog = load_catalog(path) if path else None
    if path and not catalog:
        print(f'{path} not found or empty')
        return
    db = SessionLocal()
    try:
        added = seed_recipes(db, catalog)
    finally:
        db.close()
    if added:
        print(f'Imported {added} recipes')
    else:
        print('Recipes already present, nothing imported')


if __name__ == '__main__':
    main()
