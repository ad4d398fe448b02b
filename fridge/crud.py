import logging
from contextlib import contextmanager

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .errors import NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "other"
DEFAULT_UNIT = "units"


@contextmanager
def _store(db: Session):
    """Roll back and re-raise driver failures as StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("store operation failed")
        raise StoreError(str(getattr(exc, "orig", None) or exc)) from exc


# -------------------- ingredients --------------------

def get_ingredient(db: Session, ingredient_id: int):
    with _store(db):
        return db.get(models.Ingredient, ingredient_id)


def list_ingredients(db: Session):
    stmt = select(models.Ingredient).order_by(
        models.Ingredient.expiry_date.asc(), models.Ingredient.id.asc()
    )
    with _store(db):
        return db.execute(stmt).scalars().all()


def create_ingredient(db: Session, ingredient: schemas.IngredientCreate):
    # zero quantity and blank strings count as missing
    if not ingredient.name or not ingredient.quantity \
            or not ingredient.expiry_date:
        raise ValidationError(
            "Name, quantity, and expiry_date are required"
        )
    db_ingredient = models.Ingredient(
        name=ingredient.name,
        category=ingredient.category or DEFAULT_CATEGORY,
        quantity=ingredient.quantity,
        unit=ingredient.unit or DEFAULT_UNIT,
        expiry_date=ingredient.expiry_date,
    )
    with _store(db):
        db.add(db_ingredient)
        db.commit()
        db.refresh(db_ingredient)
    logger.info(
        "added ingredient %s (id=%s)", db_ingredient.name, db_ingredient.id
    )
    return db_ingredient


def update_ingredient(
    db: Session, ingredient_id: int, ingredient: schemas.IngredientUpdate
):
    """Overwrite every mutable field, including with nulls."""
    db_ingredient = get_ingredient(db, ingredient_id)
    if not db_ingredient:
        raise NotFoundError("Ingredient not found")
    db_ingredient.name = ingredient.name
    db_ingredient.category = ingredient.category
    db_ingredient.quantity = ingredient.quantity
    db_ingredient.unit = ingredient.unit
    db_ingredient.expiry_date = ingredient.expiry_date
    db_ingredient.updated_date = func.now()
    with _store(db):
        db.add(db_ingredient)
        db.commit()
        db.refresh(db_ingredient)
    logger.info("updated ingredient id=%s", ingredient_id)
    return db_ingredient


def delete_ingredient(db: Session, ingredient_id: int):
    db_ingredient = get_ingredient(db, ingredient_id)
    if not db_ingredient:
        raise NotFoundError("Ingredient not found")
    with _store(db):
        db.delete(db_ingredient)
        db.commit()
    logger.info("deleted ingredient id=%s", ingredient_id)


# -------------------- recipes --------------------

def _recipes_query():
    # ingredients come in one extra IN (...) query for the whole batch
    return select(models.Recipe).options(
        selectinload(models.Recipe.ingredients)
    )


def list_recipes(db: Session):
    stmt = _recipes_query().order_by(models.Recipe.id.asc())
    with _store(db):
        return db.execute(stmt).scalars().all()


def get_recipe(db: Session, recipe_id: int):
    stmt = _recipes_query().where(models.Recipe.id == recipe_id)
    with _store(db):
        recipe = db.execute(stmt).scalars().first()
    if not recipe:
        raise NotFoundError("Recipe not found")
    return recipe


def count_recipes(db: Session) -> int:
    with _store(db):
        return db.execute(
            select(func.count()).select_from(models.Recipe)
        ).scalar_one()


def create_recipe(db: Session, data: dict):
    """Insert one recipe with its ingredient list, keeping list order."""
    db_recipe = models.Recipe(
        name=data["name"],
        description=data.get("description"),
        instructions=data["instructions"],
        ingredients=[
            models.RecipeIngredient(
                ingredient_name=i["name"], quantity=i.get("quantity")
            )
            for i in data.get("ingredients", [])
        ],
    )
    with _store(db):
        db.add(db_recipe)
        db.commit()
        db.refresh(db_recipe)
    return db_recipe
