import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import List

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import config, crud, schemas
from .db import SessionLocal, init_db
from .errors import FridgeError, ReceiptParseError
from .expiry import expiry_date_in
from .receipt import DemoExtractor, OpenRouterExtractor, ReceiptExtractor
from .seed import seed_recipes
from .suggest import suggest_recipes

logger = logging.getLogger(__name__)

RECEIPT_CATEGORY = "grocery"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables and seed the recipe catalog once at startup
    init_db()
    db = SessionLocal()
    try:
        seed_recipes(db)
    finally:
        db.close()
    yield


app = FastAPI(title="Fridge API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FridgeError)
def fridge_error_handler(request: Request, exc: FridgeError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path,
                     exc.message)
    else:
        logger.warning("%s %s: %s", request.method, request.url.path,
                       exc.message)
    return JSONResponse(status_code=exc.status_code,
                        content={"error": exc.message})


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg"))
    message = "; ".join(problems) or "Invalid request"
    logger.warning("%s %s: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_receipt_extractor() -> ReceiptExtractor:
    # one client for the life of the process
    return OpenRouterExtractor()


def get_demo_extractor() -> ReceiptExtractor:
    return DemoExtractor()


# -------------------- ingredients --------------------

@app.post("/api/ingredients", response_model=schemas.Ingredient,
          status_code=201)
def create_ingredient(ingredient: schemas.IngredientCreate,
                      db: Session = Depends(get_db)):
    return crud.create_ingredient(db, ingredient)


@app.get("/api/ingredients", response_model=List[schemas.Ingredient])
def list_ingredients(db: Session = Depends(get_db)):
    return crud.list_ingredients(db)


@app.put("/api/ingredients/{ingredient_id}", response_model=schemas.Message)
def update_ingredient(ingredient_id: int,
                      ingredient: schemas.IngredientUpdate,
                      db: Session = Depends(get_db)):
    crud.update_ingredient(db, ingredient_id, ingredient)
    return {"message": "Ingredient updated successfully"}


@app.delete("/api/ingredients/{ingredient_id}",
            response_model=schemas.Message)
def delete_ingredient(ingredient_id: int, db: Session = Depends(get_db)):
    crud.delete_ingredient(db, ingredient_id)
    return {"message": "Ingredient deleted successfully"}


# -------------------- recipes --------------------

@app.get("/api/recipes", response_model=List[schemas.Recipe])
def list_recipes(db: Session = Depends(get_db)):
    return crud.list_recipes(db)


# must stay above /api/recipes/{recipe_id}
@app.get("/api/recipes/suggestions")
def recipe_suggestions(db: Session = Depends(get_db)):
    # two separate reads, no snapshot between them
    ingredients = crud.list_ingredients(db)
    recipes = crud.list_recipes(db)
    return suggest_recipes(ingredients, recipes)


@app.get("/api/recipes/{recipe_id}", response_model=schemas.Recipe)
def get_recipe(recipe_id: int, db: Session = Depends(get_db)):
    return crud.get_recipe(db, recipe_id)


# -------------------- receipts --------------------

@app.post("/api/receipts/extract", response_model=schemas.ReceiptItems)
def extract_receipt(
    payload: schemas.ReceiptExtractRequest,
    extractor: ReceiptExtractor = Depends(get_receipt_extractor),
    demo_extractor: ReceiptExtractor = Depends(get_demo_extractor),
):
    chosen = demo_extractor if payload.demo else extractor
    try:
        items = chosen.extract(payload.image)
    except ReceiptParseError as exc:
        exc.message = f"{exc.message}. Try demo mode or manual entry."
        raise
    return {"items": items}


@app.post("/api/receipts/import", response_model=List[schemas.Ingredient],
          status_code=201)
def import_receipt(payload: schemas.ReceiptItems,
                   db: Session = Depends(get_db)):
    # items are already validated, so nothing below rejects one halfway
    rows = [
        schemas.IngredientCreate(
            name=item.name,
            category=RECEIPT_CATEGORY,
            quantity=item.quantity,
            unit=item.unit,
            expiry_date=expiry_date_in(item.expiry_days),
        )
        for item in payload.items
    ]
    return [crud.create_ingredient(db, row) for row in rows]


@app.get("/api/health")
def health():
    return {"status": "ok", "message": "Fridge API is running"}
