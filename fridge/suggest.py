from datetime import datetime, timezone
from functools import cmp_to_key

from . import schemas
from .expiry import EXPIRING_SOON_DAYS, days_until_expiry, expiry_score

MIN_MATCH_PERCENTAGE = 50
MATCH_WEIGHT = 0.6
EXPIRY_WEIGHT = 0.4
# priority scores closer than this count as a tie
NEAR_TIE = 5


def build_inventory_index(ingredients, now=None):
    """Map lower-cased ingredient name to its soonest expiry."""
    if now is None:
        now = datetime.now(timezone.utc)
    index = {}
    for ing in ingredients:
        key = ing.name.lower()
        days = days_until_expiry(ing.expiry_date, now)
        if key not in index or days < index[key]["days_until_expiry"]:
            index[key] = {
                "name": ing.name,
                "expiry_date": ing.expiry_date,
                "days_until_expiry": days,
            }
    return index


def score_recipe(recipe, index):
    names = [i.ingredient_name.lower() for i in recipe.ingredients]
    match_count = 0
    total_expiry_score = 0
    expiring = []
    for name in names:
        info = index.get(name)
        if info is None:
            continue
        match_count += 1
        days = info["days_until_expiry"]
        total_expiry_score += expiry_score(days)
        if days <= EXPIRING_SOON_DAYS:
            expiring.append({
                "name": info["name"],
                "daysUntilExpiry": days,
                "expiryDate": str(info["expiry_date"]),
            })

    total = len(names)
    # a recipe without ingredients can never reach the threshold
    match_percentage = match_count / total * 100 if total else 0
    avg_expiry_score = total_expiry_score / match_count if match_count else 0
    priority_score = (
        match_percentage * MATCH_WEIGHT + avg_expiry_score * EXPIRY_WEIGHT
    )

    out = schemas.Recipe.model_validate(recipe).model_dump(mode="json")
    out.update({
        "matchPercentage": match_percentage,
        "matchCount": match_count,
        "totalIngredients": total,
        "expiringIngredientsUsed": expiring,
        "priorityScore": priority_score,
        "avgExpiryScore": avg_expiry_score,
    })
    return out


def compare_suggestions(a, b):
    """Higher priority first, unless the two are within NEAR_TIE.

    Near ties go to the recipe using more expiring ingredients. This is a
    pairwise rule, not a sort key: it is not transitive over long chains of
    near ties, and the result depends on the order the sort compares in.
    """
    diff = b["priorityScore"] - a["priorityScore"]
    if abs(diff) > NEAR_TIE:
        return diff
    return len(b["expiringIngredientsUsed"]) - len(a["expiringIngredientsUsed"])


def suggest_recipes(ingredients, recipes, now=None):
    index = build_inventory_index(ingredients, now)
    scored = [score_recipe(r, index) for r in recipes]
    kept = [s for s in scored if s["matchPercentage"] >= MIN_MATCH_PERCENTAGE]
    return sorted(kept, key=cmp_to_key(compare_suggestions))
