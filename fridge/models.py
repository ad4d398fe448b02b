from sqlalchemy import (
    Column, Date, DateTime, ForeignKey, Integer, String, Text, func,
)
from sqlalchemy.orm import relationship

from .db import Base


class Ingredient(Base):
    __tablename__ = "ingredients"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit = Column(String(50), nullable=True)
    expiry_date = Column(Date, nullable=False, index=True)
    added_date = Column(DateTime, server_default=func.now())
    updated_date = Column(DateTime, server_default=func.now())


class Recipe(Base):
    __tablename__ = "recipes"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=False)  # one step per line
    created_date = Column(DateTime, server_default=func.now())

    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        order_by="RecipeIngredient.id",
    )


class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"
    id = Column(Integer, primary_key=True, index=True)
    # plain foreign key, deleting a recipe does not cascade
    recipe_id = Column(Integer, ForeignKey("recipes.id"), nullable=False)
    # matched by lower-cased name against Ingredient.name, not a foreign key
    ingredient_name = Column(String(200), nullable=False)
    quantity = Column(String(200), nullable=True)  # free text, "2 cloves minced"

    recipe = relationship("Recipe", back_populates="ingredients")
