from enum import Enum
import json
import logging
from typing import Any

import openai
from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam,
)

from domain.errors import RecipeGenerationError
from domain.models import Recipe
from domain.prompts import SYSTEM_PROMPT, RecipeRequestPrompt


logger = logging.getLogger(__name__)


class Model(Enum):
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_4O = "gpt-4o"


def _object(properties: dict[str, Any]) -> dict[str, Any]:
    # Strict structured outputs want every property required and nothing extra.
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


METRIC_INGREDIENT_SCHEMA = _object(
    {
        "name": {"type": "string", "description": "Name of the ingredient"},
        "quantity": {"type": "number", "description": "Precise metric weight"},
        "unit": {"type": "string", "description": "Unit (g or kg)"},
    }
)

CULINARY_INGREDIENT_SCHEMA = _object(
    {
        "name": {"type": "string", "description": "Name of the ingredient"},
        "amount": {
            "type": "string",
            "description": "Culinary amount (e.g. '2 tbsp', '1 large', '1/2 cup')",
        },
    }
)

RECIPE_SCHEMA = _object(
    {
        "recipeTitle": {"type": "string"},
        "cookTime": {"type": "string"},
        "nutrition": _object(
            {
                "calories": {"type": "number"},
                "protein": {"type": "number"},
                "carbs": {"type": "number"},
                "fat": {"type": "number"},
            }
        ),
        "ingredients": {
            "type": "array",
            "items": CULINARY_INGREDIENT_SCHEMA,
            "description": "Ingredients using standard cooking units (tbsp, cups, etc)",
        },
        "steps": {"type": "array", "items": {"type": "string"}},
        "substitutions": {
            "type": "array",
            "items": {"type": "string"},
            "description": "List of swaps made for allergies, if any",
        },
        "shoppingList": _object(
            {
                "VegetableShop": {
                    "type": "array",
                    "items": METRIC_INGREDIENT_SCHEMA,
                    "description": (
                        "Items bought at a vegetable market (fresh vegetables, "
                        "fruits, herbs, ginger, garlic, green chillies, lemon)."
                    ),
                },
                "GroceryShop": {
                    "type": "array",
                    "items": METRIC_INGREDIENT_SCHEMA,
                    "description": (
                        "Items bought at a general grocery store (spices, lentils, "
                        "rice, flours, dairy, oil, salt, sugar, meat, dry fruits)."
                    ),
                },
            }
        ),
    }
)


class LLMService:
    def __init__(
        self,
        openai_client: openai.AsyncClient | None = None,
        *,
        model: str = Model.GPT_4O_MINI.value,
        temperature: float = 0.3,
    ) -> None:
        self.openai_client = (
            openai.AsyncClient() if openai_client is None else openai_client
        )
        self.model = model
        self.temperature = temperature

    async def generate_recipe(
        self,
        *,
        dish_name: str,
        people_count: int,
        restrictions: str = "",
    ) -> Recipe:
        if not dish_name.strip():
            raise ValueError("Provide a dish name.")
        if people_count < 1:
            raise ValueError("Cook for at least one person.")

        system_message: ChatCompletionSystemMessageParam = {
            "role": "system",
            "content": SYSTEM_PROMPT,
        }
        user_message: ChatCompletionUserMessageParam = {
            "role": "user",
            "content": str(
                RecipeRequestPrompt(
                    dish_name=dish_name,
                    people_count=people_count,
                    restrictions=restrictions,
                )
            ),
        }
        messages: list[ChatCompletionMessageParam] = [system_message, user_message]

        logger.info("Generating recipe for %s (%d people)", dish_name, people_count)
        resp = await self.openai_client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": "recipe",
                    "strict": True,
                    "schema": RECIPE_SCHEMA,
                },
            },
        )

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise RecipeGenerationError("No text returned from the model.")

        try:
            data = json.loads(content)
            recipe = Recipe.from_dict(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Unusable recipe response: %r", e)
            raise RecipeGenerationError("The model returned an unusable recipe.") from e

        for bucket in (recipe.shopping_list.vegetable_shop, recipe.shopping_list.grocery_shop):
            for item in bucket:
                if item.quantity < 0:
                    item.quantity = 0
        return recipe
