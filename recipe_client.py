"""Client for the hosted recipe-generation function."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import httpx

from errors import (
    AUTH_FAILED,
    EMPTY_INGREDIENTS,
    NETWORK_ERROR,
    REQUEST_TIMEOUT,
    RESPONSE_FORMAT_ERROR,
    SERVICE_ERROR,
    RecipeGenerationError,
)
from models import COOKING_METHODS, RECIPE_CATEGORIES, DietType, Macros, Recipe

logger = logging.getLogger(__name__)


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


_LEADING_NUMBER = re.compile(r"\s*(-?\d+(?:\.\d+)?)")


def _as_float(value: Any) -> float:
    """Leading number of a macro value; ``"45g"`` -> 45.0, junk -> 0.0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    match = _LEADING_NUMBER.match(str(value))
    return float(match.group(1)) if match else 0.0


def recipe_from_payload(data: dict, diet_type: DietType) -> Recipe:
    """Reshape the generation response into a Recipe (not yet persisted, so no id)."""
    name = str(data.get("name") or "").strip()
    if not name:
        raise RecipeGenerationError(RESPONSE_FORMAT_ERROR, "Recipe response has no name")

    macros = None
    raw_macros = data.get("macros")
    if isinstance(raw_macros, dict):
        macros = Macros(
            protein=_as_float(raw_macros.get("protein")),
            fat=_as_float(raw_macros.get("fat")),
            carbs=_as_float(raw_macros.get("carbs")),
        )

    try:
        resolved_diet = DietType(data.get("dietType") or diet_type.value)
    except ValueError:
        resolved_diet = diet_type

    category = str(data.get("category") or "")
    if category not in RECIPE_CATEGORIES:
        category = "pan-classics"
    cooking_method = str(data.get("cookingMethod") or "pan")
    if cooking_method not in COOKING_METHODS:
        cooking_method = "pan"

    return Recipe(
        name=name,
        ingredients=_as_str_list(data.get("ingredients")),
        instructions=_as_str_list(data.get("instructions")),
        diet_type=resolved_diet,
        category=category,
        image=data.get("image") or None,
        macros=macros,
        prep_time=_as_int(data.get("prepTime")),
        cooking_method=cooking_method,
    )


class HttpRecipeGenerator:
    def __init__(
        self,
        endpoint_url: str,
        api_key: str = "",
        timeout_s: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._endpoint_url = endpoint_url
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout_s)

    def generate(self, ingredients: str, diet_type: DietType) -> Recipe:
        if not ingredients.strip():
            raise RecipeGenerationError(EMPTY_INGREDIENTS)
        headers = {}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"

        logger.info("Generating %s recipe", diet_type.value)
        try:
            response = self._client.post(
                self._endpoint_url,
                json={"ingredients": ingredients.strip(), "dietType": diet_type.value},
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            raise RecipeGenerationError(REQUEST_TIMEOUT, "Recipe generation timed out") from exc
        except httpx.HTTPError as exc:
            raise RecipeGenerationError(NETWORK_ERROR, f"Network error: {exc}") from exc

        if not response.is_success:
            try:
                detail = str(response.json().get("error") or response.reason_phrase)
            except (ValueError, AttributeError):
                detail = response.text[:200] or response.reason_phrase
            code = AUTH_FAILED if response.status_code in (401, 403) else SERVICE_ERROR
            raise RecipeGenerationError(code, f"Recipe generation error: {detail}")

        try:
            data = response.json()
        except ValueError as exc:
            raise RecipeGenerationError(RESPONSE_FORMAT_ERROR, "Recipe response is not JSON") from exc
        if not isinstance(data, dict):
            raise RecipeGenerationError(RESPONSE_FORMAT_ERROR, "Recipe response is not an object")
        try:
            return recipe_from_payload(data, diet_type)
        except (TypeError, ValueError, AttributeError) as exc:
            raise RecipeGenerationError(RESPONSE_FORMAT_ERROR, f"Malformed recipe: {exc}") from exc

    def close(self) -> None:
        self._client.close()
