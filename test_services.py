"""
Tests for the provider services and search orchestration.
HTTP is replaced by patching requests.get in app_services.
"""

from unittest.mock import patch

import pytest
import requests

from app_models import SearchQuery, ProviderError, ConfigurationError
from app_services import (
    RecipeSearchService,
    SpoonacularService,
    EdamamService,
    create_provider,
)


def find_by_ingredients_payload():
    """Five lightweight matches for ["egg", "flour"]; 1, 3 and 5 pass the filter."""
    def match(recipe_id, used, missed):
        return {
            "id": recipe_id,
            "title": f"Recipe {recipe_id}",
            "image": f"https://img.test/{recipe_id}.jpg",
            "usedIngredientCount": used,
            "missedIngredientCount": missed,
            "usedIngredients": [{"original": f"used {n}"} for n in range(used)],
            "missedIngredients": [{"original": f"missed {n}"} for n in range(missed)],
        }
    return [match(1, 2, 2), match(2, 0, 6), match(3, 1, 1), match(4, 0, 5), match(5, 2, 0)]


def bulk_payload(ids):
    return [
        {
            "id": recipe_id,
            "title": f"Detailed {recipe_id}",
            "readyInMinutes": 20,
            "servings": 2,
            "nutrition": {"nutrients": [{"name": "Calories", "amount": 250.4}]},
            "extendedIngredients": [{"original": "2 eggs"}, {"original": "1 cup flour"}],
            "sourceUrl": f"https://example.test/{recipe_id}",
        }
        for recipe_id in ids
    ]


class FakeProviderHTTP:
    """Routes requests.get calls by endpoint and records them."""

    def __init__(self, fake_response, routes):
        self.fake_response = fake_response
        self.routes = routes
        self.calls = []

    def __call__(self, url, params=None, timeout=None):
        params = dict(params or [])
        self.calls.append((url, params))
        for suffix, result in self.routes.items():
            if url.endswith(suffix):
                if isinstance(result, Exception):
                    raise result
                if callable(result):
                    return result(params)
                return self.fake_response(result)
        return self.fake_response({}, status=404)


@pytest.fixture
def spoonacular(config):
    return SpoonacularService(config)


class TestSpoonacularNameSearch:
    """Name search against complexSearch."""

    def test_returns_normalized_recipes(self, spoonacular, fake_response):
        http = FakeProviderHTTP(fake_response, {
            "/complexSearch": {"results": [
                {"id": 10, "title": "Pasta", "nutrition": {"nutrients": [{"name": "Calories", "amount": 241.6}]}},
                {"id": 11, "title": "Pesto"},
            ]},
        })
        with patch("app_services.requests.get", side_effect=http):
            recipes = spoonacular.search_by_name("pasta")

        assert [r.id for r in recipes] == [10, 11]
        assert recipes[0].calories == 242
        url, params = http.calls[0]
        assert params["query"] == "pasta"
        assert params["number"] == 12
        assert params["apiKey"] == "test-spoon-key"

    def test_malformed_results_are_empty(self, spoonacular, fake_response):
        http = FakeProviderHTTP(fake_response, {"/complexSearch": {"results": "not-an-array"}})
        with patch("app_services.requests.get", side_effect=http):
            assert spoonacular.search_by_name("pasta") == []

    def test_timeout_passed(self, spoonacular, fake_response):
        with patch("app_services.requests.get", return_value=fake_response({"results": []})) as get:
            spoonacular.search_by_name("pasta")
        assert get.call_args.kwargs["timeout"] == 10


class TestSpoonacularIngredientSearch:
    """Match lookup, filter, bulk detail and ranking."""

    def test_end_to_end(self, spoonacular, fake_response):
        http = FakeProviderHTTP(fake_response, {
            "/findByIngredients": find_by_ingredients_payload(),
            "/informationBulk": lambda params: fake_response(
                bulk_payload(int(i) for i in params["ids"].split(","))
            ),
        })
        with patch("app_services.requests.get", side_effect=http):
            recipes = spoonacular.search_by_ingredients(("egg", "flour"))

        assert len(recipes) == 3
        assert [r.id for r in recipes] == [5, 1, 3]
        assert [r.match_score for r in recipes] == [4, 2, 1]
        assert recipes[0].title == "Detailed 5"
        assert recipes[0].calories == 250
        assert recipes[0].used_ingredient_count == 2

        (match_url, match_params), (bulk_url, bulk_params) = http.calls
        assert match_params["ingredients"] == "egg,+flour"
        assert match_params["number"] == 24
        assert match_params["ranking"] == 1
        assert match_params["ignorePantry"] == "true"
        assert bulk_params["ids"] == "1,3,5"

    def test_no_survivors_skips_detail_lookup(self, spoonacular, fake_response):
        http = FakeProviderHTTP(fake_response, {
            "/findByIngredients": [{"id": 1, "title": "A", "usedIngredientCount": 0, "missedIngredientCount": 9}],
        })
        with patch("app_services.requests.get", side_effect=http):
            assert spoonacular.search_by_ingredients(("egg", "flour")) == []
        assert len(http.calls) == 1

    def test_no_matches(self, spoonacular, fake_response):
        http = FakeProviderHTTP(fake_response, {"/findByIngredients": {"status": "weird"}})
        with patch("app_services.requests.get", side_effect=http):
            assert spoonacular.search_by_ingredients(("egg",)) == []
        assert len(http.calls) == 1

    def test_missing_detail_degrades(self, spoonacular, fake_response):
        http = FakeProviderHTTP(fake_response, {
            "/findByIngredients": find_by_ingredients_payload(),
            "/informationBulk": bulk_payload([1, 3]),
        })
        with patch("app_services.requests.get", side_effect=http):
            recipes = spoonacular.search_by_ingredients(("egg", "flour"))

        assert {r.id for r in recipes} == {1, 3, 5}
        lightweight = next(r for r in recipes if r.id == 5)
        assert lightweight.title == "Recipe 5"
        assert lightweight.calories is None

    def test_result_cap(self, make_config, fake_response):
        service = SpoonacularService(make_config(max_results=2).validate())
        http = FakeProviderHTTP(fake_response, {
            "/findByIngredients": find_by_ingredients_payload(),
            "/informationBulk": lambda params: fake_response(
                bulk_payload(int(i) for i in params["ids"].split(","))
            ),
        })
        with patch("app_services.requests.get", side_effect=http):
            recipes = service.search_by_ingredients(("egg", "flour"))

        assert http.calls[0][1]["number"] == 4
        assert http.calls[1][1]["ids"] == "1,3"
        assert len(recipes) == 2


class TestSpoonacularDetails:
    """Single recipe lookup for the detail modal."""

    def test_fetch_details(self, spoonacular, fake_response):
        http = FakeProviderHTTP(fake_response, {"/42/information": bulk_payload([42])[0]})
        with patch("app_services.requests.get", side_effect=http):
            recipe = spoonacular.fetch_details(42)
        assert recipe.id == 42
        assert recipe.ingredients == ("2 eggs", "1 cup flour")
        assert http.calls[0][1]["includeNutrition"] == "true"

    def test_unusable_detail(self, spoonacular, fake_response):
        with patch("app_services.requests.get", return_value=fake_response({"code": 404})):
            assert spoonacular.fetch_details(42) is None


class TestProviderErrors:
    """Transport, status and body failures surface as ProviderError."""

    def test_http_error(self, spoonacular, fake_response):
        response = fake_response({"status": "failure", "message": "quota exceeded"}, status=402)
        with patch("app_services.requests.get", return_value=response):
            with pytest.raises(ProviderError) as exc:
                spoonacular.search_by_name("pasta")
        assert "402" in exc.value.message
        assert isinstance(exc.value.cause, requests.exceptions.HTTPError)
        assert "test-spoon-key" not in exc.value.message

    def test_transport_error(self, spoonacular):
        with patch("app_services.requests.get", side_effect=requests.exceptions.ConnectionError("down")):
            with pytest.raises(ProviderError) as exc:
                spoonacular.search_by_name("pasta")
        assert isinstance(exc.value.cause, requests.exceptions.ConnectionError)

    def test_invalid_json(self, spoonacular, fake_response):
        with patch("app_services.requests.get", return_value=fake_response(invalid_json=True)):
            with pytest.raises(ProviderError) as exc:
                spoonacular.search_by_name("pasta")
        assert isinstance(exc.value.cause, ValueError)

    def test_bulk_failure_fails_whole_search(self, spoonacular, fake_response):
        http = FakeProviderHTTP(fake_response, {
            "/findByIngredients": find_by_ingredients_payload(),
            "/informationBulk": requests.exceptions.Timeout("slow"),
        })
        with patch("app_services.requests.get", side_effect=http):
            with pytest.raises(ProviderError):
                spoonacular.search_by_ingredients(("egg", "flour"))

    def test_credentials_not_logged(self, spoonacular, fake_response, caplog):
        caplog.set_level("INFO")
        with patch("app_services.requests.get", return_value=fake_response({"results": []})):
            spoonacular.search_by_name("pasta")
        assert "Fetching from" in caplog.text
        assert "test-spoon-key" not in caplog.text


class TestEdamamService:
    """Edamam flows: one request per search."""

    @pytest.fixture
    def edamam(self, make_config):
        return EdamamService(make_config(recipe_provider="edamam", max_results=2).validate())

    @staticmethod
    def hit(recipe_id, lines):
        return {"recipe": {
            "uri": f"http://www.edamam.com/ontologies/edamam.owl#recipe_{recipe_id}",
            "label": f"Recipe {recipe_id}",
            "yield": 2,
            "calories": 800,
            "ingredientLines": lines,
        }}

    def test_name_search_capped(self, edamam, fake_response):
        payload = {"hits": [self.hit(i, ["1 egg"]) for i in "abc"]}
        with patch("app_services.requests.get", return_value=fake_response(payload)) as get:
            recipes = edamam.search_by_name("omelette")
        assert [r.id for r in recipes] == ["a", "b"]
        assert recipes[0].calories == 400
        assert get.call_count == 1

    def test_ingredient_search(self, edamam, fake_response):
        payload = {"hits": [
            self.hit("weak", ["1 cup rice", "1 onion", "2 carrots", "1 leek", "1 egg"]),
            self.hit("best", ["2 eggs", "1 cup flour", "1 cup milk"]),
            self.hit("none", ["1 cup rice", "1 onion", "2 carrots", "1 leek"]),
        ]}
        with patch("app_services.requests.get", return_value=fake_response(payload)):
            recipes = edamam.search_by_ingredients(("egg", "flour"))

        assert [r.id for r in recipes] == ["best", "weak"]
        assert recipes[0].match_score == 2 * 2 - 1
        assert recipes[0].ingredients == ("2 eggs", "1 cup flour", "1 cup milk")

    def test_fetch_details(self, edamam, fake_response):
        with patch("app_services.requests.get", return_value=fake_response(self.hit("xyz", ["1 egg"]))) as get:
            recipe = edamam.fetch_details("xyz")
        assert recipe.id == "xyz"
        assert get.call_args.args[0].endswith("/v2/xyz")


class TestRecipeSearchService:
    """Orchestration, outcome values and the latest result set."""

    @pytest.fixture
    def service(self, config):
        return RecipeSearchService.from_config(config)

    def test_name_search_outcome(self, service, fake_response):
        payload = {"results": [{"id": 1, "title": "Pasta"}]}
        with patch("app_services.requests.get", return_value=fake_response(payload)):
            outcome = service.search(SearchQuery.by_name("pasta"))
        assert outcome.status == "ok"
        assert outcome.sequence == 1
        assert service.last_outcome is outcome

    def test_empty_is_not_an_error(self, service, fake_response):
        with patch("app_services.requests.get", return_value=fake_response({"results": []})):
            outcome = service.search(SearchQuery.by_name("nothing"))
        assert outcome.status == "empty"
        assert outcome.ok
        assert outcome.error is None

    def test_results_replaced_not_merged(self, service, fake_response):
        first = fake_response({"results": [{"id": 1, "title": "Pasta"}]})
        second = fake_response({"results": [{"id": 2, "title": "Soup"}]})
        with patch("app_services.requests.get", side_effect=[first, second]):
            service.search(SearchQuery.by_name("pasta"))
            outcome = service.search(SearchQuery.by_name("soup"))
        assert [r.id for r in service.last_outcome.recipes] == [2]
        assert outcome.sequence == 2

    def test_failure_keeps_previous_results(self, service, fake_response):
        with patch("app_services.requests.get", return_value=fake_response({"results": [{"id": 1, "title": "A"}]})):
            service.search(SearchQuery.by_name("a"))
        with patch("app_services.requests.get", side_effect=requests.exceptions.ConnectionError()):
            with pytest.raises(ProviderError):
                service.search(SearchQuery.by_name("b"))
        assert service.last_outcome.recipes[0].id == 1

    def test_ingredient_mode_dispatch(self, service, fake_response):
        http = FakeProviderHTTP(fake_response, {
            "/findByIngredients": find_by_ingredients_payload(),
            "/informationBulk": lambda params: fake_response(
                bulk_payload(int(i) for i in params["ids"].split(","))
            ),
        })
        with patch("app_services.requests.get", side_effect=http):
            outcome = service.search(SearchQuery.by_ingredients(["Egg", "flour", "egg"]))
        assert [r.id for r in outcome.recipes] == [5, 1, 3]
        assert http.calls[0][1]["ingredients"] == "egg,+flour"

    def test_details_fall_back_to_last_results(self, service, fake_response):
        with patch("app_services.requests.get", return_value=fake_response({"results": [{"id": 7, "title": "Stew"}]})):
            service.search(SearchQuery.by_name("stew"))
        with patch("app_services.requests.get", return_value=fake_response({})):
            assert service.get_details(7).title == "Stew"

    def test_idempotent_searches(self, service, fake_response):
        payload = {"results": [{"id": i, "title": f"R{i}"} for i in range(4)]}
        with patch("app_services.requests.get", return_value=fake_response(payload)):
            first = service.search(SearchQuery.by_name("r"))
            second = service.search(SearchQuery.by_name("r"))
        assert first.recipes == second.recipes


class TestCreateProvider:
    """Provider selection happens once, from configuration."""

    def test_selects_spoonacular(self, config):
        assert isinstance(create_provider(config), SpoonacularService)

    def test_selects_edamam(self, make_config):
        assert isinstance(create_provider(make_config(recipe_provider="edamam")), EdamamService)

    def test_missing_credentials(self, make_config):
        with pytest.raises(ConfigurationError):
            create_provider(make_config(spoonacular_api_key=""))
