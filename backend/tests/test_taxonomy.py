"""
Tests for taxonomy resolution (Brand -> Model -> DeviceType).

Covers:
- find-or-create returning existing rows
- Model names scoped to their brand, type names scoped to their model
- Partial taxonomies (no type, no model, no brand)
- Recovery when a concurrent writer inserted the same row first
"""

import pytest

from models import Brand, Model, DeviceType
from schemas import RegistrationRequest
from services import taxonomy
from services.errors import RegistrationConflict, RegistrationRejected
from services.taxonomy import TaxonomyResolver, find_or_create


class TestFindOrCreate:
    """find_or_create against a single session."""

    @pytest.mark.asyncio
    async def test_creates_then_finds(self, db_session, count_rows):
        first, created = await find_or_create(db_session, Brand, name="Acme")
        assert created is True

        second, created = await find_or_create(db_session, Brand, name="Acme")
        assert created is False
        assert second.id == first.id
        assert await count_rows(db_session, Brand) == 1

    @pytest.mark.asyncio
    async def test_defaults_only_used_on_create(self, db_session):
        brand, _ = await find_or_create(db_session, Brand, name="Acme")
        model, _ = await find_or_create(db_session, Model, brand_id=brand.id, name="X1")

        created, _ = await find_or_create(
            db_session, DeviceType,
            defaults={"classification": "generic"},
            model_id=model.id, name="Generic",
        )
        found, was_created = await find_or_create(
            db_session, DeviceType,
            defaults={"classification": "other"},
            model_id=model.id, name="Generic",
        )
        assert was_created is False
        assert found.id == created.id
        assert found.classification == "generic"

    @pytest.mark.asyncio
    async def test_row_inserted_concurrently_is_reselected(
        self, db_session, count_rows, monkeypatch
    ):
        """A stale first SELECT hits the unique constraint and recovers."""
        brand = Brand(name="Acme")
        db_session.add(brand)
        await db_session.commit()
        brand_id = brand.id

        real_select = taxonomy._select_one
        calls = {"n": 0}

        async def stale_select(db, model_cls, natural_key):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_select(db, model_cls, natural_key)

        monkeypatch.setattr(taxonomy, "_select_one", stale_select)

        row, created = await find_or_create(db_session, Brand, name="Acme")
        assert created is False
        assert row.id == brand_id
        assert calls["n"] == 2
        assert await count_rows(db_session, Brand) == 1

    @pytest.mark.asyncio
    async def test_persistent_conflict_raises(self, db_session, monkeypatch):
        db_session.add(Brand(name="Acme"))
        await db_session.commit()

        async def always_stale(db, model_cls, natural_key):
            return None

        monkeypatch.setattr(taxonomy, "_select_one", always_stale)

        with pytest.raises(RegistrationConflict):
            await find_or_create(db_session, Brand, name="Acme")


class TestTaxonomyResolver:
    """Resolving a full (brand, model, device_type) triple."""

    @pytest.mark.asyncio
    async def test_full_taxonomy_created(self, db_session, count_rows):
        resolver = TaxonomyResolver()
        device_type = await resolver.resolve(db_session, "Brand 1", "Model 1", "Generic")

        assert device_type is not None
        assert device_type.classification == "generic"
        assert await count_rows(db_session, Brand) == 1
        assert await count_rows(db_session, Model) == 1
        assert await count_rows(db_session, DeviceType) == 1

    @pytest.mark.asyncio
    async def test_same_triple_reused(self, db_session, count_rows):
        resolver = TaxonomyResolver()
        first = await resolver.resolve(db_session, "Brand 1", "Model 1", "generic")
        second = await resolver.resolve(db_session, "Brand 1", "Model 1", "generic")

        assert first.id == second.id
        assert await count_rows(db_session, DeviceType) == 1

    @pytest.mark.asyncio
    async def test_model_name_scoped_to_brand(self, db_session, count_rows):
        """The same model name under two brands yields two models."""
        resolver = TaxonomyResolver()
        first = await resolver.resolve(db_session, "Brand 1", "Model 1", "generic")
        second = await resolver.resolve(db_session, "Brand 2", "Model 1", "generic")

        assert first.model_id != second.model_id
        assert await count_rows(db_session, Brand) == 2
        assert await count_rows(db_session, Model) == 2

    @pytest.mark.asyncio
    async def test_new_type_under_existing_model(self, db_session, count_rows):
        """A second type for the same brand/model shares the model row."""
        resolver = TaxonomyResolver()
        first = await resolver.resolve(db_session, "Brand 1", "Model 1", "type1")
        second = await resolver.resolve(db_session, "Brand 1", "Model 1", "type2")

        assert first.id != second.id
        assert first.model_id == second.model_id
        assert await count_rows(db_session, Model) == 1
        assert await count_rows(db_session, DeviceType) == 2

    @pytest.mark.asyncio
    async def test_type_names_differing_in_case_share_a_row(self, db_session, count_rows):
        resolver = TaxonomyResolver()
        first = await resolver.resolve(db_session, "Brand 1", "Model 1", "Generic")
        second = await resolver.resolve(db_session, "Brand 1", "Model 1", " generic")

        assert first.id == second.id
        assert first.name == "generic"
        assert await count_rows(db_session, DeviceType) == 1

    @pytest.mark.asyncio
    async def test_no_device_type_is_typeless(self, db_session, count_rows):
        resolver = TaxonomyResolver()
        assert await resolver.resolve(db_session, "Brand 1", "Model 1", None) is None
        assert await count_rows(db_session, Brand) == 0

    @pytest.mark.asyncio
    async def test_device_type_without_model_is_typeless(self, db_session, count_rows):
        resolver = TaxonomyResolver()
        assert await resolver.resolve(db_session, "Brand 1", None, "generic") is None
        assert await count_rows(db_session, Brand) == 0

    @pytest.mark.asyncio
    async def test_model_without_brand_rejected(self, db_session, count_rows):
        resolver = TaxonomyResolver()
        with pytest.raises(RegistrationRejected):
            await resolver.resolve(db_session, None, "Model 1", "generic")
        assert await count_rows(db_session, Model) == 0


class TestTaxonomyPolicy:
    def test_model_without_brand(self):
        request = RegistrationRequest(model="Model 1", device_type="generic")
        with pytest.raises(RegistrationRejected) as exc_info:
            TaxonomyResolver().check_policy(request)
        assert exc_info.value.reason == "brand_required"
        assert exc_info.value.errors[0]["field"] == "brand"

    def test_brand_without_model_allowed(self):
        request = RegistrationRequest(brand="Brand 1", device_type="generic")
        TaxonomyResolver().check_policy(request)
