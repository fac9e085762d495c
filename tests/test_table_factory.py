"""
Tests for the table factory and schema registry.

Tests verify:
1. Physical columns and metadata rows are created in declared order
2. Reserved, empty and duplicate names are rejected
3. Field additions are appended and never duplicated
4. A failed schema change leaves neither table nor metadata behind
"""

import threading

import pytest
from sqlalchemy import Integer, Text
from sqlalchemy.orm import sessionmaker

from content_hub.core.factory import TableFactory, schema_lock
from content_hub.core.fields import FieldType, ForeignKeyRole, MediaArity, StorageType
from content_hub.core.registry import SchemaRegistry, is_reserved
from content_hub.db.models import FieldMetaModel
from content_hub.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def factory(db_session):
    return TableFactory(db_session)


@pytest.fixture
def registry(db_session):
    return SchemaRegistry(db_session)


class TestCreateTable:
    """Tests for TableFactory.create_table."""

    def test_columns_follow_declared_order(self, factory, registry):
        fields = factory.create_table(
            "articles",
            [
                {"name": "title", "type": "text"},
                {"name": "body", "type": "textarea"},
                {"name": "cover", "type": "media_single"},
                {"name": "gallery", "type": "media_multiple"},
            ],
        )

        assert [f.name for f in fields] == ["title", "body", "cover", "gallery"]
        assert [f.storage_type for f in fields] == [
            StorageType.TEXT,
            StorageType.TEXT,
            StorageType.INTEGER,
            StorageType.TEXT,
        ]
        assert registry.column_names("articles") == [
            "id",
            "title",
            "body",
            "cover",
            "gallery",
        ]

    def test_physical_column_types(self, factory, registry):
        factory.create_table(
            "products",
            [{"name": "name", "type": "text"}, {"name": "stock", "type": "number"}],
        )
        physical = registry.physical_table("products")
        assert isinstance(physical.c["name"].type, Text)
        assert isinstance(physical.c["stock"].type, Integer)
        assert physical.c.id.primary_key

    def test_media_and_foreign_key_metadata(self, factory, registry):
        factory.create_table("authors", [{"name": "name", "type": "text"}])
        factory.create_table(
            "posts",
            [
                {"name": "title", "type": "text"},
                {"name": "cover", "type": "media_single"},
                {"name": "gallery", "type": "media_multiple"},
                {
                    "name": "author",
                    "type": "foreign_key",
                    "foreign_table": "authors",
                    "foreign_display": "name",
                },
            ],
        )

        assert registry.media_fields("posts") == {
            "cover": MediaArity.SINGLE,
            "gallery": MediaArity.MULTIPLE,
        }
        assert registry.foreign_key_fields("posts") == {
            "author": ForeignKeyRole(table="authors", display_column="name")
        }

    def test_self_reference_is_allowed(self, factory, registry):
        factory.create_table(
            "categories",
            [
                {"name": "name", "type": "text"},
                {"name": "parent", "type": "foreign_key", "foreign_table": "categories"},
            ],
        )
        assert registry.foreign_key_fields("categories")["parent"].table == "categories"

    def test_name_is_sanitized(self, factory, registry):
        factory.create_table("blog posts!", [{"name": "head line", "type": "text"}])
        assert registry.has_table("blogposts")
        assert registry.column_names("blogposts") == ["id", "headline"]

    def test_unsanitizable_fields_are_skipped(self, factory, registry):
        factory.create_table(
            "notes", [{"name": "!!!", "type": "text"}, {"name": "text", "type": "text"}]
        )
        assert registry.column_names("notes") == ["id", "text"]

    def test_existing_table_conflicts(self, factory):
        factory.create_table("articles", [{"name": "title", "type": "text"}])
        with pytest.raises(ConflictError):
            factory.create_table("articles", [{"name": "title", "type": "text"}])
        with pytest.raises(ConflictError):
            factory.create_table("Articles", [{"name": "title", "type": "text"}])

    @pytest.mark.parametrize(
        "name", ["media", "languages", "table_field_meta", "Users", "sqlite_stat9"]
    )
    def test_reserved_names_rejected(self, factory, name):
        with pytest.raises(ValidationError):
            factory.create_table(name, [{"name": "title", "type": "text"}])

    def test_empty_name_rejected(self, factory):
        with pytest.raises(ValidationError):
            factory.create_table("???", [{"name": "title", "type": "text"}])

    def test_no_fields_rejected(self, factory):
        with pytest.raises(ValidationError):
            factory.create_table("empty", [])
        with pytest.raises(ValidationError):
            factory.create_table("empty", [{"name": "%%", "type": "text"}])

    def test_invalid_definitions_rejected(self, factory):
        with pytest.raises(ValidationError):
            factory.create_table("bad", [{"name": "title", "type": "rich_text"}])
        with pytest.raises(ValidationError):
            factory.create_table("bad", [{"name": "id", "type": "number"}])
        with pytest.raises(ValidationError):
            factory.create_table(
                "bad", [{"name": "a", "type": "text"}, {"name": "A", "type": "text"}]
            )

    def test_foreign_table_must_exist(self, factory, registry):
        with pytest.raises(ValidationError):
            factory.create_table(
                "posts",
                [{"name": "author", "type": "foreign_key", "foreign_table": "nobody"}],
            )
        with pytest.raises(ValidationError):
            factory.create_table("posts", [{"name": "author", "type": "foreign_key"}])
        assert not registry.has_table("posts")

    def test_failure_leaves_nothing_behind(self, factory, registry, db_session):
        # Stale metadata makes the registry write fail after the DDL ran.
        db_session.add(
            FieldMetaModel(
                table_name="ghosts",
                field_name="title",
                position=0,
                field_type="text",
                storage_type="TEXT",
            )
        )
        db_session.commit()

        with pytest.raises(ConflictError):
            factory.create_table("ghosts", [{"name": "title", "type": "text"}])

        assert not registry.has_table("ghosts")
        assert (
            db_session.query(FieldMetaModel)
            .filter(FieldMetaModel.table_name == "ghosts")
            .count()
            == 1
        )


class TestAddField:
    """Tests for TableFactory.add_field."""

    def test_field_is_appended(self, factory, registry):
        factory.create_table("articles", [{"name": "title", "type": "text"}])
        definition = factory.add_field("articles", {"name": "views", "type": "number"})

        assert definition.declared_type == FieldType.NUMBER
        assert registry.column_names("articles") == ["id", "title", "views"]
        assert [f.name for f in registry.fields_of("articles")] == ["title", "views"]

    def test_adding_same_field_twice_conflicts(self, factory, db_session):
        factory.create_table("articles", [{"name": "title", "type": "text"}])
        factory.add_field("articles", {"name": "summary", "type": "textarea"})

        with pytest.raises(ConflictError):
            factory.add_field("articles", {"name": "summary", "type": "textarea"})

        rows = (
            db_session.query(FieldMetaModel)
            .filter(
                FieldMetaModel.table_name == "articles",
                FieldMetaModel.field_name == "summary",
            )
            .count()
        )
        assert rows == 1

    def test_unknown_table(self, factory):
        with pytest.raises(NotFoundError):
            factory.add_field("missing", {"name": "title", "type": "text"})

    def test_empty_field_name(self, factory):
        factory.create_table("articles", [{"name": "title", "type": "text"}])
        with pytest.raises(ValidationError):
            factory.add_field("articles", {"name": "***", "type": "text"})


class TestSchemaRegistry:
    """Tests for registry lookups."""

    def test_user_tables_exclude_system_tables(self, factory, registry):
        factory.create_table("zebras", [{"name": "name", "type": "text"}])
        factory.create_table("apples", [{"name": "name", "type": "text"}])
        assert registry.user_tables() == ["apples", "zebras"]

    def test_system_tables_are_reserved(self):
        assert is_reserved("media")
        assert is_reserved("SQLITE_SEQUENCE")
        assert is_reserved("sqlite_anything")
        assert not is_reserved("articles")

    def test_system_tables_are_not_content(self, registry):
        assert not registry.has_table("languages")
        with pytest.raises(NotFoundError):
            registry.physical_table("content_translations")

    def test_field_lookup(self, factory, registry):
        factory.create_table("articles", [{"name": "title", "type": "text"}])
        assert registry.field("articles", "title").declared_type == FieldType.TEXT
        assert registry.field("articles", "nope") is None

    def test_schema_lock_is_per_table(self):
        assert schema_lock("articles") is schema_lock("ARTICLES")
        assert schema_lock("articles") is not schema_lock("authors")


class TestConcurrentSchemaChanges:
    """Schema changes to one table are serialized across sessions."""

    def test_concurrent_add_field(self, file_engine):
        factory = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
        setup = factory()
        try:
            TableFactory(setup).create_table("articles", [{"name": "title", "type": "text"}])
        finally:
            setup.close()

        barrier = threading.Barrier(2)
        outcomes = []

        def add_summary():
            session = factory()
            try:
                barrier.wait()
                TableFactory(session).add_field(
                    "articles", {"name": "summary", "type": "textarea"}
                )
                outcomes.append("added")
            except ConflictError:
                outcomes.append("conflict")
            finally:
                session.close()

        threads = [threading.Thread(target=add_summary) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ["added", "conflict"]

        check = factory()
        try:
            registry = SchemaRegistry(check)
            assert registry.column_names("articles") == ["id", "title", "summary"]
            rows = (
                check.query(FieldMetaModel)
                .filter(
                    FieldMetaModel.table_name == "articles",
                    FieldMetaModel.field_name == "summary",
                )
                .count()
            )
            assert rows == 1
        finally:
            check.close()
