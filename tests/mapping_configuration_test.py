from datetime import datetime

import pytest
from pydantic import BaseModel, Field

from blogpost.configuration import BLOG_MAPPING, POST_MAPPING, build_blog_model
from blogpost.entities import Blog, Post
from blogpost.errors import ConfigurationError
from blogpost.mapping import (
    Column,
    EntityMapping,
    ForeignKey,
    ModelBuilder,
    OwnedCollection,
)


class Note(BaseModel):
    id: int | None = None
    author_id: int
    body: str


class Author(BaseModel):
    id: int | None = None
    name: str = Field(max_length=40)
    notes: list[Note] = Field(default_factory=list)


def author_mapping(**overrides) -> EntityMapping:
    values = {
        "columns": {
            "id": Column[int]("author_id", "INTEGER", primary_key=True, identity=True),
            "name": Column[str]("name", "VARCHAR(40)", max_length=40),
        },
        "collections": [OwnedCollection("notes", Note, foreign_key="author_id")],
    }
    values.update(overrides)
    return EntityMapping(Author, "authors", **values)


def note_mapping(**overrides) -> EntityMapping:
    values = {
        "columns": {
            "id": Column[int]("note_id", "INTEGER", primary_key=True, identity=True),
            "author_id": Column[int]("author_id", "INTEGER"),
            "body": Column[str]("body", "TEXT"),
        },
        "foreign_keys": [ForeignKey("author_id", Author)],
    }
    values.update(overrides)
    return EntityMapping(Note, "notes", **values)


class TestBlogModel:
    """The shipped blog mapping builds and has the documented layout."""

    def test_builds_without_errors(self):
        model = build_blog_model()
        assert model.mapping_for(Blog) is BLOG_MAPPING
        assert model.mapping_for(Post) is POST_MAPPING

    def test_blog_table_and_columns(self):
        assert BLOG_MAPPING.table_name == "blogs"
        assert BLOG_MAPPING.primary_key[0] == "id"
        assert BLOG_MAPPING.column_for("id").column == "blog_id"
        assert BLOG_MAPPING.column_for("name").column == "name"
        assert BLOG_MAPPING.column_for("name").max_length == 50
        assert BLOG_MAPPING.column_for("is_active").column == "is_active"

    def test_post_table_and_columns(self):
        assert POST_MAPPING.table_name == "articles"
        assert POST_MAPPING.column_for("id").column == "post_id"
        assert POST_MAPPING.column_for("parent_id").column == "blog_id"
        assert POST_MAPPING.column_for("content").max_length == 1000
        assert POST_MAPPING.column_for("updated").nullable is True
        assert POST_MAPPING.column_for("created").nullable is False

    def test_single_relationship_between_blog_and_post(self):
        """One foreign key column only; the collection is the same relationship"""
        assert len(POST_MAPPING.foreign_keys) == 1
        foreign_key = POST_MAPPING.foreign_keys[0]
        assert foreign_key.attribute == "parent_id"
        assert foreign_key.principal is Blog
        assert foreign_key.on_delete == "CASCADE"
        assert foreign_key.required is True

        columns = [column.column for column in POST_MAPPING.columns.values()]
        assert columns.count("blog_id") == 1
        assert BLOG_MAPPING.navigation_names == frozenset({"posts"})

    def test_principal_is_inserted_first(self):
        assert build_blog_model().insertion_order() == [BLOG_MAPPING, POST_MAPPING]

    def test_unknown_entity_has_no_mapping(self):
        with pytest.raises(ConfigurationError, match="No mapping registered"):
            build_blog_model().mapping_for(Author)

    def test_unknown_attribute(self):
        with pytest.raises(KeyError, match="Unknown attribute 'title'"):
            BLOG_MAPPING.column_for("title")


class TestConfigurationErrors:
    """Invalid mappings fail when the model is built, before any write."""

    def test_valid_custom_model(self):
        model = ModelBuilder().entity(author_mapping()).entity(note_mapping()).build()
        assert [m.table_name for m in model.insertion_order()] == ["authors", "notes"]

    def test_missing_primary_key(self):
        mapping = author_mapping(
            columns={"name": Column[str]("name", "VARCHAR(40)", max_length=40)}
        )
        with pytest.raises(ConfigurationError, match="exactly one primary key"):
            ModelBuilder().entity(mapping).entity(note_mapping()).build()

    def test_two_primary_keys(self):
        mapping = author_mapping(
            columns={
                "id": Column[int]("author_id", "INTEGER", primary_key=True),
                "name": Column[str]("name", "VARCHAR(40)", primary_key=True),
            }
        )
        with pytest.raises(ConfigurationError, match="found 2"):
            ModelBuilder().entity(mapping).entity(note_mapping()).build()

    def test_column_for_undeclared_attribute(self):
        mapping = author_mapping(
            columns={
                "id": Column[int]("author_id", "INTEGER", primary_key=True),
                "email": Column[str]("email", "TEXT"),
            }
        )
        with pytest.raises(ConfigurationError, match="unknown attribute 'Author.email'"):
            ModelBuilder().entity(mapping).entity(note_mapping()).build()

    def test_two_attributes_on_one_column(self):
        """A second relationship must not reuse (or shadow) the foreign key column"""

        class ShadowNote(BaseModel):
            id: int | None = None
            author_id: int
            parent_author_id: int
            body: str

        mapping = EntityMapping(
            ShadowNote,
            "notes",
            columns={
                "id": Column[int]("note_id", "INTEGER", primary_key=True),
                "author_id": Column[int]("author_id", "INTEGER"),
                "parent_author_id": Column[int]("author_id", "INTEGER"),
                "body": Column[str]("body", "TEXT"),
            },
        )
        with pytest.raises(ConfigurationError, match="both map to column 'notes.author_id'"):
            ModelBuilder().entity(author_mapping(collections=[])).entity(mapping).build()

    def test_relationship_declared_twice(self):
        mapping = note_mapping(
            foreign_keys=[ForeignKey("author_id", Author), ForeignKey("author_id", Author)]
        )
        with pytest.raises(ConfigurationError, match="declared twice"):
            ModelBuilder().entity(author_mapping()).entity(mapping).build()

    def test_foreign_key_to_unregistered_principal(self):
        with pytest.raises(ConfigurationError, match="No mapping registered for entity 'Author'"):
            ModelBuilder().entity(note_mapping()).build()

    def test_unknown_on_delete_action(self):
        mapping = note_mapping(foreign_keys=[ForeignKey("author_id", Author, on_delete="EXPLODE")])
        with pytest.raises(ConfigurationError, match="Unknown on_delete action"):
            ModelBuilder().entity(author_mapping()).entity(mapping).build()

    def test_required_foreign_key_cannot_be_nullable(self):
        mapping = note_mapping(
            columns={
                "id": Column[int]("note_id", "INTEGER", primary_key=True),
                "author_id": Column[int]("author_id", "INTEGER", nullable=True),
                "body": Column[str]("body", "TEXT"),
            }
        )
        with pytest.raises(ConfigurationError, match="cannot be nullable"):
            ModelBuilder().entity(author_mapping()).entity(mapping).build()

    def test_collection_without_foreign_key(self):
        mapping = note_mapping(foreign_keys=[])
        with pytest.raises(ConfigurationError, match="needs a foreign key"):
            ModelBuilder().entity(author_mapping()).entity(mapping).build()

    def test_navigation_not_declared_on_entity(self):
        mapping = author_mapping(collections=[OwnedCollection("comments", Note, foreign_key="author_id")])
        with pytest.raises(ConfigurationError, match="Navigation 'Author.comments'"):
            ModelBuilder().entity(mapping).entity(note_mapping()).build()

    def test_storage_max_length_must_match_entity(self):
        mapping = author_mapping(
            columns={
                "id": Column[int]("author_id", "INTEGER", primary_key=True),
                "name": Column[str]("name", "VARCHAR(80)", max_length=80),
            },
            collections=[],
        )
        with pytest.raises(ConfigurationError, match="max_length 80 differs"):
            ModelBuilder().entity(mapping).build()

    def test_table_mapped_twice(self):
        with pytest.raises(ConfigurationError, match="Table 'authors' is mapped by both"):
            ModelBuilder().entity(author_mapping(collections=[])).entity(
                note_mapping(foreign_keys=[])
            ).entity(
                EntityMapping(
                    Post,
                    "authors",
                    columns={"id": Column[int]("post_id", "INTEGER", primary_key=True)},
                )
            ).build()

    def test_entity_mapped_twice(self):
        with pytest.raises(ConfigurationError, match="mapped twice"):
            ModelBuilder().entity(author_mapping()).entity(author_mapping())

    def test_table_name_is_required(self):
        with pytest.raises(ConfigurationError, match="table_name is required"):
            EntityMapping(Author, "", columns={})


class TestColumn:
    def test_str_is_column_name(self):
        column = Column[datetime]("created", "TIMESTAMP WITH TIME ZONE")
        assert str(column) == "created"
        assert repr(column) == "Column(created)"

    def test_none_bypasses_converter(self):
        column = BLOG_MAPPING.column_for("is_active")
        assert column.to_storage(None) is None
        assert column.from_storage(None) is None
