"""
Catalog and Index Data Models

This module defines the canonical records that flow through the search tool:

- ServiceRecord: one entry read from the corpus file
- ServiceDocument: one stored entry, with its description embedding
- IndexSchema: the field and vector-search layout of the index
- QueryResult: one ranked hit returned by a query

Field names on the index side (``serviceName``, ``descriptionVector``) are
mapped explicitly in ``ServiceDocument.to_index_fields`` and
``ServiceDocument.from_index_fields``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator


# ---------------------------------------------------------------------
# Index field names
# ---------------------------------------------------------------------

ID_FIELD = "id"
NAME_FIELD = "serviceName"
DESCRIPTION_FIELD = "description"
VECTOR_FIELD = "descriptionVector"

PROJECTABLE_FIELDS = (NAME_FIELD, DESCRIPTION_FIELD)

DEFAULT_VECTOR_CONFIG = "vector-config"


def derive_document_id(service_name: str) -> str:
    """Return the document key for a service name: every space removed."""
    return service_name.replace(" ", "")


# ---------------------------------------------------------------------
# Corpus and stored documents
# ---------------------------------------------------------------------

class ServiceRecord(BaseModel):
    """
    A single corpus entry as written by the catalog generator.

    The corpus uses camelCase keys, so ``service_name`` is read from
    ``serviceName``.
    """

    service_name: str = Field(..., alias="serviceName")
    description: str

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("service_name")
    @classmethod
    def _name_yields_id(cls, value: str) -> str:
        if not derive_document_id(value):
            raise ValueError("serviceName must contain a non-space character")
        return value


class ServiceDocument(BaseModel):
    """
    A single stored catalog entry.

    This model is the authoritative shape for:
    - Vector index storage
    - Metadata persistence to JSON
    - Query result mapping
    """

    id: str = Field(..., min_length=1)
    service_name: str
    description: str
    description_vector: List[float]

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    @classmethod
    def from_record(
        cls,
        record: ServiceRecord,
        vector: List[float],
    ) -> "ServiceDocument":
        return cls(
            id=derive_document_id(record.service_name),
            service_name=record.service_name,
            description=record.description,
            description_vector=vector,
        )

    def to_index_fields(self) -> Dict[str, Any]:
        return {
            ID_FIELD: self.id,
            NAME_FIELD: self.service_name,
            DESCRIPTION_FIELD: self.description,
            VECTOR_FIELD: list(self.description_vector),
        }

    @classmethod
    def from_index_fields(cls, fields: Dict[str, Any]) -> "ServiceDocument":
        return cls(
            id=fields[ID_FIELD],
            service_name=fields[NAME_FIELD],
            description=fields[DESCRIPTION_FIELD],
            description_vector=fields[VECTOR_FIELD],
        )


# ---------------------------------------------------------------------
# Index schema
# ---------------------------------------------------------------------

class VectorAlgorithmConfig(BaseModel):
    """A named approximate (or exhaustive) nearest-neighbour configuration."""

    name: str = Field(..., min_length=1)
    kind: Literal["hnsw", "exhaustive"] = "hnsw"
    m: int = Field(default=4, ge=2)
    ef_construction: int = Field(default=400, ge=1)
    ef_search: int = Field(default=500, ge=1)

    model_config = ConfigDict(frozen=True)


class IndexField(BaseModel):
    name: str = Field(..., min_length=1)
    type: Literal["string", "vector"] = "string"
    key: bool = False
    searchable: bool = False
    filterable: bool = False
    dimensions: Optional[int] = Field(default=None, gt=0)
    algorithm_configuration: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class IndexSchema(BaseModel):
    """
    Field layout and vector-search configuration of an index.

    Exactly one key field and one vector field are required, and the vector
    field must reference one of the declared algorithm configurations.
    """

    name: str = Field(..., min_length=1)
    fields: List[IndexField]
    algorithms: List[VectorAlgorithmConfig]

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_layout(self) -> "IndexSchema":
        keys = [f for f in self.fields if f.key]
        if len(keys) != 1:
            raise ValueError("schema must declare exactly one key field")

        vectors = [f for f in self.fields if f.type == "vector"]
        if len(vectors) != 1:
            raise ValueError("schema must declare exactly one vector field")

        vector = vectors[0]
        if vector.dimensions is None:
            raise ValueError("vector field must declare its dimensions")

        names = {a.name for a in self.algorithms}
        if vector.algorithm_configuration not in names:
            raise ValueError(
                f"unknown algorithm configuration: {vector.algorithm_configuration!r}"
            )
        return self

    @property
    def vector_field(self) -> IndexField:
        return next(f for f in self.fields if f.type == "vector")

    @property
    def dimensions(self) -> int:
        return self.vector_field.dimensions

    @property
    def algorithm(self) -> VectorAlgorithmConfig:
        name = self.vector_field.algorithm_configuration
        return next(a for a in self.algorithms if a.name == name)


def build_index_schema(
    name: str,
    dimensions: int,
    algorithm: Literal["hnsw", "exhaustive"] = "hnsw",
    config_name: str = DEFAULT_VECTOR_CONFIG,
) -> IndexSchema:
    """Return the catalog index schema for vectors of ``dimensions`` floats."""
    return IndexSchema(
        name=name,
        fields=[
            IndexField(name=ID_FIELD, key=True),
            IndexField(name=NAME_FIELD),
            # searchable text field; the catalog is only queried by vector
            IndexField(name=DESCRIPTION_FIELD, searchable=True, filterable=True),
            IndexField(
                name=VECTOR_FIELD,
                type="vector",
                searchable=True,
                dimensions=dimensions,
                algorithm_configuration=config_name,
            ),
        ],
        algorithms=[VectorAlgorithmConfig(name=config_name, kind=algorithm)],
    )


# ---------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------

class QueryResult(BaseModel):
    """One ranked hit. Fields not projected by the query are None."""

    service_name: Optional[str] = None
    description: Optional[str] = None
    score: float

    model_config = ConfigDict(frozen=True)
