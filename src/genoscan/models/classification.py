"""
Pydantic models and enums for sequence labels and pair categories.

The pair taxonomy is a closed enum: every pair of sequences maps to exactly
one category, derived only from the genotype/subtype labels of both sides.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class PairCategory(str, Enum):
    """
    Relationship between two sequences implied by their labels.

    Categories:
        WITHIN_SUBTYPE: same genotype, same non-empty subtype
        BETWEEN_SUBTYPE: same genotype, different non-empty subtypes
        BETWEEN_GENOTYPE: different genotypes
        SAME_GENOTYPE_UNKNOWN_SUBTYPE: same genotype, at least one subtype unknown
        QUERY_VS_REFERENCE: exactly one side is an unlabeled query
        QUERY_VS_QUERY: both sides are unlabeled queries
    """

    WITHIN_SUBTYPE = "Within-subtype"
    BETWEEN_SUBTYPE = "Between-subtype"
    BETWEEN_GENOTYPE = "Between-genotype"
    SAME_GENOTYPE_UNKNOWN_SUBTYPE = "Same-genotype-unknown-subtype"
    QUERY_VS_REFERENCE = "Query-vs-reference"
    QUERY_VS_QUERY = "Query-vs-query"


class BaselineRule(str, Enum):
    """
    Resampling rules for reference-only overlap baselines.

    Rules:
        LEAVE_ONE_OUT: drop one reference from every pair, recompute the
            between-genotype vs between-subtype overlap
        LEAVE_GENOTYPE_OUT: treat one reference as an unknown genotype by
            keeping only its comparisons to other genotypes
        LEAVE_SUBTYPE_OUT: treat one reference as an unknown subtype by
            dropping its comparisons to its own genotype+subtype
    """

    LEAVE_ONE_OUT = "leave_one_out"
    LEAVE_GENOTYPE_OUT = "leave_genotype_out"
    LEAVE_SUBTYPE_OUT = "leave_subtype_out"


class SequenceRecord(BaseModel):
    """
    Labels of one aligned sequence.

    Attributes:
        id: Alignment identifier
        genotype: Genotype label (1-8), None for an unlabeled query
        subtype: Subtype letter code. Empty string means the genotype is known
            but the subtype is not; None for unlabeled queries.
    """

    id: str = Field(min_length=1, description="Alignment identifier")
    genotype: int | None = Field(
        default=None,
        ge=1,
        le=8,
        description="Genotype label, None for unlabeled query sequences",
    )
    subtype: str | None = Field(
        default=None,
        description="Subtype code; '' when the genotype is known but the subtype is not",
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_subtype(cls, data: Any) -> Any:
        """A labeled genotype without subtype means 'subtype unknown' ('')."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        subtype = data.get("subtype")
        if isinstance(subtype, str):
            subtype = subtype.strip()
        if data.get("genotype") is None:
            subtype = None
        elif subtype is None:
            subtype = ""
        data["subtype"] = subtype
        return data

    @property
    def is_query(self) -> bool:
        """True for unlabeled (query) sequences."""
        return self.genotype is None

    @property
    def label(self) -> str:
        """Genotype+subtype label such as '1a', '2' or 'query'."""
        if self.genotype is None:
            return "query"
        return f"{self.genotype}{self.subtype}"

    model_config = {"frozen": True}
