"""
Physical naming of collection tables and fields.
"""
from enum import Enum
from typing import Iterable, List, Optional, Union

from .errors import InvalidInputError


class CollectionFieldNames:
    ID = "_id"
    DOCUMENT = "document"
    EMBEDDING = "embedding"
    METADATA = "metadata"

    ALL_FIELDS = [ID, DOCUMENT, EMBEDDING, METADATA]


class CollectionNames:
    PREFIX = "c$v1$"

    @staticmethod
    def table_name(collection_name: str) -> str:
        return f"{CollectionNames.PREFIX}{collection_name}"

    @staticmethod
    def collection_name_from_table(table_name: str) -> Optional[str]:
        """Strip the collection prefix, or return None for tables that are not collections"""
        if table_name.startswith(CollectionNames.PREFIX):
            return table_name[len(CollectionNames.PREFIX):]
        return None


class IncludeField(str, Enum):
    """Optional result fields a caller can ask for"""
    DOCUMENTS = "documents"
    METADATAS = "metadatas"
    EMBEDDINGS = "embeddings"


DEFAULT_INCLUDE = [IncludeField.DOCUMENTS, IncludeField.METADATAS]
ALL_INCLUDE = [IncludeField.DOCUMENTS, IncludeField.METADATAS, IncludeField.EMBEDDINGS]

IncludeParam = Optional[Iterable[Union[str, IncludeField]]]


def normalize_include(include: IncludeParam) -> List[IncludeField]:
    """
    Normalize an include list. None means documents + metadatas.
    Unknown names (other than 'distances' and 'ids', which are always returned)
    raise InvalidInputError.
    """
    if include is None:
        return list(DEFAULT_INCLUDE)
    if isinstance(include, (str, IncludeField)):
        include = [include]

    fields: List[IncludeField] = []
    for item in include:
        if isinstance(item, IncludeField):
            field = item
        elif item in ("distances", "ids"):
            continue
        else:
            try:
                field = IncludeField(item)
            except ValueError:
                raise InvalidInputError(
                    f"Unknown include field {item!r}, expected one of {[f.value for f in IncludeField]}"
                ) from None
        if field not in fields:
            fields.append(field)
    return fields
