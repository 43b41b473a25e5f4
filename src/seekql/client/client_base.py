"""
SQL implementation shared by every client

BaseClient holds everything that is expressed in SQL: collection management
and the _collection_* operations that Collection objects delegate to.
Concrete clients only provide statement execution (see BaseConnection).
"""
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from .admin_client import AdminAPI
from .base_connection import BackendRow, BaseConnection
from .codec import id_to_bytes, metadata_to_json, vector_to_string
from .collection import Collection, DocumentsParam, EmbeddingsParam, IdsParam, MetadatasParam
from .configuration import (
    DEFAULT_DISTANCE_METRIC,
    DEFAULT_VECTOR_DIMENSION,
    DistanceMetric,
    HNSWConfiguration,
    _NOT_PROVIDED,
)
from .dml_utils import (
    embed_documents,
    merge_values,
    normalize_embeddings,
    normalize_inputs,
    resolve_embeddings,
    validate_dimension,
    validate_lengths,
)
from .embedding_function import EmbeddingFunction, get_default_embedding_function
from .errors import (
    ConfigError,
    EmbeddingError,
    InvalidInputError,
    NotFoundError,
    SerializationError,
    SqlError,
)
from .filter_builder import FilterBuilder
from .filters import as_doc_filter, as_filter, combine_filters
from .hybrid_search import (
    HybridKnn,
    HybridQuery,
    as_hybrid_knn,
    as_hybrid_query,
    as_hybrid_rank,
    build_search_parm,
    build_text_search_parm,
    is_invalid_argument_error,
    to_search_parm_json,
)
from .meta_info import (
    ALL_INCLUDE,
    CollectionFieldNames,
    CollectionNames,
    IncludeField,
    IncludeParam,
    normalize_include,
)
from .query_result import (
    GetResult,
    QueryResult,
    build_get_result,
    build_query_result,
    empty_query_result,
    hybrid_rows_to_query_result,
)

logger = logging.getLogger(__name__)

# MySQL has no OFFSET without LIMIT; this is the documented "all rows" limit
MAX_LIMIT = 18446744073709551615

# Type aliases for parameters that can be a value, None, or the not-provided sentinel
EmbeddingFunctionParam = Union[EmbeddingFunction, None, Any]
ConfigurationParam = Union[HNSWConfiguration, None, Any]


def build_create_table_sql(table_name: str, dimension: int, distance: DistanceMetric) -> str:
    """CREATE TABLE statement for a collection (HNSW vector index, ik fulltext index)"""
    return (
        f"CREATE TABLE `{table_name}` ("
        f"{CollectionFieldNames.ID} varbinary(512) PRIMARY KEY NOT NULL, "
        f"{CollectionFieldNames.DOCUMENT} string, "
        f"{CollectionFieldNames.EMBEDDING} vector({dimension}), "
        f"{CollectionFieldNames.METADATA} json, "
        f"FULLTEXT INDEX idx_fts({CollectionFieldNames.DOCUMENT}) WITH PARSER ik, "
        f"VECTOR INDEX idx_vec ({CollectionFieldNames.EMBEDDING}) "
        f"with(distance={distance.value}, type=hnsw, lib=vsag)"
        f") ORGANIZATION = HEAP;"
    )


def parse_dimension(describe_rows: Sequence[BackendRow]) -> Optional[int]:
    """Read N from the `vector(N)` type of the embedding column in DESCRIBE output"""
    for row in describe_rows:
        field_name = row.raw("Field") or row.raw("field") or row.get_string_by_index(0)
        if field_name != CollectionFieldNames.EMBEDDING:
            continue
        field_type = row.raw("Type") or row.raw("type") or row.get_string_by_index(1)
        if isinstance(field_type, bytes):
            field_type = field_type.decode("utf-8", errors="replace")
        match = re.search(r'vector\s*\(\s*(\d+)\s*\)', str(field_type or ""), re.IGNORECASE)
        return int(match.group(1)) if match else None
    return None


def parse_distance(create_stmt: str) -> DistanceMetric:
    """Read the metric from `with(distance=...)` of SHOW CREATE TABLE, l2 when absent"""
    match = re.search(r'with\s*\([^)]*distance\s*=\s*([\'"]?)(\w+)\1', create_stmt or "", re.IGNORECASE)
    if not match:
        return DistanceMetric.L2
    try:
        return DistanceMetric.parse(match.group(2))
    except ConfigError:
        logger.warning(f"Unknown distance value '{match.group(2)}' in CREATE TABLE statement, defaulting to l2")
        return DistanceMetric.L2


def _unquote(text: str) -> str:
    """Remove one pair of matching quotes wrapping the whole text"""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return text[1:-1]
    return text


def _sql(*parts: str) -> str:
    return " ".join(part for part in parts if part)


def _check_non_negative(name: str, value: Optional[int]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError(f"{name} must be a non-negative integer, got {value!r}")


def _check_n_results(n_results: int) -> None:
    if isinstance(n_results, bool) or not isinstance(n_results, int) or n_results <= 0:
        raise InvalidInputError(f"n_results must be a positive integer, got {n_results!r}")


class ClientAPI(ABC):
    """
    Collection management as seen through Client().
    """

    @abstractmethod
    def create_collection(
        self,
        name: str,
        configuration: ConfigurationParam = _NOT_PROVIDED,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED,
        **kwargs
    ) -> Collection:
        """
        Create collection

        Args:
            name: Collection name
            configuration: HNSW index configuration (HNSWConfiguration)
            embedding_function: Embedding function to convert documents to embeddings.
                               Defaults to DefaultEmbeddingFunction.
                               If explicitly set to None, collection will not have an embedding function.
            **kwargs: Collection metadata
        """
        pass

    @abstractmethod
    def get_collection(
        self,
        name: str,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED
    ) -> Collection:
        """Open an existing collection"""
        pass

    @abstractmethod
    def delete_collection(self, name: str) -> None:
        """Delete collection"""
        pass

    @abstractmethod
    def list_collections(self) -> List[Collection]:
        """Every collection in the current database"""
        pass

    @abstractmethod
    def list_collection_names(self) -> List[str]:
        """List the names of all collections"""
        pass

    @abstractmethod
    def has_collection(self, name: str) -> bool:
        """Whether the collection table exists"""
        pass

    @abstractmethod
    def get_or_create_collection(
        self,
        name: str,
        configuration: ConfigurationParam = _NOT_PROVIDED,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED,
        **kwargs
    ) -> Collection:
        """Get an existing collection or create it"""
        pass

    @abstractmethod
    def count_collection(self) -> int:
        """Number of collections in the current database"""
        pass


class BaseClient(BaseConnection, AdminAPI, ClientAPI):
    """
    Everything a client does, expressed as SQL.

    1. Collection management: create_collection, get_collection, list_collections ...
    2. The _collection_* row operations that Collection methods delegate to
    3. Statement execution and database management are left to subclasses
    """

    # ==================== Collections ====================

    @staticmethod
    def _embedding_function_dimension(embedding_function: Any) -> int:
        """
        Read the dimension property, or embed a probe string for functions
        that do not expose one
        """
        dimension = getattr(embedding_function, "dimension", None)
        if dimension is not None:
            return int(dimension)
        probe = embed_documents(embedding_function, ["seekdb"])
        if not probe or not probe[0]:
            raise EmbeddingError("Embedding function returned empty result when called with 'seekdb'")
        return len(probe[0])

    def create_collection(
        self,
        name: str,
        configuration: ConfigurationParam = _NOT_PROVIDED,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED,
        **kwargs
    ) -> Collection:
        """
        Create the table for a new collection

        Args:
            name: Collection name
            configuration: HNSW index configuration (HNSWConfiguration).
                          If not provided, uses dimension=384 (or the embedding function's
                          dimension) and distance='cosine'.
                          If explicitly set to None, the dimension comes from embedding_function.
            embedding_function: Embedding function to convert documents to embeddings.
                               Defaults to DefaultEmbeddingFunction.
                               If explicitly set to None, collection will not have an embedding function.
            **kwargs: Collection metadata

        Raises:
            ConfigError: if the dimension cannot be determined, or the configuration
                         dimension doesn't match the embedding function's dimension

        Examples:
            >>> collection = client.create_collection('my_collection')

            >>> config = HNSWConfiguration(dimension=128, distance='l2')
            >>> collection = client.create_collection('vectors', configuration=config, embedding_function=None)
        """
        if embedding_function is _NOT_PROVIDED:
            embedding_function = get_default_embedding_function()

        ef_dimension = None
        if embedding_function is not None:
            ef_dimension = self._embedding_function_dimension(embedding_function)
            logger.info(f"Using embedding function dimension: {ef_dimension}")

        if configuration is _NOT_PROVIDED:
            configuration = HNSWConfiguration(
                dimension=ef_dimension or DEFAULT_VECTOR_DIMENSION,
                distance=DEFAULT_DISTANCE_METRIC,
            )
        elif configuration is None:
            if ef_dimension is None:
                raise ConfigError(
                    "Cannot create collection: configuration is explicitly set to None and "
                    "embedding_function is also None, so the dimension is unknown. Provide "
                    "HNSWConfiguration(dimension=..., distance=...) or an embedding_function."
                )
            configuration = HNSWConfiguration(dimension=ef_dimension, distance=DEFAULT_DISTANCE_METRIC)

        if not isinstance(configuration, HNSWConfiguration):
            raise ConfigError(f"configuration must be HNSWConfiguration, got {type(configuration).__name__}")

        if ef_dimension is not None and configuration.dimension != ef_dimension:
            raise ConfigError(
                f"Configuration dimension ({configuration.dimension}) doesn't match "
                f"embedding function dimension ({ef_dimension})"
            )

        table_name = CollectionNames.table_name(name)
        sql = build_create_table_sql(table_name, configuration.dimension, configuration.distance)
        logger.info(f"Creating collection '{name}' (dimension={configuration.dimension}, distance={configuration.distance.value})")
        logger.debug(f"Executing SQL: {sql}")
        self.execute(sql)
        logger.info(f"✅ Collection '{name}' created")

        return Collection(
            client=self,
            name=name,
            dimension=configuration.dimension,
            distance=configuration.distance,
            embedding_function=embedding_function,
            **kwargs
        )

    def get_collection(
        self,
        name: str,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED
    ) -> Collection:
        """
        Open an existing collection

        Dimension and distance metric are read back from the table definition.

        Raises:
            NotFoundError: if the collection does not exist
            ConfigError: if the vector dimension cannot be determined
        """
        table_name = CollectionNames.table_name(name)

        try:
            table_info = self.fetch_all(f"DESCRIBE `{table_name}`")
        except NotFoundError as e:
            raise NotFoundError(f"Collection '{name}' does not exist (table '{table_name}' not found)") from e
        if not table_info:
            raise NotFoundError(f"Collection '{name}' does not exist (table '{table_name}' not found)")

        dimension = parse_dimension(table_info)
        if dimension is None:
            raise ConfigError(f"Cannot determine vector dimension of collection '{name}'")

        create_rows = self.fetch_all(f"SHOW CREATE TABLE `{table_name}`")
        create_stmt = ""
        if create_rows:
            row = create_rows[0]
            create_stmt = row.raw("Create Table") or row.get_string_by_index(1) or ""
        distance = parse_distance(create_stmt)

        if embedding_function is _NOT_PROVIDED:
            embedding_function = get_default_embedding_function()

        return Collection(
            client=self,
            name=name,
            dimension=dimension,
            distance=distance,
            embedding_function=embedding_function,
        )

    def delete_collection(self, name: str) -> None:
        """
        Drop a collection and all of its rows

        Raises:
            NotFoundError: if the collection does not exist
        """
        table_name = CollectionNames.table_name(name)
        if not self.has_collection(name):
            raise NotFoundError(f"Collection '{name}' does not exist (table '{table_name}' not found)")
        self.execute(f"DROP TABLE IF EXISTS `{table_name}`")
        logger.info(f"✅ Collection '{name}' deleted")

    def list_collection_names(self) -> List[str]:
        rows = self.fetch_all(f"SHOW TABLES LIKE '{CollectionNames.PREFIX}%'")
        names = []
        for row in rows:
            collection_name = CollectionNames.collection_name_from_table(row.get_string_by_index(0) or "")
            if collection_name:
                names.append(collection_name)
        return names

    def list_collections(self) -> List[Collection]:
        """
        Open every collection in the current database

        Tables whose definition cannot be read are skipped with a warning.
        """
        collections = []
        for name in self.list_collection_names():
            try:
                collections.append(self.get_collection(name))
            except (NotFoundError, ConfigError) as e:
                logger.warning(f"Skipping collection '{name}': {e}")
        return collections

    def count_collection(self) -> int:
        """
        Number of collection tables in the current database

        Examples:
            count = client.count_collection()
        """
        return len(self.list_collection_names())

    def has_collection(self, name: str) -> bool:
        table_name = CollectionNames.table_name(name)
        try:
            table_info = self.fetch_all(f"DESCRIBE `{table_name}`")
        except (NotFoundError, SqlError):
            return False
        return len(table_info) > 0

    def get_or_create_collection(
        self,
        name: str,
        configuration: ConfigurationParam = _NOT_PROVIDED,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED,
        **kwargs
    ) -> Collection:
        """
        get_collection when the table exists, create_collection otherwise

        configuration is only used when the collection is created.
        """
        if self.has_collection(name):
            return self.get_collection(name, embedding_function=embedding_function)
        return self.create_collection(
            name=name,
            configuration=configuration,
            embedding_function=embedding_function,
            **kwargs
        )

    # ==================== Row operations, called by Collection ====================

    # -------------------- Writes --------------------

    def _collection_add(
        self,
        collection: Collection,
        ids: IdsParam,
        embeddings: EmbeddingsParam = None,
        metadatas: MetadatasParam = None,
        documents: DocumentsParam = None,
    ) -> None:
        """
        [Internal] Add data to collection

        Embeddings are taken as given, or generated from documents with the
        collection's embedding function. Everything is validated and encoded
        before the first INSERT is sent; rows are then inserted one by one.
        """
        logger.info(f"Adding data to collection '{collection.name}'")

        inputs = normalize_inputs(ids, embeddings, metadatas, documents)
        validate_lengths(inputs)
        vectors = resolve_embeddings(
            inputs.ids,
            inputs.embeddings,
            inputs.documents,
            collection.embedding_function,
            collection.dimension,
            require_embeddings=True,
        )

        rows = []
        for i, id_val in enumerate(inputs.ids):
            doc_val = inputs.documents[i] if inputs.documents else None
            meta_val = inputs.metadatas[i] if inputs.metadatas else None
            rows.append([
                id_to_bytes(id_val),
                doc_val,
                metadata_to_json(meta_val),
                vector_to_string(vectors[i]),
            ])

        sql = (
            f"INSERT INTO `{collection.table_name}` "
            f"({CollectionFieldNames.ID}, {CollectionFieldNames.DOCUMENT}, "
            f"{CollectionFieldNames.METADATA}, {CollectionFieldNames.EMBEDDING}) "
            f"VALUES (%s, %s, %s, %s)"
        )
        logger.debug(f"Executing SQL: {sql}")
        for params in rows:
            self.execute(sql, params)

        logger.info(f"✅ Successfully added {len(rows)} item(s) to collection '{collection.name}'")

    def _collection_update(
        self,
        collection: Collection,
        ids: IdsParam,
        embeddings: EmbeddingsParam = None,
        metadatas: MetadatasParam = None,
        documents: DocumentsParam = None,
    ) -> None:
        """
        [Internal] Update data in collection

        Only the given fields are written. Documents without embeddings are
        re-embedded with the collection's embedding function.
        """
        logger.info(f"Updating data in collection '{collection.name}'")

        if embeddings is None and metadatas is None and documents is None:
            raise InvalidInputError("Nothing to update: provide embeddings, documents or metadatas")

        inputs = normalize_inputs(ids, embeddings, metadatas, documents)
        validate_lengths(inputs)
        vectors = resolve_embeddings(
            inputs.ids,
            inputs.embeddings,
            inputs.documents,
            collection.embedding_function,
            collection.dimension,
            require_embeddings=False,
        )

        statements = []
        for i, id_val in enumerate(inputs.ids):
            set_clauses = []
            params: List[Any] = []

            if inputs.documents and inputs.documents[i] is not None:
                set_clauses.append(f"{CollectionFieldNames.DOCUMENT} = %s")
                params.append(inputs.documents[i])

            if inputs.metadatas and inputs.metadatas[i] is not None:
                set_clauses.append(f"{CollectionFieldNames.METADATA} = %s")
                params.append(metadata_to_json(inputs.metadatas[i]))

            if vectors:
                set_clauses.append(f"{CollectionFieldNames.EMBEDDING} = %s")
                params.append(vector_to_string(vectors[i]))

            if not set_clauses:
                continue

            params.append(id_to_bytes(id_val))
            sql = (
                f"UPDATE `{collection.table_name}` SET {', '.join(set_clauses)} "
                f"WHERE {CollectionFieldNames.ID} = %s"
            )
            statements.append((sql, params))

        for sql, params in statements:
            logger.debug(f"Executing SQL: {sql}")
            self.execute(sql, params)

        logger.info(f"✅ Successfully updated {len(inputs.ids)} item(s) in collection '{collection.name}'")

    def _collection_upsert(
        self,
        collection: Collection,
        ids: IdsParam,
        embeddings: EmbeddingsParam = None,
        metadatas: MetadatasParam = None,
        documents: DocumentsParam = None,
    ) -> None:
        """
        [Internal] Insert or update data in collection

        Per id: read the stored row, merge (new value > stored value > NULL),
        then UPDATE the passed fields or INSERT the merged row. Documents
        without an embedding function keep the stored embedding.
        """
        logger.info(f"Upserting data in collection '{collection.name}'")

        if embeddings is None and metadatas is None and documents is None:
            raise InvalidInputError("Nothing to upsert: provide embeddings, documents or metadatas")

        inputs = normalize_inputs(ids, embeddings, metadatas, documents)
        validate_lengths(inputs)
        vectors = resolve_embeddings(
            inputs.ids,
            inputs.embeddings,
            inputs.documents,
            collection.embedding_function,
            collection.dimension,
            require_embeddings=False,
            allow_missing_function=True,
        )
        if vectors:
            # Fail on non-finite values before anything is written
            for vector in vectors:
                vector_to_string(vector)
        for meta in inputs.metadatas or []:
            metadata_to_json(meta)

        for i, id_val in enumerate(inputs.ids):
            existing = self._collection_get(
                collection=collection,
                ids=[id_val],
                limit=1,
                offset=0,
                include=ALL_INCLUDE,
            )
            exists = len(existing.ids) > 0

            existing_values = (
                existing.documents[0] if exists and existing.documents else None,
                existing.metadatas[0] if exists and existing.metadatas else None,
                existing.embeddings[0] if exists and existing.embeddings else None,
            )
            new_values = (
                inputs.documents[i] if inputs.documents else None,
                inputs.metadatas[i] if inputs.metadatas else None,
                vectors[i] if vectors else None,
            )
            final_doc, final_meta, final_vec = merge_values(existing_values, new_values)

            if exists:
                set_clauses = []
                params: List[Any] = []
                if inputs.documents:
                    set_clauses.append(f"{CollectionFieldNames.DOCUMENT} = %s")
                    params.append(final_doc)
                if inputs.metadatas:
                    set_clauses.append(f"{CollectionFieldNames.METADATA} = %s")
                    params.append(metadata_to_json(final_meta))
                if vectors and final_vec:
                    set_clauses.append(f"{CollectionFieldNames.EMBEDDING} = %s")
                    params.append(vector_to_string(final_vec))
                if not set_clauses:
                    continue
                params.append(id_to_bytes(id_val))
                sql = (
                    f"UPDATE `{collection.table_name}` SET {', '.join(set_clauses)} "
                    f"WHERE {CollectionFieldNames.ID} = %s"
                )
            else:
                params = [
                    id_to_bytes(id_val),
                    final_doc,
                    metadata_to_json(final_meta),
                    vector_to_string(final_vec) if final_vec else None,
                ]
                sql = (
                    f"INSERT INTO `{collection.table_name}` "
                    f"({CollectionFieldNames.ID}, {CollectionFieldNames.DOCUMENT}, "
                    f"{CollectionFieldNames.METADATA}, {CollectionFieldNames.EMBEDDING}) "
                    f"VALUES (%s, %s, %s, %s)"
                )

            logger.debug(f"Executing SQL: {sql}")
            self.execute(sql, params)

        logger.info(f"✅ Successfully upserted {len(inputs.ids)} item(s) in collection '{collection.name}'")

    def _collection_delete(
        self,
        collection: Collection,
        ids: Optional[IdsParam] = None,
        where: Any = None,
        where_document: Any = None,
    ) -> None:
        """
        [Internal] Delete data from collection

        Raises:
            InvalidInputError: if no ids or filters are given, or they compile
                               to no predicate (which would delete every row)
        """
        logger.info(f"Deleting data from collection '{collection.name}'")

        if isinstance(ids, str):
            ids = [ids]
        where_node = as_filter(where)
        doc_node = as_doc_filter(where_document)
        if not ids and where_node is None and doc_node is None:
            raise InvalidInputError("At least one of ids, where, or where_document must be provided")

        sql_where = FilterBuilder.build_where_clause(where_node, doc_node, ids)
        if sql_where.is_empty:
            raise InvalidInputError("Delete filters produce no condition; refusing to delete all rows")

        sql = f"DELETE FROM `{collection.table_name}` {sql_where.clause}"
        logger.debug(f"Executing SQL: {sql}")
        logger.debug(f"Parameters: {sql_where.params}")
        self.execute(sql, sql_where.params)
        logger.info(f"✅ Successfully deleted data from collection '{collection.name}'")

    # -------------------- Reads --------------------

    @staticmethod
    def _build_select_clause(include: Sequence[IncludeField]) -> str:
        fields = [CollectionFieldNames.ID]
        if IncludeField.DOCUMENTS in include:
            fields.append(CollectionFieldNames.DOCUMENT)
        if IncludeField.METADATAS in include:
            fields.append(CollectionFieldNames.METADATA)
        if IncludeField.EMBEDDINGS in include:
            fields.append(CollectionFieldNames.EMBEDDING)
        return ", ".join(fields)

    def _collection_query_embeddings(
        self,
        collection: Collection,
        query_embeddings: Union[List[float], List[List[float]]],
        n_results: int = 10,
        where: Any = None,
        where_document: Any = None,
        include: IncludeParam = None,
    ) -> QueryResult:
        """
        [Internal] Nearest-neighbour search, one statement per query vector

        All vectors are validated before the first statement is sent.
        """
        logger.info(f"Querying collection '{collection.name}' with n_results={n_results}")

        vectors = normalize_embeddings(query_embeddings)
        if not vectors:
            raise InvalidInputError("query_embeddings must not be empty")
        _check_n_results(n_results)
        for vector in vectors:
            validate_dimension(vector, collection.dimension)
        literals = [vector_to_string(vector) for vector in vectors]

        include_fields = normalize_include(include)
        sql_where = FilterBuilder.build_where_clause(where, where_document)
        distance_fn = collection.distance.sql_function
        sql = _sql(
            f"SELECT {self._build_select_clause(include_fields)}, "
            f"{distance_fn}({CollectionFieldNames.EMBEDDING}, %s) AS distance",
            f"FROM `{collection.table_name}`",
            sql_where.clause,
            f"ORDER BY {distance_fn}({CollectionFieldNames.EMBEDDING}, %s) APPROXIMATE LIMIT %s",
        )
        logger.debug(f"Executing SQL: {sql}")

        row_groups = []
        for literal in literals:
            params = [literal] + sql_where.params + [literal, n_results]
            row_groups.append(self.fetch_all(sql, params))

        result = build_query_result(row_groups, include_fields)
        logger.info(f"✅ Query completed for '{collection.name}' with {len(row_groups)} vector(s)")
        return result

    def _collection_query_texts(
        self,
        collection: Collection,
        query_texts: Union[str, List[str]],
        n_results: int = 10,
        where: Any = None,
        where_document: Any = None,
        include: IncludeParam = None,
    ) -> QueryResult:
        """[Internal] Embed the texts, then search by the resulting vectors"""
        if isinstance(query_texts, str):
            query_texts = [query_texts]
        if not query_texts:
            raise InvalidInputError("query_texts must not be empty")
        if collection.embedding_function is None:
            raise EmbeddingError(
                "query_texts provided but collection has no embedding_function; "
                "provide query_embeddings or set embedding_function."
            )
        vectors = embed_documents(collection.embedding_function, list(query_texts))
        if len(vectors) != len(query_texts):
            raise EmbeddingError(
                f"Embedding function returned {len(vectors)} embeddings for {len(query_texts)} query texts"
            )
        return self._collection_query_embeddings(
            collection=collection,
            query_embeddings=vectors,
            n_results=n_results,
            where=where,
            where_document=where_document,
            include=include,
        )

    def _collection_get(
        self,
        collection: Collection,
        ids: Optional[IdsParam] = None,
        where: Any = None,
        where_document: Any = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        include: IncludeParam = None,
    ) -> GetResult:
        """
        [Internal] Fetch rows by ids and/or filters

        LIMIT is only added when limit is set; an offset without a limit uses
        the maximal LIMIT so that OFFSET is valid SQL.
        """
        logger.info(f"Getting data from collection '{collection.name}'")

        if isinstance(ids, str):
            ids = [ids]
        _check_non_negative("limit", limit)
        _check_non_negative("offset", offset)

        include_fields = normalize_include(include)
        sql_where = FilterBuilder.build_where_clause(where, where_document, ids)
        sql = _sql(
            f"SELECT {self._build_select_clause(include_fields)} FROM `{collection.table_name}`",
            sql_where.clause,
        )
        params = list(sql_where.params)
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        if offset is not None:
            if limit is None:
                sql += f" LIMIT {MAX_LIMIT}"
            sql += " OFFSET %s"
            params.append(offset)

        logger.debug(f"Executing SQL: {sql}")
        rows = self.fetch_all(sql, params)
        result = build_get_result(rows, include_fields)
        logger.info(f"✅ Get completed for '{collection.name}', found {len(result.ids)} result(s)")
        return result

    def _collection_peek(self, collection: Collection, limit: int = 10) -> GetResult:
        return self._collection_get(
            collection=collection,
            limit=limit,
            offset=0,
            include=ALL_INCLUDE,
        )

    def _collection_count(self, collection: Collection) -> int:
        """[Internal] Row count; 0 when the count cannot be read"""
        sql = f"SELECT COUNT(*) AS cnt FROM `{collection.table_name}`"
        logger.debug(f"Executing SQL: {sql}")
        rows = self.fetch_all(sql)
        if not rows:
            return 0
        try:
            count = rows[0].get_int("cnt")
        except SerializationError:
            count = None
        count = count or 0
        logger.info(f"✅ Collection '{collection.name}' has {count} items")
        return count

    # -------------------- Hybrid Search --------------------

    def _collection_hybrid_search(
        self,
        collection: Collection,
        query: Any = None,
        knn: Any = None,
        rank: Any = None,
        n_results: int = 10,
        include: IncludeParam = None,
    ) -> QueryResult:
        """
        [Internal] Hybrid search through DBMS_HYBRID_SEARCH

        A knn without query and rank is served by plain vector search. When the
        engine rejects search_parm as an invalid argument, the search is
        approximated on the client side (see _hybrid_search_fallback).
        """
        logger.info(f"Hybrid search in collection '{collection.name}' with n_results={n_results}")

        query = as_hybrid_query(query)
        knn = as_hybrid_knn(knn)
        rank = as_hybrid_rank(rank)
        _check_n_results(n_results)
        include_fields = normalize_include(include)

        if query is None and rank is None:
            if knn is None:
                raise InvalidInputError("hybrid_search requires at least query or knn parameters")
            return self._hybrid_search_knn_only(collection, knn, n_results, include_fields)

        search_parm = build_search_parm(
            query, knn, rank, n_results, collection.dimension, collection.embedding_function
        )
        if search_parm is None:
            raise InvalidInputError("hybrid_search requires at least query, knn, or rank parameters")

        try:
            return self._execute_hybrid_search(collection, to_search_parm_json(search_parm), include_fields)
        except SqlError as e:
            if not is_invalid_argument_error(e):
                raise
            logger.warning(
                f"Hybrid search rejected by the server ({e}); falling back to client-side "
                f"filtered search. Results are not rank-fused."
            )
            return self._hybrid_search_fallback(collection, query, knn, n_results, include_fields)

    def _hybrid_search_knn_only(
        self,
        collection: Collection,
        knn: HybridKnn,
        n_results: int,
        include: Sequence[IncludeField],
    ) -> QueryResult:
        if knn.query_embeddings is not None:
            return self._collection_query_embeddings(
                collection, knn.query_embeddings, n_results, where=knn.where, include=include
            )
        if knn.query_texts is not None:
            return self._collection_query_texts(
                collection, knn.query_texts, n_results, where=knn.where, include=include
            )
        raise InvalidInputError("knn requires either query_embeddings or query_texts")

    def _hybrid_search_fallback(
        self,
        collection: Collection,
        query: Optional[HybridQuery],
        knn: Optional[HybridKnn],
        n_results: int,
        include: Sequence[IncludeField],
    ) -> QueryResult:
        """
        Client-side approximation of a hybrid search

        With a knn part: vector search constrained by query.where AND knn.where
        and by query.where_document. Without one: filtered get with zero distances.
        """
        if knn is not None:
            where = combine_filters(query.where if query else None, knn.where)
            where_document = query.where_document if query else None
            if knn.query_embeddings is not None:
                return self._collection_query_embeddings(
                    collection, knn.query_embeddings, n_results, where, where_document, include
                )
            if knn.query_texts is not None:
                return self._collection_query_texts(
                    collection, knn.query_texts, n_results, where, where_document, include
                )
            raise InvalidInputError("knn requires either query_embeddings or query_texts")

        if query is not None:
            fetched = self._collection_get(
                collection=collection,
                where=query.where,
                where_document=query.where_document,
                limit=n_results,
                offset=0,
                include=include,
            )
            return QueryResult.from_get_result(fetched)

        raise InvalidInputError("hybrid_search requires at least query or knn parameters")

    def _execute_hybrid_search(
        self,
        collection: Collection,
        search_parm_json: str,
        include: Sequence[IncludeField],
    ) -> QueryResult:
        """
        Ask DBMS_HYBRID_SEARCH for the SQL of search_parm, then run that SQL
        """
        logger.debug(f"search_parm: {search_parm_json}")
        self.execute("SET @search_parm = %s", [search_parm_json])

        rows = self.fetch_all(
            "SELECT DBMS_HYBRID_SEARCH.GET_SQL(%s, @search_parm) AS query_sql FROM dual",
            [collection.table_name],
        )
        if not rows:
            logger.warning("DBMS_HYBRID_SEARCH.GET_SQL returned no rows")
            return empty_query_result(include)

        row = rows[0]
        try:
            query_sql = row.get_string("query_sql")
        except SerializationError:
            query_sql = None
        if query_sql is None:
            query_sql = row.get_string_by_index(0)
        query_sql = _unquote((query_sql or "").strip()).strip()
        if not query_sql:
            return empty_query_result(include)

        logger.debug(f"Executing hybrid search SQL: {query_sql}")
        result_rows = self.fetch_all(query_sql)
        logger.info(f"✅ Hybrid search completed for '{collection.name}', found {len(result_rows)} result(s)")
        return hybrid_rows_to_query_result(result_rows, include)

    def _collection_hybrid_search_queries(
        self,
        collection: Collection,
        queries: Optional[Union[str, List[str]]] = None,
        search_params: Optional[Union[str, Dict[str, Any]]] = None,
        where: Any = None,
        where_document: Any = None,
        n_results: int = 10,
        include: IncludeParam = None,
    ) -> QueryResult:
        """
        [Internal] Hybrid search driven by query texts

        search_params, when given, are sent unchanged. Otherwise search_parm is
        built from the first query text and the filters.
        """
        if isinstance(queries, str):
            queries = [queries]
        queries = list(queries or [])
        where_node = as_filter(where)
        doc_node = as_doc_filter(where_document)
        _check_n_results(n_results)
        include_fields = normalize_include(include)

        if search_params is None and where_node is None and doc_node is None and queries:
            return self._collection_query_texts(collection, queries, n_results, include=include_fields)

        if search_params is not None:
            if isinstance(search_params, str):
                search_parm_json = search_params
            else:
                search_parm_json = json.dumps(search_params, ensure_ascii=False)
        else:
            search_parm_json = to_search_parm_json(build_text_search_parm(
                queries, where_node, doc_node, n_results,
                collection.dimension, collection.embedding_function,
            ))
        if not search_parm_json:
            raise InvalidInputError("hybrid_search requires queries, filters, or search_params")

        try:
            return self._execute_hybrid_search(collection, search_parm_json, include_fields)
        except SqlError as e:
            # Caller-built search_params are not reinterpreted
            if search_params is not None or not is_invalid_argument_error(e):
                raise
            logger.warning(
                f"Hybrid search rejected by the server ({e}); falling back to client-side "
                f"filtered search. Results are not rank-fused."
            )
            knn = HybridKnn(query_texts=queries) if queries else None
            query = HybridQuery(where=where_node, where_document=doc_node)
            return self._hybrid_search_fallback(collection, query, knn, n_results, include_fields)
