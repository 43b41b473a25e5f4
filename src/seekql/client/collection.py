"""
Collection handle

A Collection knows what its table looks like (name, vector dimension,
distance metric) and which embedding function turns its documents into
vectors. It runs no SQL itself: every method hands the collection to the
owning client's _collection_* implementation.
"""
from typing import Any, Dict, List, Optional, Union, TYPE_CHECKING

from .configuration import DistanceMetric
from .meta_info import CollectionNames, IncludeParam
from .query_result import GetResult, QueryResult
from .errors import InvalidInputError

if TYPE_CHECKING:
    from .embedding_function import EmbeddingFunction
    from .filters import WhereParam, WhereDocumentParam
    from .hybrid_search import QueryParam, KnnParam, RankParam

# Every data method accepts a single item or a list, like Chroma
IdsParam = Union[str, List[str]]
EmbeddingsParam = Optional[Union[List[float], List[List[float]]]]
MetadatasParam = Optional[Union[Dict[str, Any], List[Dict[str, Any]]]]
DocumentsParam = Optional[Union[str, List[str]]]


class Collection:
    """
    Handle on one `c$v1$<name>` table

    Usually obtained from client.create_collection / get_collection rather
    than constructed directly.
    """

    def __init__(
        self,
        client: Any,
        name: str,
        dimension: int,
        distance: Union[str, DistanceMetric] = DistanceMetric.L2,
        embedding_function: Optional["EmbeddingFunction"] = None,
        collection_id: Optional[str] = None,
        **metadata
    ):
        """
        Args:
            client: BaseClient that executes the operations
            dimension: length of every stored vector
            distance: metric of the vector index, picks the SQL distance function
            embedding_function: used for documents and query texts; None means
                                callers always pass vectors
            collection_id: identifier, the table name unless given
            **metadata: free-form attributes kept on the handle
        """
        if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
            raise InvalidInputError(f"dimension must be a positive integer, got {dimension!r}")
        self._client = client
        self._name = name
        self._table_name = CollectionNames.table_name(name)
        self._id = collection_id or self._table_name
        self._dimension = dimension
        self._distance = DistanceMetric.parse(distance)
        self._embedding_function = embedding_function
        self._metadata = metadata

    @property
    def name(self) -> str:
        return self._name

    @property
    def table_name(self) -> str:
        """Physical table, `c$v1$<name>`"""
        return self._table_name

    @property
    def id(self) -> str:
        return self._id

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def distance(self) -> DistanceMetric:
        return self._distance

    @property
    def embedding_function(self) -> Optional["EmbeddingFunction"]:
        return self._embedding_function

    @property
    def client(self) -> Any:
        return self._client

    @property
    def metadata(self) -> Dict[str, Any]:
        return self._metadata

    def __repr__(self) -> str:
        return (
            f"Collection(name='{self._name}', dimension={self._dimension}, "
            f"distance={self._distance.value}, client={self._client.mode})"
        )

    # ==================== Writes ====================

    def add(
        self,
        ids: IdsParam,
        embeddings: EmbeddingsParam = None,
        metadatas: MetadatasParam = None,
        documents: DocumentsParam = None,
    ) -> None:
        """
        Insert new rows

        Vectors come from `embeddings`, or are computed from `documents` by the
        embedding function. Lengths and dimensions are checked before anything
        is written.

        Examples:
            docs.add(ids="a1", embeddings=[0.5, 0.1, 0.9], metadatas={"lang": "en"})

            docs.add(
                ids=["a2", "a3"],
                documents=["vector indexes in seekdb", "fulltext search with ik"],
                metadatas=[{"lang": "en"}, {"lang": "en"}],
            )
        """
        self._client._collection_add(self, ids, embeddings, metadatas, documents)

    def update(
        self,
        ids: IdsParam,
        embeddings: EmbeddingsParam = None,
        metadatas: MetadatasParam = None,
        documents: DocumentsParam = None,
    ) -> None:
        """
        Overwrite the passed fields of existing rows; other columns stay as they are

        Examples:
            docs.update(ids="a1", metadatas={"lang": "de"})
        """
        self._client._collection_update(self, ids, embeddings, metadatas, documents)

    def upsert(
        self,
        ids: IdsParam,
        embeddings: EmbeddingsParam = None,
        metadatas: MetadatasParam = None,
        documents: DocumentsParam = None,
    ) -> None:
        """
        Update rows that exist, insert the rest

        Existing rows keep the fields that are not passed.
        Each id is read, merged and written separately, so concurrent writers
        to the same id may overwrite each other.

        Examples:
            docs.upsert(ids=["a1", "a9"], embeddings=[[0.1, 0.1, 0.1], [0.2, 0.0, 0.4]])
        """
        self._client._collection_upsert(self, ids, embeddings, metadatas, documents)

    def delete(
        self,
        ids: Optional[IdsParam] = None,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
    ) -> None:
        """
        Delete rows matching ids and/or filters (all conditions must hold)

        Raises:
            InvalidInputError: nothing to match on, which would empty the table

        Examples:
            docs.delete(ids=["a2", "a3"])
            docs.delete(where=K("lang") == "de")
            docs.delete(where_document={"$contains": "draft"})
        """
        self._client._collection_delete(self, ids, where, where_document)

    # ==================== Reads ====================

    def query(
        self,
        query_embeddings: EmbeddingsParam = None,
        query_texts: DocumentsParam = None,
        n_results: int = 10,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        include: IncludeParam = None,
    ) -> QueryResult:
        """
        Nearest neighbours of each query vector or query text

        Args:
            query_embeddings: one vector or several; takes precedence over query_texts
            query_texts: embedded with the collection's embedding function
            n_results: neighbours per query
            where: metadata Filter, or a Chroma dict ($eq, $ne, $gt, $gte, $lt,
                   $lte, $in, $nin, $and, $or, $not)
            where_document: DocFilter, or a dict with $contains, $regex, $and, $or
            include: any of "documents", "metadatas", "embeddings";
                     documents and metadatas by default

        Returns:
            QueryResult with one slot per query, e.g. results.ids[1] are the
            ids found for the second query.

        Examples:
            results = docs.query(query_embeddings=[0.5, 0.1, 0.9], n_results=3)

            results = docs.query(
                query_texts="how does hnsw work",
                where=K("lang") == "en",
                where_document=DOCUMENT.contains("index"),
            )
        """
        if query_embeddings is not None:
            return self.query_embeddings(query_embeddings, n_results, where, where_document, include)
        if query_texts is not None:
            return self.query_texts(query_texts, n_results, where, where_document, include)
        raise InvalidInputError("Either query_embeddings or query_texts must be provided")

    def query_embeddings(
        self,
        query_embeddings: Union[List[float], List[List[float]]],
        n_results: int = 10,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        include: IncludeParam = None,
    ) -> QueryResult:
        return self._client._collection_query_embeddings(
            self, query_embeddings, n_results, where, where_document, include
        )

    def query_texts(
        self,
        query_texts: Union[str, List[str]],
        n_results: int = 10,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        include: IncludeParam = None,
    ) -> QueryResult:
        return self._client._collection_query_texts(
            self, query_texts, n_results, where, where_document, include
        )

    def get(
        self,
        ids: Optional[IdsParam] = None,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        include: IncludeParam = None,
    ) -> GetResult:
        """
        Rows by id and/or filter, unordered; no conditions means every row

        Examples:
            page = docs.get(where={"lang": "en"}, limit=20, offset=40)
        """
        return self._client._collection_get(
            self, ids, where, where_document, limit, offset, include
        )

    def peek(self, limit: int = 10) -> GetResult:
        """First `limit` rows with every field"""
        return self._client._collection_peek(self, limit)

    def count(self) -> int:
        return self._client._collection_count(self)

    # ==================== Hybrid search ====================

    def hybrid_search(
        self,
        query: "QueryParam" = None,
        knn: "KnnParam" = None,
        rank: "RankParam" = None,
        n_results: int = 10,
        include: IncludeParam = None,
    ) -> QueryResult:
        """
        Fulltext and vector search fused by the server's DBMS_HYBRID_SEARCH

        Args:
            query: HybridQuery, or a dict with "where" / "where_document"
            knn: HybridKnn, or a dict with "query_embeddings" or "query_texts",
                 plus optional "where" and "n_results" (k, 10 unless given)
            rank: HybridRank, or a dict such as {"rrf": {"rank_constant": 60}}
            n_results: size of the fused result
            include: fields to return

        Returns:
            QueryResult with exactly one slot

        If the server rejects the request as an invalid argument, a filtered
        vector search (or filtered get) is run instead and logged as a warning.
        Its results are not rank-fused.

        Examples:
            results = docs.hybrid_search(
                query=HybridQuery(where_document=DOCUMENT.contains("hnsw")),
                knn=HybridKnn(query_texts=["approximate nearest neighbour"], n_results=20),
                rank=HybridRank.rrf(),
                n_results=5,
            )
        """
        return self._client._collection_hybrid_search(self, query, knn, rank, n_results, include)

    def hybrid_search_queries(
        self,
        queries: DocumentsParam = None,
        search_params: Optional[Union[str, Dict[str, Any]]] = None,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        n_results: int = 10,
        include: IncludeParam = None,
    ) -> QueryResult:
        """
        Hybrid search described by query texts and filters

        Without search_params and filters this is a plain text query. Otherwise
        the first query text becomes the knn vector and the filters restrict
        both the fulltext and the vector part. A caller-built search_params
        (dict or JSON string) is sent unchanged.
        """
        return self._client._collection_hybrid_search_queries(
            self, queries, search_params, where, where_document, n_results, include
        )
