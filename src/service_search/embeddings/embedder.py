"""
Embedding Client

This module implements the embedding provider used by ingestion and by the
query loop. It talks to the OpenAI embeddings API, or to an Azure OpenAI
deployment of the same API, and is responsible for:

- One outbound request per text, no caching, no retry
- Network and transport error isolation
- Strict response validation
- Dimensionality checks against the index schema

The class is stateless and safe to reuse across calls.
"""

from __future__ import annotations

from typing import List, Sequence, Optional
import logging
import httpx

from ..config import Settings, get_settings
from ..core.errors import EmbeddingError, SchemaMismatchError

logger = logging.getLogger("svc.embedder")


class Embedder:
    """
    Asynchronous embedding generator for single texts.

    When ``azure_endpoint`` is given, ``model`` is treated as the Azure
    deployment name and the request is authenticated with an ``api-key``
    header instead of a bearer token.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        azure_endpoint: Optional[str] = None,
        azure_api_version: Optional[str] = None,
        dimensions: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize an Embedder.

        Every parameter left as None is read from settings, so tests that
        pass all of them never need a configured environment.

        Parameters
        ----------
        api_key : Optional[str]
            Provider API key.

        model : Optional[str]
            Embedding model, or Azure deployment name.

        base_url : Optional[str]
            OpenAI-style embeddings endpoint.

        azure_endpoint : Optional[str]
            Azure OpenAI resource endpoint. Enables Azure mode.

        azure_api_version : Optional[str]
            ``api-version`` query parameter for Azure mode.

        dimensions : Optional[int]
            Expected vector length. Responses of any other length raise
            SchemaMismatchError. Zero disables the check.

        timeout : Optional[float]
            HTTP timeout for each request.

        transport : Optional[httpx.AsyncBaseTransport]
            Transport override, used by tests.
        """
        settings: Optional[Settings] = None
        needs_settings = (
            api_key is None
            or model is None
            or timeout is None
            or dimensions is None
            or (base_url is None and azure_endpoint is None)
        )
        if needs_settings:
            settings = get_settings()

        self.api_key = (
            api_key if api_key is not None else settings.openai_api_key.get_secret_value()
        )
        self.model = model if model is not None else settings.embedding_model
        self.dimensions = dimensions if dimensions is not None else settings.embedding_dimensions
        self.timeout = timeout if timeout is not None else settings.embedding_timeout
        self._transport = transport

        if azure_endpoint is None and settings is not None and settings.azure_openai_endpoint:
            azure_endpoint = str(settings.azure_openai_endpoint)
        if azure_api_version is None:
            azure_api_version = (
                settings.azure_openai_api_version if settings is not None else "2023-05-15"
            )

        self.is_azure = bool(azure_endpoint)
        if self.is_azure:
            self.url = (
                f"{azure_endpoint.rstrip('/')}/openai/deployments/{self.model}"
                f"/embeddings?api-version={azure_api_version}"
            )
        elif base_url is not None:
            self.url = base_url
        else:
            self.url = str(settings.embedding_base_url)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for one input text.

        Parameters
        ----------
        text : str
            Input text. Empty text is sent as-is; the provider decides.

        Returns
        -------
        List[float]
            A dense vector of ``dimensions`` floats.

        Raises
        ------
        EmbeddingError
            If the request fails or the response is malformed.

        SchemaMismatchError
            If the vector length differs from the expected dimensions.
        """
        payload = {"input": text}
        if not self.is_azure:
            payload["model"] = self.model

        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(
                    self.url,
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.error(
                    "Embedding request failed (%s): text length=%d, error=%s",
                    type(exc).__name__,
                    len(text),
                    str(exc),
                )
                raise EmbeddingError(
                    f"Embedding generation failed: {type(exc).__name__}"
                ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise EmbeddingError("Embedding response is not valid JSON.") from exc

        vector = self._extract_embedding(data)

        if self.dimensions and len(vector) != self.dimensions:
            raise SchemaMismatchError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}."
            )

        logger.debug("Embedded text of length %d", len(text))
        return vector

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed each text in order, one request at a time."""
        return [await self.embed(text) for text in texts]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict:
        if self.is_azure:
            return {"api-key": self.api_key}
        return {"Authorization": f"Bearer {self.api_key}"}

    @staticmethod
    def _extract_embedding(data: dict) -> List[float]:
        """
        Parse and validate embedding output format.

        OpenAI returns:
            { "data": [ {"embedding": [...]} ] }

        Raises
        ------
        EmbeddingError
            If the API returns unexpected structure.
        """
        if not isinstance(data, dict) or "data" not in data:
            raise EmbeddingError("Embedding response missing 'data' field.")

        records = data["data"]
        if not isinstance(records, list):
            raise EmbeddingError("'data' field must be a list.")

        if len(records) != 1:
            raise EmbeddingError(
                f"Expected exactly one embedding record, got {len(records)}."
            )

        record = records[0]
        if not isinstance(record, dict) or "embedding" not in record:
            raise EmbeddingError(f"Malformed embedding record: {record!r}")

        emb = record["embedding"]
        if not isinstance(emb, list) or not emb or not all(
            isinstance(x, (float, int)) and not isinstance(x, bool) for x in emb
        ):
            raise EmbeddingError("Invalid embedding vector: must be a non-empty float list.")

        return [float(x) for x in emb]
