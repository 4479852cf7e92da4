"""Environment-driven settings and factories for the pipeline collaborators."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .embeddings import EmbeddingService
from .generation import PostGenerationService
from .rag import RAGService
from .vector_store import VectorStore


class Settings(BaseSettings):
    """Runtime configuration, read from the environment or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Paths
    knowledge_dir: str = "./knowledge"
    kb_dir: str = "./kb"

    # Embeddings
    embed_provider: Literal["ollama", "cohere"] = "ollama"
    embed_model: str = "mxbai-embed-large"
    embed_dimension: int = 1024
    embed_batch_size: int = 96
    ollama_base_url: str = "http://localhost:11434"
    cohere_api_key: Optional[str] = None

    # Chat model
    llm_model: str = "llama3.1"
    llm_temperature: float = 0.8

    # Vector store
    vector_store: Literal["faiss", "pinecone"] = "faiss"
    pinecone_api_key: Optional[str] = None
    pinecone_index_name: str = "post-knowledge-base"

    # Retrieval and chunking
    rag_top_k: int = 3
    strict_sections: bool = False

    @property
    def current_kb_path(self) -> str:
        return os.path.join(self.kb_dir, "current")


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def create_embeddings_client(settings: Settings):
    """LangChain embeddings client for the configured provider."""
    if settings.embed_provider == "cohere":
        from langchain_cohere import CohereEmbeddings

        return CohereEmbeddings(model=settings.embed_model, cohere_api_key=settings.cohere_api_key)

    from langchain_ollama import OllamaEmbeddings

    return OllamaEmbeddings(model=settings.embed_model, base_url=settings.ollama_base_url)


def create_embedding_service(settings: Settings) -> EmbeddingService:
    return EmbeddingService(
        create_embeddings_client(settings),
        dimension=settings.embed_dimension,
        batch_size=settings.embed_batch_size,
        provider=settings.embed_provider,
    )


def create_chat_model(settings: Settings):
    from langchain_ollama import ChatOllama

    return ChatOllama(
        model=settings.llm_model,
        base_url=settings.ollama_base_url,
        temperature=settings.llm_temperature,
    )


def create_vector_store(settings: Settings) -> VectorStore:
    """
    Vector store for serving requests.

    FAISS loads the active local build (``<kb_dir>/current``); Pinecone
    connects to the configured remote index.
    """
    if settings.vector_store == "pinecone":
        from .vector_store import PineconeVectorStore

        return PineconeVectorStore(settings.pinecone_index_name, api_key=settings.pinecone_api_key)

    from .loader import load_kb

    return load_kb(settings.current_kb_path).store


def create_generation_service(settings: Optional[Settings] = None) -> PostGenerationService:
    settings = settings or get_settings()
    rag_service = RAGService(
        create_embedding_service(settings),
        create_vector_store(settings),
        top_k=settings.rag_top_k,
    )
    return PostGenerationService(rag_service, llm=create_chat_model(settings))
