#!/usr/bin/env python3
"""Example: Build the post knowledge base from markdown documents."""

import logging
import os
import sys

from post_kb import build_kb
from post_kb.config import Settings, create_embeddings_client


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    settings = Settings()

    # Validate knowledge directory
    if not os.path.isdir(settings.knowledge_dir):
        print(f"Error: Knowledge directory not found: {settings.knowledge_dir}")
        print("Set KNOWLEDGE_DIR environment variable or create ./knowledge directory")
        sys.exit(1)

    print("=" * 60)
    print("Post Knowledge Base Builder")
    print("=" * 60)
    print(f"Knowledge directory: {settings.knowledge_dir}")
    print(f"Output directory:    {settings.kb_dir}")
    print(f"Embedding provider:  {settings.embed_provider}")
    print(f"Embedding model:     {settings.embed_model}")
    print(f"Dimension:           {settings.embed_dimension}")
    print(f"Batch size:          {settings.embed_batch_size}")
    print(f"Vector store:        {settings.vector_store}")
    print(f"Strict sections:     {settings.strict_sections}")
    print("=" * 60)
    print()

    remote_store = None
    if settings.vector_store == "pinecone":
        from post_kb import PineconeVectorStore

        remote_store = PineconeVectorStore(settings.pinecone_index_name, api_key=settings.pinecone_api_key)

    try:
        manifest = build_kb(
            knowledge_dir=settings.knowledge_dir,
            out_dir=settings.kb_dir,
            embeddings_client=create_embeddings_client(settings),
            embed_model=settings.embed_model,
            provider=settings.embed_provider,
            dimension=settings.embed_dimension,
            batch_size=settings.embed_batch_size,
            strict=settings.strict_sections,
            store=remote_store,
        )

        print()
        print("=" * 60)
        print("Build completed successfully!")
        print("=" * 60)
        print(f"KB version:     {manifest.kb_version}")
        print(f"Document count: {manifest.doc_count}")
        print(f"Chunk count:    {manifest.chunk_count}")
        if manifest.missing_documents:
            print("\nOptional documents not found:")
            for name in manifest.missing_documents:
                print(f"  - {name}")
        print()
        print(f"Knowledge base available at: {settings.current_kb_path}")
        print("=" * 60)

    except Exception as e:
        print(f"\nError during KB build: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
